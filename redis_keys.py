REDIS_META_KEY = "room:meta:{slug}" # room id - hash of connected tokens + created_at
REDIS_MESSAGES_KEY = "room:messages:{slug}" # room id - append-only list of JSON messages
REDIS_EVENTS_KEY = "room:events:{slug}" # room id - event sequence counter for the channel
REDIS_ROOM_CHANNEL = "room:channel:{slug}" # room id - pub/sub channel name

# **`room:meta:{id}` hash fields**
# - `connected` = JSON array of session tokens, join order, at most MAX_PARTICIPANTS
# - `created_at` = ISO timestamp
#
# All three keys share the meta key's expiry; posting a message copies the
# meta key's remaining TTL onto the others.
