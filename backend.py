import json
from functools import wraps
from typing import Callable, Optional

import redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from redis.exceptions import WatchError

from constants import ADMISSION_MAX_RETRIES, REDIS_HOST, REDIS_PASSWORD, REDIS_PORT
from errors import RoomNotFound, StoreUnavailable
from logging_config import get_logger
from redis_keys import REDIS_EVENTS_KEY, REDIS_MESSAGES_KEY, REDIS_META_KEY, REDIS_ROOM_CHANNEL

logger = get_logger(__name__)

# redis-py return values for TTL/PTTL
TTL_MISSING = -2
TTL_PERSISTENT = -1

# Undecodable bytes come back with U+FFFD instead of raising, so bad rows
# fail parsing further up and get skipped.
REDIS_CLIENT_OPTIONS = {"decode_responses": True, "encoding_errors": "replace"}


def create_redis_client() -> redis.Redis:
    try:
        client = redis.Redis(host=REDIS_HOST, port=REDIS_PORT, password=REDIS_PASSWORD, **REDIS_CLIENT_OPTIONS)
        client.ping()
        logger.info(f"Redis client connected successfully to {REDIS_HOST}:{REDIS_PORT}")
        return client
    except (RedisConnectionError, RedisTimeoutError) as e:
        logger.error(f"Failed to connect to Redis at {REDIS_HOST}:{REDIS_PORT}: {e}", exc_info=True)
        raise StoreUnavailable(f"Redis unavailable at {REDIS_HOST}:{REDIS_PORT}") from e


def translate_store_errors(func):
    """Surface redis I/O failures as StoreUnavailable."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (RedisConnectionError, RedisTimeoutError) as e:
            logger.error(f"Redis unavailable during {func.__name__}: {e}", exc_info=True)
            raise StoreUnavailable(str(e)) from e

    return wrapper


def decode_connected(raw) -> list[str]:
    """Normalize a stored membership value to an ordered list of tokens.

    Accepts a native list, a JSON-encoded array (the current format), a
    JSON-encoded string, or a bare legacy token. Anything else decodes to an
    empty list; this never raises.
    """
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        return [str(token) for token in raw if token]
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    if not isinstance(raw, str):
        logger.warning(f"Unexpected membership value of type {type(raw).__name__}, treating as empty")
        return []

    text = raw.strip()
    if not text:
        return []
    if "\ufffd" in text:
        logger.warning("Membership value is not valid UTF-8, treating as empty")
        return []
    if text[0] not in '[{"':
        # Legacy rows stored a single token as a plain string
        return [text]

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        logger.warning(f"Error parsing connected array: {e}")
        return []

    if isinstance(parsed, str):
        return [parsed] if parsed else []
    if isinstance(parsed, list):
        return [token for token in parsed if isinstance(token, str) and token]
    logger.warning(f"Membership value decoded to {type(parsed).__name__}, treating as empty")
    return []


class RedisBackend:
    def __init__(self, redis_client: Optional[redis.Redis] = None):
        self.redis_client = redis_client if redis_client is not None else create_redis_client()
        logger.info("Initializing RedisBackend")

    @staticmethod
    def meta_key(room_id: str) -> str:
        return REDIS_META_KEY.format(slug=room_id)

    @staticmethod
    def messages_key(room_id: str) -> str:
        return REDIS_MESSAGES_KEY.format(slug=room_id)

    @staticmethod
    def events_key(room_id: str) -> str:
        return REDIS_EVENTS_KEY.format(slug=room_id)

    def get_room_channel_name(self, room_id: str) -> str:
        """Get the Redis pub/sub channel name for a room."""
        return REDIS_ROOM_CHANNEL.format(slug=room_id)

    @translate_store_errors
    def ping(self) -> bool:
        return bool(self.redis_client.ping())

    @translate_store_errors
    def create_room(self, room_id: str, created_at: str, ttl: int) -> str:
        logger.info(f"Creating room {room_id} with TTL {ttl} seconds")
        key = self.meta_key(room_id)
        with self.redis_client.pipeline() as pipe:
            pipe.hset(key, mapping={"connected": json.dumps([]), "created_at": created_at})
            pipe.expire(key, ttl)
            pipe.execute()
        logger.debug(f"Room {room_id} created successfully with key: {key}")
        return room_id

    @translate_store_errors
    def room_exists(self, room_id: str) -> bool:
        return bool(self.redis_client.exists(self.meta_key(room_id)))

    @translate_store_errors
    def get_connected(self, room_id: str) -> list[str]:
        raw = self.redis_client.hget(self.meta_key(room_id), "connected")
        return decode_connected(raw)

    @translate_store_errors
    def update_connected(self, room_id: str, decide: Callable, max_retries: int = ADMISSION_MAX_RETRIES):
        """Compare-and-set the membership list under WATCH.

        ``decide(connected)`` returns ``(updated, result)``. When ``updated`` is
        None nothing is written; otherwise it replaces the list atomically and the
        whole read/decide/write is retried if another client touched the room in
        between. Returns ``result``. ``decide`` may raise to abort.
        """
        key = self.meta_key(room_id)
        with self.redis_client.pipeline() as pipe:
            for attempt in range(1, max_retries + 1):
                try:
                    pipe.watch(key)
                    remaining_ms = pipe.pttl(key)
                    if remaining_ms == TTL_MISSING:
                        raise RoomNotFound(room_id)
                    connected = decode_connected(pipe.hget(key, "connected"))
                    updated, result = decide(connected)
                    if updated is None:
                        pipe.unwatch()
                        return result

                    pipe.multi()
                    pipe.hset(key, "connected", json.dumps(updated))
                    if remaining_ms > 0:
                        # keeps the expiry even if the key was purged and recreated mid-flight
                        pipe.pexpire(key, remaining_ms)
                    pipe.execute()
                    logger.debug(f"Membership of room {room_id} updated to {len(updated)} entries (attempt {attempt})")
                    return result
                except WatchError:
                    logger.debug(f"Membership of room {room_id} changed concurrently, retrying (attempt {attempt})")
                    continue
        logger.error(f"Gave up updating membership of room {room_id} after {max_retries} attempts")
        raise StoreUnavailable(f"Too much contention on room {room_id}")

    @translate_store_errors
    def get_ttl(self, room_id: str) -> int:
        return self.redis_client.ttl(self.meta_key(room_id))

    @translate_store_errors
    def append_message(self, room_id: str, payload: str) -> int:
        length = self.redis_client.rpush(self.messages_key(room_id), payload)
        logger.debug(f"Appended message to room {room_id}, log length {length}")
        return length

    @translate_store_errors
    def get_messages(self, room_id: str) -> list[str]:
        return self.redis_client.lrange(self.messages_key(room_id), 0, -1)

    @translate_store_errors
    def refresh_expiry(self, room_id: str, ttl: int) -> None:
        """Align the message log and event keys with the room's remaining TTL."""
        keys = [self.messages_key(room_id), self.events_key(room_id)]
        if ttl == TTL_PERSISTENT:
            return
        if ttl <= 0:
            logger.info(f"Room {room_id} expired while refreshing, dropping {keys}")
            self.redis_client.delete(*keys)
            return
        with self.redis_client.pipeline() as pipe:
            for key in keys:
                pipe.expire(key, ttl)
            pipe.execute()
        logger.debug(f"Refreshed expiry of room {room_id} keys to {ttl} seconds")

    @translate_store_errors
    def delete_room(self, room_id: str) -> int:
        logger.info(f"Deleting room {room_id}")
        deleted = 0
        # one key at a time; anything left behind still expires on its own
        for key in (self.events_key(room_id), self.meta_key(room_id), self.messages_key(room_id)):
            deleted += self.redis_client.delete(key)
        logger.debug(f"Room {room_id} deleted: {deleted} keys removed")
        return deleted

    @translate_store_errors
    def next_event_seq(self, room_id: str) -> int:
        """Bump the room's event counter, keeping it on the room's expiry."""
        events_key = self.events_key(room_id)
        remaining_ms = self.redis_client.pttl(self.meta_key(room_id))
        with self.redis_client.pipeline() as pipe:
            pipe.incr(events_key)
            if remaining_ms > 0:
                pipe.pexpire(events_key, remaining_ms)
            elif remaining_ms == TTL_MISSING:
                # room already gone, nothing should outlive it
                pipe.delete(events_key)
            seq = pipe.execute()[0]
        return seq

    @translate_store_errors
    def current_event_seq(self, room_id: str) -> int:
        value = self.redis_client.get(self.events_key(room_id))
        try:
            return int(value) if value else 0
        except ValueError:
            logger.warning(f"Event counter of room {room_id} is not a number, reporting 0")
            return 0

    @translate_store_errors
    def publish_message(self, room_id: str, message: dict) -> int:
        """Publish a message to the room's Redis pub/sub channel."""
        channel = self.get_room_channel_name(room_id)
        subscribers = self.redis_client.publish(channel, json.dumps(message))
        logger.debug(f"Published message to room {room_id} channel {channel}, {subscribers} subscribers")
        return subscribers

    @translate_store_errors
    def subscribe_to_room(self, room_id: str):
        """Create a pubsub subscriber for a room channel."""
        channel = self.get_room_channel_name(room_id)
        logger.debug(f"Subscribing to Redis channel {channel} for room {room_id}")
        pubsub = self.redis_client.pubsub()
        pubsub.subscribe(channel)
        return pubsub


_redis_backend: Optional[RedisBackend] = None


def get_backend() -> RedisBackend:
    global _redis_backend
    if _redis_backend is None:
        _redis_backend = RedisBackend()
    return _redis_backend
