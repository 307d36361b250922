import os

REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", 6379))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD", None)

ENVIRONMENT = os.getenv("ENVIRONMENT", "development")

ROOM_TTL_SECONDS = int(os.getenv("ROOM_TTL_SECONDS", 60 * 10))
MAX_PARTICIPANTS = int(os.getenv("MAX_PARTICIPANTS", 2))
ADMISSION_MAX_RETRIES = int(os.getenv("ADMISSION_MAX_RETRIES", 16))

SENDER_MAX_LENGTH = 100
TEXT_MAX_LENGTH = 1000

AUTH_COOKIE_NAME = "x-auth-token"
AUTH_COOKIE_SECURE = ENVIRONMENT == "production"
