"""Default values shared across reqcache."""

DEFAULT_CACHE_TTL = 60 * 1000
DEFAULT_REQUEST_TIMEOUT = 30_000

CACHE_KEY_PREFIX = "CACHEKEY-"

SUPPORTED_METHODS = ("get", "put", "post", "delete")

GENERIC_DISPLAY_MESSAGE = (
    "Oops, something went wrong. If this issue persists, please contact support."
)
