# Base API prefix (all HTTP routes are served under /api/*)
API_PREFIX = "/api"

# WebSocket endpoint – mounted under API_PREFIX
WS_ENDPOINT = "/ws"

# Router prefixes (relative to API_PREFIX)
USER_PREFIX = "/user"
FEED_PREFIX = "/feed"
BARTER_PREFIX = "/barter"
MESSAGES_PREFIX = "/messages"
CONNECTIONS_PREFIX = "/connections"

# Per-user broadcast group on the real-time channel
USER_TOPIC = "user:{user_id}"


def user_topic(user_id: int) -> str:
    return USER_TOPIC.format(user_id=user_id)
