"""Cache configuration and TTL settings"""
from app.core.config import settings

# Cache TTL (Time To Live) configurations in seconds
CACHE_TTL = {
    # Rendered pages - rebuilt often, short bounded staleness
    "leaderboard_page": settings.LEADERBOARD_CACHE_TTL,
}

# Cache key patterns, filled with (scope_id, limit)
CACHE_KEYS = {
    "leaderboard_page": "leaderboard:{}:{}",
}

# Cache invalidation patterns - what to clear when data changes
INVALIDATION_PATTERNS = {
    "leaderboard_rebuilt": [
        "leaderboard:{}:*",
    ],
}
