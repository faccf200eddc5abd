from pydantic_settings import BaseSettings
from typing import Optional, List

class Settings(BaseSettings):
    PROJECT_NAME: str = "QuizRank"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"

    # CORS
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:3001",
        "http://127.0.0.1:3000",
        "http://localhost:5500"
    ]

    # Database Configuration
    DATABASE_URL: str = "sqlite:///./quizrank.db"

    # Cache
    REDIS_URL: Optional[str] = None
    CACHE_ENABLED: bool = True
    CACHE_TTL: int = 300
    CACHE_KEY_PREFIX: str = "quizrank:"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    # Leaderboards
    LEADERBOARD_CACHE_TTL: int = 60
    LEADERBOARD_DEFAULT_LIMIT: int = 10
    LEADERBOARD_MAX_LIMIT: int = 100
    LEADERBOARD_REBUILD_TIMEOUT_SECONDS: float = 10.0
    LEADERBOARD_SWEEP_SECONDS: int = 30
    LEADERBOARD_SPARKLINE_LENGTH: int = 12
    REBUILD_WORKERS: int = 4

    # Live push
    LIVE_PUSH_INTERVAL_SECONDS: float = 15.0
    LIVE_PING_INTERVAL_SECONDS: float = 30.0

    PENDING_RELEASE_CHECK_SECONDS: int = 60

    # Badges
    BADGE_PASS_THRESHOLD: int = 5
    BADGE_STREAK_DAYS: int = 7
    BADGE_TOP_PERCENT: float = 0.01

    class Config:
        env_file = ".env"

settings = Settings()
