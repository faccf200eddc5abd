from enum import Enum


class AttemptStatusEnum(str, Enum):
    IN_PROGRESS = "in-progress"
    PENDING = "pending"
    COMPLETED = "completed"

class LeaderboardScopeEnum(str, Enum):
    GLOBAL = "global"
    BATCH = "batch"
    QUIZ = "quiz"

class LeaderboardPeriodEnum(str, Enum):
    ALL = "all"
    LAST_30_DAYS = "30d"
    LAST_7_DAYS = "7d"

# Trailing window length in days, None means all-time
PERIOD_DAYS = {
    LeaderboardPeriodEnum.ALL: None,
    LeaderboardPeriodEnum.LAST_30_DAYS: 30,
    LeaderboardPeriodEnum.LAST_7_DAYS: 7,
}

class BadgeCodeEnum(str, Enum):
    TOP_1PCT_MONTHLY = "top1pct_monthly"
    FIVE_PASSED = "five_passed"
    STREAK_7 = "streak_7"

DEFAULT_BADGES = [
    {
        "code": BadgeCodeEnum.TOP_1PCT_MONTHLY.value,
        "name": "Top 1% (Monthly)",
        "description": "Ranked in top 1% this month",
        "icon": "🏆",
    },
    {
        "code": BadgeCodeEnum.FIVE_PASSED.value,
        "name": "5 Quizzes Passed",
        "description": "Passed 5 quizzes overall",
        "icon": "✅",
    },
    {
        "code": BadgeCodeEnum.STREAK_7.value,
        "name": "7-Day Streak",
        "description": "Completed quizzes 7 days in a row",
        "icon": "🔥",
    },
]

# Composite score weights
SCORE_WEIGHT = 0.60
ACCURACY_WEIGHT = 0.30
ATTEMPTS_WEIGHT = 10.0
SCORE_PRECISION = 4
