from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, Enum, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from app.core.database import Base
from app.core.constants import LeaderboardScopeEnum, LeaderboardPeriodEnum

class LeaderboardEntry(Base):
    __tablename__ = "leaderboard_entries"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    # Canonical string form of the scope key, NULL-free so it can back the unique constraint
    scope_id = Column(String, nullable=False)
    scope = Column(Enum(LeaderboardScopeEnum), nullable=False)
    scope_ref = Column(String, nullable=True)
    quiz_id = Column(Integer, nullable=True)
    period = Column(Enum(LeaderboardPeriodEnum), nullable=False)
    avg_score = Column(Float, nullable=False, default=0.0)
    accuracy = Column(Float, nullable=False, default=0.0)
    attempts = Column(Integer, nullable=False, default=0)
    composite_score = Column(Float, nullable=False, default=0.0)
    updated_at = Column(DateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "scope_id", name="unique_user_leaderboard_scope"),
        Index("ix_leaderboard_entries_scope_rank", "scope_id", "composite_score"),
    )

    user = relationship("User")
