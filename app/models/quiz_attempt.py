from sqlalchemy import Column, Integer, DateTime, ForeignKey, Boolean, Enum, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base
from app.core.constants import AttemptStatusEnum

class QuizAttempt(Base):
    __tablename__ = "quiz_attempts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    quiz_id = Column(Integer, nullable=False, index=True)
    score = Column(Integer, nullable=False, default=0)
    total_questions = Column(Integer, nullable=False, default=0)
    passed = Column(Boolean, nullable=False, default=False)
    status = Column(Enum(AttemptStatusEnum), nullable=False, default=AttemptStatusEnum.IN_PROGRESS)
    release_time = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("ix_quiz_attempts_status_completed_at", "status", "completed_at"),
        Index("ix_quiz_attempts_user_status", "user_id", "status"),
    )

    user = relationship("User", back_populates="quiz_attempts")
