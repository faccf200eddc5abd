from sqlalchemy import Boolean, Column, String, Integer, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base

class User(Base):
    """Read-only view of the identity service's users.

    Only the columns needed for display on a ranked row and for resolving
    batch (cohort) membership are mapped.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String, index=True)
    username = Column(String, unique=True, index=True, nullable=True)
    avatar = Column(String, nullable=True)
    college = Column(String, nullable=True)
    batch = Column(String, index=True, nullable=True)
    is_active = Column(Boolean(), default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    quiz_attempts = relationship("QuizAttempt", back_populates="user")
    badges = relationship("UserBadge", back_populates="user")
