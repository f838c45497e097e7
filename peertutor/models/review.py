# peertutor/models/review.py
from sqlalchemy import Column, Integer, Float, Text, ForeignKey, TIMESTAMP, func, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import relationship
from peertutor.database import Base

class Review(Base):
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(Integer, ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    tutor_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    rating = Column(Float, nullable=False)
    comment = Column(Text)
    created_at = Column(TIMESTAMP, server_default=func.now())

    # Constraints
    __table_args__ = (
        CheckConstraint('rating >= 0 AND rating <= 5', name='check_rating_range'),
        UniqueConstraint('session_id', 'student_id', name='uq_review_session_student'),
    )

    # Relationships
    session = relationship("TutoringSession", back_populates="reviews")
    student = relationship("User", foreign_keys=[student_id])
    tutor = relationship("User", foreign_keys=[tutor_id])
