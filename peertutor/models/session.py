# peertutor/models/session.py
from sqlalchemy import Column, Integer, String, Float, ForeignKey, TIMESTAMP, func
from sqlalchemy.orm import relationship
from peertutor.database import Base

SESSION_STATUSES = ("pending", "confirmed", "rescheduled", "completed", "cancelled")
PAYMENT_STATUSES = ("pending", "paid", "refunded")


class TutoringSession(Base):
    __tablename__ = "sessions"

    id = Column(Integer, primary_key=True, index=True)
    tutor_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    subject = Column(String(100), nullable=False)
    date = Column(String(10), nullable=False, index=True)  # YYYY-MM-DD
    start_time = Column(String(5), nullable=False)  # HH:MM
    end_time = Column(String(5), nullable=False)
    hours = Column(Integer, nullable=False)
    hourly_rate = Column(Float, nullable=False)
    total_amount = Column(Float, nullable=False)
    status = Column(String(20), nullable=False, default="pending", index=True)
    payment_status = Column(String(20), nullable=False, default="pending")
    payment_id = Column(String(64))

    # Denormalized at booking time; not refreshed on later profile edits
    tutor_name = Column(String(100), default="")
    student_name = Column(String(100), default="")
    tutor_phone_number = Column(String(20), default="")

    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, onupdate=func.now())

    tutor = relationship("User", foreign_keys=[tutor_id], back_populates="tutor_sessions")
    student = relationship("User", foreign_keys=[student_id], back_populates="student_sessions")
    reviews = relationship("Review", back_populates="session")
