from sqlalchemy import Column, Integer, String, Boolean, Float, JSON, TIMESTAMP, func
from sqlalchemy.orm import relationship
from peertutor.database import Base


# ---------------- USER ----------------
class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    full_name = Column(String(100), nullable=False)
    role = Column(String(20), nullable=False, default="student")  # student | tutor | admin
    is_active = Column(Boolean, default=True)
    photo_url = Column(String(500))
    bio = Column(String(1000), default="")

    # Tutor-only profile fields
    phone_number = Column(String(20), default="")
    subjects = Column(JSON, default=list)
    hourly_rate = Column(Float, default=0.0)
    is_verified = Column(Boolean, default=False)
    gpa = Column(Float)
    exam_results_url = Column(String(500))

    # Rating aggregate, maintained incrementally by the review service
    rating = Column(Float, default=0.0, nullable=False)
    total_reviews = Column(Integer, default=0, nullable=False)

    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, onupdate=func.now())

    student_sessions = relationship(
        "TutoringSession", foreign_keys="TutoringSession.student_id", back_populates="student"
    )
    tutor_sessions = relationship(
        "TutoringSession", foreign_keys="TutoringSession.tutor_id", back_populates="tutor"
    )

    @property
    def is_tutor(self) -> bool:
        return self.role == "tutor"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
