from sqlalchemy import Column, Integer, String, Text, Float, ForeignKey, JSON, TIMESTAMP, func
from sqlalchemy.orm import relationship
from peertutor.database import Base

# peertutor/models/subject.py
class Subject(Base):
    __tablename__ = "subjects"

    id = Column(String(50), primary_key=True)  # slug, e.g. "computer-science"
    name = Column(String(100), unique=True, nullable=False, index=True)
    description = Column(Text)
    created_at = Column(TIMESTAMP, server_default=func.now())


class TutorApplication(Base):
    __tablename__ = "tutor_applications"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    full_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False)
    phone_number = Column(String(20), default="")
    status = Column(String(20), nullable=False, default="pending", index=True)  # pending | approved | rejected
    subjects = Column(JSON, default=list)
    experience = Column(Text, default="")
    education = Column(Text, default="")
    gpa = Column(Float)
    hourly_rate = Column(Float, default=0.0)
    exam_results_url = Column(String(500))
    review_note = Column(Text)
    created_at = Column(TIMESTAMP, server_default=func.now())
    reviewed_at = Column(TIMESTAMP)

    user = relationship("User")
