# peertutor/models/availability.py
from sqlalchemy import Column, Integer, String, ForeignKey, JSON, TIMESTAMP, func
from sqlalchemy.orm import relationship
from peertutor.database import Base


def availability_key(tutor_id: int, date: str) -> str:
    return f"{tutor_id}_{date}"


class AvailabilityDay(Base):
    """One row per (tutor, date) holding that day's 1-hour slots.

    ``slots`` is a JSON list of ``{start_time, end_time, is_booked, session_id}``.
    ``version`` is bumped on every write; SQLAlchemy issues each UPDATE as
    ``... WHERE version = <version read>`` so concurrent slot rewrites fail
    with ``StaleDataError`` instead of silently overwriting each other.
    """
    __tablename__ = "availability"

    id = Column(String(64), primary_key=True)  # "{tutor_id}_{date}"
    tutor_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(String(10), nullable=False, index=True)  # YYYY-MM-DD
    slots = Column(JSON, nullable=False, default=list)
    version = Column(Integer, nullable=False)
    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, onupdate=func.now())

    __mapper_args__ = {"version_id_col": version}

    tutor = relationship("User")
