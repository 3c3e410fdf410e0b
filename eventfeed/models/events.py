from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Index
from . import Base

class Event(Base):
    __tablename__ = 'events'
    id = Column(String(36), primary_key=True)
    stop_id = Column(String(128), nullable=False)
    type = Column(String(64), nullable=False)
    description = Column(Text, nullable=True)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    created_by = Column(String(36), ForeignKey('users.id', ondelete='SET NULL'), nullable=True)

    __table_args__ = (
        Index('ix_events_type_timestamp', 'type', 'timestamp'),
    )
