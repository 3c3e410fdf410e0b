from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, UniqueConstraint
from . import Base

LIKE = 1
DISLIKE = -1

class EventReaction(Base):
    __tablename__ = 'event_reactions'
    id = Column(String(36), primary_key=True)
    event_id = Column(String(36), ForeignKey('events.id', ondelete='CASCADE'), index=True, nullable=False)
    user_id = Column(String(36), ForeignKey('users.id', ondelete='CASCADE'), index=True, nullable=False)
    reaction = Column(Integer, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint('event_id', 'user_id', name='uix_event_user_reaction'),
    )
