from sqlalchemy import Column, String, DateTime, ForeignKey
from . import Base

class SessionToken(Base):
    __tablename__ = 'session_tokens'
    # same value as the jti claim of the issued JWT
    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), ForeignKey('users.id', ondelete='CASCADE'), index=True, nullable=False)
    token_hash = Column(String(128), unique=True, nullable=False)
    device_info = Column(String(255), nullable=True)
    issued_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
