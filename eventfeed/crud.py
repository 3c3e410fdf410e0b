import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from passlib.context import CryptContext
from prometheus_client import Counter
from sqlalchemy import select, func, case, delete, or_
from sqlalchemy.exc import IntegrityError

from .models import AsyncSessionLocal
from .models.users import User
from .models.session_tokens import SessionToken
from .models.events import Event
from .models.reactions import EventReaction
from .auth import create_access_token, hash_token, new_id, utcnow, SESSION_TOKEN_TTL

logger = logging.getLogger(__name__)

pwd_ctx = CryptContext(schemes=['bcrypt'], deprecated='auto')

EVENT_WINDOW = timedelta(days=3)

REACTION_TOGGLES = Counter('eventfeed_reaction_toggles_total', 'Reaction toggle outcomes', ['outcome'])

# users

async def create_user(username: str, email: str, password: str):
    """Create an account, or return None when the username or email is taken"""
    async with AsyncSessionLocal() as session:
        q = await session.execute(select(User.id).where(or_(User.username == username, User.email == email)))
        if q.first() is not None:
            return None
        user = User(id=new_id(), username=username, email=email, hashed_password=pwd_ctx.hash(password))
        session.add(user)
        try:
            await session.commit()
        except IntegrityError:
            # lost a race against a concurrent registration
            await session.rollback()
            return None
        await session.refresh(user)
        return user

async def get_user_by_login(username_or_email: str):
    async with AsyncSessionLocal() as session:
        q = await session.execute(select(User).where(
            or_(User.username == username_or_email, User.email == username_or_email)
        ))
        return q.scalars().first()

async def get_user_by_id(user_id: str):
    async with AsyncSessionLocal() as session:
        q = await session.execute(select(User).where(User.id == user_id))
        return q.scalars().first()

def verify_password(password: str, hashed_password: str) -> bool:
    return pwd_ctx.verify(password, hashed_password)

# session token ledger

async def issue_session_token(user_id: str, device_info: Optional[str] = None, now: Optional[datetime] = None):
    """Mint a signed session token for user_id and record it in the ledger.

    Returns the encoded token and its ledger row. A user may hold any number
    of live rows, one per logged in device.
    """
    issued_at = now or utcnow()
    token_id = new_id()
    token = create_access_token({'sub': user_id, 'jti': token_id}, SESSION_TOKEN_TTL, issued_at=issued_at)
    async with AsyncSessionLocal() as session:
        st = SessionToken(
            id=token_id,
            user_id=user_id,
            token_hash=hash_token(token),
            device_info=device_info[:255] if device_info else None,
            issued_at=issued_at,
            expires_at=issued_at + SESSION_TOKEN_TTL,
        )
        session.add(st)
        await session.commit()
        logger.info({'msg': 'session_issued', 'user_id': user_id, 'token_id': token_id})
        return token, st

async def get_session_token(token_id: str):
    """Ledger row for token_id, or None once revoked. Expiry is left to the caller."""
    async with AsyncSessionLocal() as session:
        q = await session.execute(select(SessionToken).where(SessionToken.id == token_id))
        return q.scalars().first()

async def revoke_session_token(token_id: str) -> bool:
    async with AsyncSessionLocal() as session:
        res = await session.execute(delete(SessionToken).where(SessionToken.id == token_id))
        await session.commit()
        revoked = res.rowcount > 0
        if revoked:
            logger.info({'msg': 'session_revoked', 'token_id': token_id})
        return revoked

# events

async def create_event(stop_id: str, type: str, description: Optional[str], created_by: Optional[str] = None):
    async with AsyncSessionLocal() as session:
        ev = Event(
            id=new_id(),
            stop_id=stop_id,
            type=type,
            description=description,
            timestamp=utcnow(),
            created_by=created_by,
        )
        session.add(ev)
        await session.commit()
        await session.refresh(ev)
        return ev

async def get_event(event_id: str):
    async with AsyncSessionLocal() as session:
        q = await session.execute(select(Event).where(Event.id == event_id))
        return q.scalars().first()

async def list_events(type: Optional[str] = None, since: Optional[datetime] = None, now: Optional[datetime] = None):
    """Events of the last three days, newest first. A later `since` narrows the window."""
    floor = (now or utcnow()) - EVENT_WINDOW
    if since is not None and since > floor:
        floor = since
    stmt = select(Event).where(Event.timestamp >= floor)
    if type:
        stmt = stmt.where(Event.type == type)
    stmt = stmt.order_by(Event.timestamp.desc())
    async with AsyncSessionLocal() as session:
        res = await session.execute(stmt)
        return res.scalars().all()

async def delete_event(event_id: str) -> bool:
    async with AsyncSessionLocal() as session:
        res = await session.execute(delete(Event).where(Event.id == event_id))
        await session.commit()
        return res.rowcount > 0

# reactions

@dataclass(frozen=True)
class ToggleResult:
    event_exists: bool
    was_updated: bool

async def toggle_reaction(event_id: str, user_id: str, reaction: int) -> ToggleResult:
    """Record `reaction` (1 like, -1 dislike) from user_id on event_id.

    First reaction inserts, the opposite reaction flips the existing row in
    place and a repeated reaction is a no-op. Lookup and write share one
    transaction; an insert beaten by a concurrent one falls back to the row
    that won, so the (event, user) pair never holds more than one row.
    """
    if reaction not in (1, -1):
        raise ValueError(f'reaction must be 1 or -1, got {reaction!r}')
    async with AsyncSessionLocal() as session:
        q = await session.execute(select(Event.id).where(Event.id == event_id))
        if q.first() is None:
            REACTION_TOGGLES.labels('event_missing').inc()
            return ToggleResult(event_exists=False, was_updated=False)

        existing = await _find_reaction(session, event_id, user_id)
        if existing is None:
            session.add(EventReaction(
                id=new_id(), event_id=event_id, user_id=user_id, reaction=reaction, updated_at=utcnow()
            ))
            try:
                await session.commit()
                REACTION_TOGGLES.labels('inserted').inc()
                return ToggleResult(event_exists=True, was_updated=False)
            except IntegrityError:
                await session.rollback()
                existing = await _find_reaction(session, event_id, user_id)
                if existing is None:
                    # not the pair constraint, e.g. the event was deleted meanwhile
                    raise

        if existing.reaction == reaction:
            REACTION_TOGGLES.labels('unchanged').inc()
            return ToggleResult(event_exists=True, was_updated=False)

        existing.reaction = reaction
        existing.updated_at = utcnow()
        await session.commit()
        REACTION_TOGGLES.labels('updated').inc()
        return ToggleResult(event_exists=True, was_updated=True)

async def _find_reaction(session, event_id: str, user_id: str):
    q = await session.execute(select(EventReaction).where(
        EventReaction.event_id == event_id, EventReaction.user_id == user_id
    ))
    return q.scalars().first()

def _reaction_sums():
    return (
        func.coalesce(func.sum(case((EventReaction.reaction == 1, 1), else_=0)), 0).label('likes'),
        func.coalesce(func.sum(case((EventReaction.reaction == -1, 1), else_=0)), 0).label('dislikes'),
    )

async def get_event_reactions(event_id: str) -> Dict[str, int]:
    async with AsyncSessionLocal() as session:
        res = await session.execute(select(*_reaction_sums()).where(EventReaction.event_id == event_id))
        row = res.one()
        return {'likes': int(row.likes), 'dislikes': int(row.dislikes)}

async def get_events_reactions(event_ids: List[str]) -> Dict[str, Dict[str, int]]:
    result = {event_id: {'likes': 0, 'dislikes': 0} for event_id in event_ids}
    if not event_ids:
        return result
    async with AsyncSessionLocal() as session:
        res = await session.execute(
            select(EventReaction.event_id, *_reaction_sums())
            .where(EventReaction.event_id.in_(event_ids))
            .group_by(EventReaction.event_id)
        )
        for row in res:
            result[row.event_id] = {'likes': int(row.likes), 'dislikes': int(row.dislikes)}
    return result
