from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from ..schemas.events import EventIn, EventOut, EventListOut, ReactionOut
from ..crud import (
    create_event,
    get_event,
    list_events,
    toggle_reaction,
    get_event_reactions,
    get_events_reactions,
)
from ..models.reactions import LIKE, DISLIKE
from ..sessions import get_current_user
from ..auth import as_utc

router = APIRouter()


def _event_out(event, reactions: dict) -> dict:
    return {
        'id': event.id,
        'stop_id': event.stop_id,
        'type': event.type,
        'description': event.description,
        'timestamp': as_utc(event.timestamp),
        'created_by': event.created_by,
        'likes': reactions['likes'],
        'dislikes': reactions['dislikes'],
    }


@router.get('/', response_model=EventListOut)
async def events(
    type: Optional[str] = Query(None, min_length=1, max_length=64),
    since: Optional[datetime] = None,
):
    found = await list_events(type=type, since=as_utc(since) if since else None)
    reactions = await get_events_reactions([e.id for e in found])
    return {'events': [_event_out(e, reactions[e.id]) for e in found]}


@router.get('/{event_id}', response_model=EventOut)
async def event_detail(event_id: str):
    event = await get_event(event_id)
    if not event:
        raise HTTPException(404, 'Event not found')
    return _event_out(event, await get_event_reactions(event_id))


@router.post('/', response_model=EventOut, status_code=201)
async def create(payload: EventIn, current_user: dict = Depends(get_current_user)):
    event = await create_event(payload.stop_id, payload.type, payload.description, created_by=current_user['id'])
    return _event_out(event, {'likes': 0, 'dislikes': 0})


async def _react(event_id: str, user_id: str, reaction: int) -> dict:
    result = await toggle_reaction(event_id, user_id, reaction)
    if not result.event_exists:
        raise HTTPException(404, 'Event not found')
    counts = await get_event_reactions(event_id)
    return {
        'message': 'Reaction updated' if result.was_updated else 'Reaction registered',
        'likes': counts['likes'],
        'dislikes': counts['dislikes'],
    }


@router.post('/{event_id}/like', response_model=ReactionOut)
async def like(event_id: str, current_user: dict = Depends(get_current_user)):
    return await _react(event_id, current_user['id'], LIKE)


@router.post('/{event_id}/dislike', response_model=ReactionOut)
async def dislike(event_id: str, current_user: dict = Depends(get_current_user)):
    return await _react(event_id, current_user['id'], DISLIKE)
