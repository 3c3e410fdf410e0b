from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional

class EventIn(BaseModel):
    stop_id: str = Field(min_length=1, max_length=128)
    type: str = Field(min_length=1, max_length=64)
    description: Optional[str] = Field(default=None, max_length=1024)

class EventOut(BaseModel):
    id: str
    stop_id: str
    type: str
    description: Optional[str]
    timestamp: datetime
    created_by: Optional[str] = None
    likes: int = 0
    dislikes: int = 0

class EventListOut(BaseModel):
    events: List[EventOut]

class ReactionOut(BaseModel):
    message: str
    likes: int
    dislikes: int
