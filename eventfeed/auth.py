from jose import jwt, JWTError
from datetime import datetime, timedelta, timezone
import hashlib
import uuid
from .core import JWT_SECRET, JWT_ALGORITHM, SESSION_TOKEN_TTL_DAYS

SECRET = JWT_SECRET
ALGORITHM = JWT_ALGORITHM
SESSION_TOKEN_TTL = timedelta(days=SESSION_TOKEN_TTL_DAYS)

def new_id() -> str:
    return str(uuid.uuid4())

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def as_utc(value: datetime) -> datetime:
    # sqlite hands back naive datetimes; everything we write is UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)

def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()

def create_access_token(data: dict, expires_delta: timedelta = None, issued_at: datetime = None):
    to_encode = data.copy()
    issued_at = issued_at or utcnow()
    expire = issued_at + (expires_delta if expires_delta is not None else SESSION_TOKEN_TTL)
    to_encode.update({'iat': issued_at, 'exp': expire})
    encoded = jwt.encode(to_encode, SECRET, algorithm=ALGORITHM)
    return encoded

def decode_token(token: str):
    try:
        payload = jwt.decode(token, SECRET, algorithms=[ALGORITHM], options={'require_exp': True})
        return payload
    except JWTError:
        return None
