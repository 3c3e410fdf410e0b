"""
Session authentication
Resolves a bearer credential to a user identity against the token ledger
"""
import logging
from datetime import datetime
from typing import Optional

from fastapi import Header, HTTPException
from prometheus_client import Counter

from . import crud
from .auth import decode_token, hash_token, utcnow, as_utc

logger = logging.getLogger(__name__)

AUTH_FAILURES = Counter('eventfeed_auth_failures_total', 'Rejected bearer credentials', ['reason'])


class AuthError(Exception):
    reason = 'auth_error'
    detail = 'Not authenticated'


class MissingCredential(AuthError):
    reason = 'missing_credential'
    detail = 'Missing or invalid Authorization header'


class InvalidSignatureOrExpired(AuthError):
    reason = 'invalid_or_expired'
    detail = 'Invalid or expired token'


class NotRecognized(AuthError):
    reason = 'not_recognized'
    detail = 'Token not recognized or revoked'


def parse_bearer(authorization: Optional[str]) -> str:
    if not authorization:
        raise MissingCredential()
    scheme, _, credential = authorization.partition(' ')
    credential = credential.strip()
    if scheme != 'Bearer' or not credential:
        raise MissingCredential()
    return credential


async def authenticate(authorization: Optional[str], now: Optional[datetime] = None) -> dict:
    """Return {'id': user_id, 'token_id': jti} for a live session credential.

    The signature and embedded expiry are checked before the ledger is
    consulted, so forged or stale tokens never cost a store round-trip.
    """
    token = parse_bearer(authorization)

    payload = decode_token(token)
    if not payload or not payload.get('sub') or not payload.get('jti'):
        raise InvalidSignatureOrExpired()

    record = await crud.get_session_token(payload['jti'])
    if record is None or record.token_hash != hash_token(token):
        raise NotRecognized()

    # a row that outlived its expiry is still dead
    if as_utc(record.expires_at) <= (now or utcnow()):
        raise InvalidSignatureOrExpired()

    return {'id': record.user_id, 'token_id': record.id}


async def get_current_user(authorization: Optional[str] = Header(None)) -> dict:
    try:
        return await authenticate(authorization)
    except AuthError as e:
        AUTH_FAILURES.labels(e.reason).inc()
        logger.info({'msg': 'auth_rejected', 'reason': e.reason})
        raise HTTPException(status_code=401, detail=e.detail, headers={'WWW-Authenticate': 'Bearer'})
