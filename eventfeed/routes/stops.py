import logging

import httpx
from fastapi import APIRouter, Depends, HTTPException, Request
from ..cache import ResponseCache, get_feed_cache, request_cache_key
from ..feed import fetch_stops, FeedNotConfigured

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get('/')
async def stops(request: Request, cache: ResponseCache = Depends(get_feed_cache)):
    params = dict(request.query_params)
    try:
        return await cache.wrap(request_cache_key(request), lambda: fetch_stops(params or None))
    except FeedNotConfigured:
        raise HTTPException(503, 'Stop feed is not configured')
    except httpx.HTTPError as e:
        logger.warning({'msg': 'stops_upstream_failed', 'error': str(e)})
        raise HTTPException(502, 'Stop feed unavailable')
