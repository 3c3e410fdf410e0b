"""Upstream stop feed client"""
import logging
from typing import Any, Dict, List, Optional

import httpx

from .core import STOPS_FEED_URL, STOPS_FEED_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


class FeedNotConfigured(Exception):
    pass


def map_feature(item: Dict[str, Any]) -> Dict[str, Any]:
    coordinates = (item.get('geometry') or {}).get('coordinates') or []
    properties = item.get('properties') or {}
    return {
        'id': item.get('id'),
        'type': item.get('type'),
        'longitude': coordinates[0] if len(coordinates) > 0 else None,
        'latitude': coordinates[1] if len(coordinates) > 1 else None,
        'zone': properties.get('zone'),
        'route_type': properties.get('route_type'),
        'headsigns': properties.get('headsigns'),
        'stop_name': properties.get('stop_name'),
    }


async def fetch_stops(params: Optional[Dict[str, str]] = None, url: str = None, timeout: float = None,
                      transport: Optional[httpx.AsyncBaseTransport] = None) -> List[Dict[str, Any]]:
    url = url or STOPS_FEED_URL
    if not url:
        raise FeedNotConfigured('STOPS_FEED_URL is not set')
    timeout = timeout if timeout is not None else STOPS_FEED_TIMEOUT_SECONDS
    async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
        response = await client.get(url, params=params)
        response.raise_for_status()
        data = response.json()
    features = (data.get('features') or []) if isinstance(data, dict) else []
    logger.info(f"Fetched {len(features)} stops from upstream feed")
    return [map_feature(item) for item in features]
