import os
import logging
from prometheus_client import start_http_server

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv('DATABASE_URL') or 'sqlite+aiosqlite:///./eventfeed.sqlite'
if DATABASE_URL.startswith('postgresql://') and not DATABASE_URL.startswith('postgresql+asyncpg://'):
    DATABASE_URL = DATABASE_URL.replace('postgresql://', 'postgresql+asyncpg://', 1)

# Prefer JWT_SECRET but support legacy JWT_SECRET_KEY for compatibility
JWT_SECRET = os.getenv('JWT_SECRET') or os.getenv('JWT_SECRET_KEY', 'devsecret')
JWT_ALGORITHM = os.getenv('JWT_ALGORITHM', 'HS256')
SESSION_TOKEN_TTL_DAYS = int(os.getenv('SESSION_TOKEN_TTL_DAYS', '7'))

STOPS_FEED_URL = os.getenv('STOPS_FEED_URL', '')
STOPS_FEED_TIMEOUT_SECONDS = float(os.getenv('STOPS_FEED_TIMEOUT_SECONDS', '10'))
STOPS_CACHE_TTL_SECONDS = float(os.getenv('STOPS_CACHE_TTL_SECONDS', str(5 * 60)))
STOPS_CACHE_MAX_ENTRIES = int(os.getenv('STOPS_CACHE_MAX_ENTRIES', '0')) or None

METRICS_PORT = int(os.getenv('METRICS_PORT', '8001'))
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()


def init_metrics(port: int = METRICS_PORT):
    """Initialize Prometheus metrics server"""
    try:
        start_http_server(port)
        logger.info(f"Prometheus metrics server started on port {port}")
    except OSError as e:
        logger.warning(f'Prometheus start failed: {e}')


def check_settings():
    """Warn about settings the service can start without but will misbehave on"""
    if not os.getenv('JWT_SECRET') and not os.getenv('JWT_SECRET_KEY'):
        logger.warning('JWT_SECRET is not set, falling back to the development secret')
    if not STOPS_FEED_URL:
        logger.warning('STOPS_FEED_URL is not set, /api/stops will answer 503')
