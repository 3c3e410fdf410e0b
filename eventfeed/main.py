from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from .routes import router
from .cache import ResponseCache
from .core import init_metrics, check_settings, LOG_LEVEL, STOPS_CACHE_TTL_SECONDS, STOPS_CACHE_MAX_ENTRIES
from .models import init_models, engine
import logging
from pythonjsonlogger import jsonlogger

# setup structured logging
logger = logging.getLogger('eventfeed')
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = jsonlogger.JsonFormatter('%(asctime)s %(levelname)s %(name)s %(message)s')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
logger.setLevel(LOG_LEVEL)


def create_app() -> FastAPI:
    app = FastAPI(title="EventFeed API", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=['*'],
        allow_credentials=True,
        allow_methods=['*'],
        allow_headers=['*'],
    )

    app.state.feed_cache = ResponseCache(STOPS_CACHE_TTL_SECONDS, max_entries=STOPS_CACHE_MAX_ENTRIES)

    app.include_router(router, prefix="/api")

    @app.get('/healthz')
    async def healthz():
        return {'status': 'ok'}

    @app.middleware('http')
    async def log_requests(request: Request, call_next):
        logger.info({'msg': 'request_start', 'method': request.method, 'path': request.url.path})
        response = await call_next(request)
        logger.info({'msg': 'request_end', 'status': response.status_code})
        return response

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.exception({'msg': 'unhandled_error', 'path': request.url.path, 'error': str(exc)})
        return JSONResponse(status_code=500, content={'detail': 'Internal Server Error'})

    @app.on_event("startup")
    async def startup():
        check_settings()
        await init_models()
        # Best-effort init, don't block app from starting if metrics fail
        try:
            init_metrics()
        except Exception as e:
            logger.warning({'msg': 'metrics_init_failed', 'error': str(e)})

    @app.on_event("shutdown")
    async def shutdown():
        await engine.dispose()

    return app


app = create_app()
