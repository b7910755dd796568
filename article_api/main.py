import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from article_api.cache import CacheStore, connect_cache_store
from article_api.config import settings
from article_api.database import engine
from article_api.dependencies import get_cache_store
from article_api.exceptions import ApiError
from article_api.routers import articles, auth

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: a missing or unreachable Redis yields a no-op store.
    app.state.cache_store = await connect_cache_store(settings.REDIS_URL)
    logger.info("Startup complete (env=%s, cache enabled=%s)", settings.APP_ENV, app.state.cache_store.enabled)
    try:
        yield
    finally:
        # Shutdown
        await app.state.cache_store.close()
        await engine.dispose()

app = FastAPI(
    title="Articles API",
    description="User accounts and ownership-scoped articles with a Redis read-through cache",
    version="1.0.0",
    lifespan=lifespan,
)

# Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

# Routers
app.include_router(auth.router)
app.include_router(articles.router)

@app.get("/health")
async def health(store: CacheStore = Depends(get_cache_store)):
    return {"status": "healthy", "version": "1.0.0", "cache": store.stats}
