from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chatrelay.api import auth_router, health_router, room_router, user_router, websocket_router
from chatrelay.core.config import settings
from chatrelay.core.logging import get_logger, setup_logging
from chatrelay.database import close_databases, init_databases
from chatrelay.middleware.error_handler import ErrorHandlerMiddleware, register_exception_handlers
from chatrelay.middleware.logging_middleware import LoggingMiddleware

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    setup_logging()
    await init_databases()
    logger.info(f"{settings.app_name} starting up...")
    yield
    # Shutdown
    logger.info(f"{settings.app_name} shutting down...")
    await close_databases()


app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    lifespan=lifespan
)

app.add_middleware(ErrorHandlerMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_exception_handlers(app)

# Include routers
app.include_router(health_router)
app.include_router(auth_router)
app.include_router(user_router)
app.include_router(room_router)
app.include_router(websocket_router)


@app.get("/")
async def root():
    return {
        "service": settings.app_name,
        "version": settings.version,
        "status": "running"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "chatrelay.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
