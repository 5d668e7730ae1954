import logging
from typing import Optional

from chatrelay.core.config import settings
from .base import SessionStore
from .memory import InMemorySessionStore
from .mongodb import MongoSessionStore, init_mongodb

logger = logging.getLogger(__name__)

# 프로세스 전역 Session Store
store: Optional[SessionStore] = None


async def init_databases() -> SessionStore:
    """Initialize the configured session store backend"""
    global store
    try:
        if settings.store_backend == "memory":
            store = InMemorySessionStore()
            logger.info("In-memory session store initialized")
        else:
            store = await init_mongodb()
            logger.info("MongoDB session store initialized")
        return store
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise


async def close_databases():
    """Close the session store"""
    global store
    try:
        if store is not None:
            await store.close()
        logger.info("All database connections closed")
    except Exception as e:
        logger.error(f"Error closing database connections: {e}")
    finally:
        store = None


async def check_database_health() -> dict:
    """Check health of the session store"""
    healthy = store is not None and await store.ping()
    return {
        "backend": settings.store_backend,
        "overall": healthy
    }


def get_store() -> SessionStore:
    if store is None:
        raise RuntimeError("Session store not initialized. Call init_databases() first.")
    return store


__all__ = [
    "SessionStore",
    "InMemorySessionStore",
    "MongoSessionStore",
    "init_databases",
    "close_databases",
    "check_database_health",
    "get_store"
]
