"""
Database configuration and connection management.
Handles the storage backend lifecycle for the application.
"""
import logging
from typing import Optional
from motor.motor_asyncio import AsyncIOMotorClient
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException

from .settings import get_settings
from ..repositories import MemoryOrderStore, MongoOrderStore, OrderStore

logger = logging.getLogger(__name__)


class StoreManager:
    """Manages the order store and its database connection."""

    def __init__(self):
        self.store: Optional[OrderStore] = None

    async def connect(self) -> None:
        """Open the configured storage backend."""
        settings = get_settings()

        if settings.storage_backend == "memory":
            self.store = MemoryOrderStore()
            logger.info("🧪 Using in-memory order store")
            return

        try:
            logger.info("🚀 Connecting to MongoDB...")

            # Create MongoDB client with robust connection settings
            client = AsyncIOMotorClient(
                settings.mongodb_url,
                serverSelectionTimeoutMS=settings.mongodb_server_selection_timeout_ms,
                connectTimeoutMS=settings.mongodb_connect_timeout_ms,
                socketTimeoutMS=settings.mongodb_socket_timeout_ms,
                maxPoolSize=settings.mongodb_max_pool_size,
                minPoolSize=settings.mongodb_min_pool_size,
                retryWrites=settings.mongodb_retry_writes,
                directConnection=settings.mongodb_direct_connection,
                tz_aware=True,
            )

            store = MongoOrderStore(client, client[settings.database_name])

            # Test connection with timeout
            await store.ping()
            self.store = store
            logger.info("✅ Connected to MongoDB successfully")

        except Exception as db_error:
            logger.warning(f"⚠️  MongoDB connection failed: {db_error}")
            # The app still starts; requests needing the store answer 503

    async def disconnect(self) -> None:
        """Close the storage backend."""
        try:
            if self.store is not None:
                await self.store.close()
                logger.info("🔌 Order store closed")
        except Exception as e:
            logger.error(f"Error during database disconnect: {e}")
        finally:
            self.store = None

    async def create_indexes(self) -> None:
        if self.store is None:
            logger.warning("Database not connected, skipping index creation")
            return
        await self.store.create_indexes()

    def get_store(self) -> OrderStore:
        """Get the order store."""
        if self.store is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self.store

    def is_connected(self) -> bool:
        return self.store is not None


# Global store manager instance
store_manager = StoreManager()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI lifespan context manager for the order store."""
    # Startup
    try:
        logger.info("🚀 Starting up application...")
        await store_manager.connect()
        await store_manager.create_indexes()

        # Store manager in app state for dependency injection
        app.state.store_manager = store_manager

    except Exception as e:
        logger.error(f"❌ Failed to initialize application: {e}")
        # Don't raise the exception - let the app start anyway

    yield

    # Shutdown
    await store_manager.disconnect()


async def get_store() -> OrderStore:
    """FastAPI dependency to get the order store."""
    if not store_manager.is_connected():
        raise HTTPException(
            status_code=503,
            detail="Database connection not available. Please check your MongoDB connection."
        )
    return store_manager.get_store()


def get_store_manager() -> StoreManager:
    """Get store manager instance."""
    return store_manager
