from .settings import Settings, get_settings
from .database import StoreManager, get_store, get_store_manager, lifespan

__all__ = [
    "Settings",
    "get_settings",
    "StoreManager",
    "get_store",
    "get_store_manager",
    "lifespan"
]
