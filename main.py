# main.py
import uvicorn

from storefront_orders.config import get_settings

settings = get_settings()

if __name__ == "__main__":
    uvicorn.run(
        "storefront_orders.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload
    )
