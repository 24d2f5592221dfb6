# storefront/main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI
import uvicorn

from storefront.api.routers import carts, health, orders, products, users
from storefront.data.database import Database
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def create_app(database: Database | None = None) -> FastAPI:
    """
    Buduje aplikacje. Baza jest jawnie inicjalizowana przy starcie
    i zamykana przy stopie (lifespan), bez globalnego stanu polaczenia.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db = database or Database()
        app.state.database = db
        logger.info("Initializing database...")
        db.init()
        try:
            yield
        finally:
            db.dispose()

    app = FastAPI(
        title="Storefront Order Service",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Include routers
    app.include_router(health.router)
    app.include_router(users.router)
    app.include_router(products.router)
    app.include_router(carts.router)
    app.include_router(orders.router)

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
