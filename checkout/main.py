# checkout/main.py
from fastapi import FastAPI
import uvicorn

from checkout.api import register_routers
from checkout.data.database import Base, engine
from checkout.utils.logging import get_logger

# import every model before create_all so they are all in Base.metadata
from checkout.data import models  # noqa: F401

logger = get_logger(__name__)


def init_db(bind=engine) -> None:
    logger.info(f"Initializing database, tables: {list(Base.metadata.tables.keys())}")
    try:
        Base.metadata.create_all(bind=bind)
    except Exception as e:
        logger.error(f"Failed to create tables: {e}")
        raise
    logger.info("Database tables created")


def create_app(create_tables: bool = True) -> FastAPI:
    if create_tables:
        init_db()

    app = FastAPI(
        title="Checkout Service",
        version="1.0.0",
    )
    register_routers(app)
    return app


if __name__ == "__main__":
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
