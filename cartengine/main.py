# cartengine/main.py
import uvicorn

from cartengine.api import create_app
from cartengine.data.database import Base, engine
from cartengine.data import models  # noqa: F401  rejestracja tabel w Base.metadata
from cartengine.utils.logging import get_logger

logger = get_logger(__name__)

logger.info(f"Models registered in Base.metadata: {list(Base.metadata.tables.keys())}")

try:
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created")
except Exception as e:
    logger.error(f"Failed to create tables: {e}")
    raise

app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
