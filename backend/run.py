import uvicorn

from app.core.config import API_HOST, API_PORT, LOG_LEVEL
from app.core.logging import configure_logging

if __name__ == "__main__":
    configure_logging(LOG_LEVEL)
    uvicorn.run(
        "app.main:app",
        host=API_HOST,
        port=API_PORT,
        reload=True
    )
