import logging

from artgallery.config import Settings
from artgallery.main import create_app

settings = Settings.from_env()

# Configuration du logging
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = create_app(settings)

if __name__ == "__main__":
    import uvicorn
    logger.info(f"[server] listening on http://localhost:{settings.port}")
    uvicorn.run("main:app", host="0.0.0.0", port=settings.port)
