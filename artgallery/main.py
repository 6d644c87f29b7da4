from contextlib import asynccontextmanager
from typing import Optional
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from artgallery.config import Settings
from artgallery.routes import kv
from artgallery.storage.backend import KVBackend, create_backend

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, backend: Optional[KVBackend] = None) -> FastAPI:
    """
    Construit l'application : l'adaptateur de stockage est créé une seule fois ici
    et fermé à l'arrêt.
    """
    settings = settings or Settings.from_env()
    backend = backend or create_backend(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        app.state.kv_backend.close()

    app = FastAPI(
        title="Art Gallery API",
        description="Stockage clé-valeur de la galerie d'art",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.kv_backend = backend

    # Configuration CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.allow_credentials,
        allow_methods=["GET", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    app.include_router(kv.router, prefix="/api/kv", tags=["kv"])

    @app.get("/api/health")
    def health_check():
        return {"ok": True}

    @app.get("/api/user")
    def current_user():
        # Pas d'authentification réelle : le visiteur est toujours propriétaire
        return {"isOwner": True}

    return app
