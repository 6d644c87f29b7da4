"""
Configuration de l'application, lue depuis les variables d'environnement (.env accepté).
"""
import os
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel

CLIENT_MODES = {"local", "http", "static"}


class Settings(BaseModel):
    port: int = 8787
    cors_origins: List[str] = ["*"]

    # Base documentaire (absente => fichier JSON local)
    mongodb_uri: Optional[str] = None
    mongodb_db: str = "artgallery"
    kv_data_file: str = "data/kv.json"

    # Client de stockage
    kv_client_mode: str = "local"
    api_base: str = "http://localhost:8787/api"
    static_snapshot: Optional[str] = None
    local_overlay_file: str = "data/local-storage.json"
    local_overlay_namespace: str = "art-gallery-kv"

    log_level: str = "INFO"

    @property
    def allow_credentials(self) -> bool:
        # Si on utilise "*" (wildcard), désactiver credentials
        return "*" not in self.cors_origins

    @classmethod
    def from_env(cls) -> "Settings":
        """Construit les settings à partir de l'environnement"""
        load_dotenv()

        origins_str = os.getenv("CORS_ORIGIN", "*")
        origins = [origin.strip() for origin in origins_str.split(",") if origin.strip()]

        mode = os.getenv("KV_CLIENT_MODE", "local").strip().lower()
        if mode not in CLIENT_MODES:
            raise ValueError(f"KV_CLIENT_MODE must be one of {sorted(CLIENT_MODES)}, got {mode!r}")

        return cls(
            port=int(os.getenv("PORT", "8787")),
            cors_origins=origins or ["*"],
            mongodb_uri=os.getenv("MONGODB_URI") or None,
            mongodb_db=os.getenv("MONGODB_DB", "artgallery"),
            kv_data_file=os.getenv("KV_DATA_FILE", "data/kv.json"),
            kv_client_mode=mode,
            api_base=os.getenv("API_BASE", "http://localhost:8787/api").rstrip("/"),
            static_snapshot=os.getenv("STATIC_SNAPSHOT") or None,
            local_overlay_file=os.getenv("LOCAL_OVERLAY_FILE", "data/local-storage.json"),
            local_overlay_namespace=os.getenv("LOCAL_OVERLAY_NAMESPACE", "art-gallery-kv"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
