"""
Images stockées dans le store clé-valeur (data URI base64 sous /images/...).
"""
import base64
import logging
import re
from datetime import datetime, timezone
from typing import Optional

from artgallery.storage.client import KVStore
from artgallery.storage.keys import image_key, is_image_key

logger = logging.getLogger(__name__)


class ImageValidationError(Exception):
    """Fichier envoyé qui n'est pas une image."""


def _safe_name(filename: str) -> str:
    name = re.sub(r"[^A-Za-z0-9._-]+", "-", filename.strip()).strip("-.")
    return name or "image"


def to_data_uri(content: bytes, content_type: str) -> str:
    return f"data:{content_type};base64,{base64.b64encode(content).decode('ascii')}"


def store_uploaded_image(store: KVStore, filename: str, content: bytes, content_type: str,
                         moment: Optional[datetime] = None) -> str:
    """
    Enregistre une image envoyée par l'administrateur.
    Retourne la clé à placer dans le champ image de l'œuvre.
    """
    if not content_type or not content_type.startswith("image/"):
        raise ImageValidationError("Veuillez sélectionner un fichier image valide")

    moment = moment or datetime.now(timezone.utc)
    key = image_key(f"{int(moment.timestamp() * 1000)}-{_safe_name(filename)}")
    store.set(key, to_data_uri(content, content_type))
    logger.info(f"✅ Image stored: {key} ({len(content)} bytes)")
    return key


def resolve_image_source(store: KVStore, image_ref: str) -> Optional[str]:
    """
    Retourne la source affichable d'une image, ou None si elle est indisponible.
    - data URI : utilisée telle quelle
    - /images/... : lue dans le store
    - autre URL : utilisée telle quelle
    """
    if not image_ref:
        return None
    if image_ref.startswith("data:"):
        return image_ref
    if image_ref.startswith("/") and is_image_key(image_ref):
        try:
            return store.get(image_ref) or None
        except Exception as e:
            logger.error(f"Error loading image {image_ref}: {e}")
            return None
    return image_ref
