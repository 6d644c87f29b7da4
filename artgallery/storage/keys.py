"""
Schéma des clés du store clé-valeur.

Toutes les conventions de préfixe (images, sauvegardes automatiques) sont
définies ici : aucun autre module ne construit ni ne découpe une clé à la main.
"""
from datetime import datetime, timezone
from typing import Iterable, Optional

SEPARATOR = "/"

ARTWORKS_KEY = "/gallery-artworks"
IMAGES_PREFIX = "/images/"
BACKUP_PREFIX = "/backup_"


def normalize_key(key: str) -> str:
    """Garantit que la clé commence par le séparateur '/'"""
    if not key:
        raise ValueError("Empty key")
    return key if key.startswith(SEPARATOR) else SEPARATOR + key


def image_key(name: str) -> str:
    """
    Construit la clé d'une image stockée.
    Accepte 'photo.png', 'images/photo.png' ou '/images/photo.png'.
    """
    key = normalize_key(name)
    if key.startswith(IMAGES_PREFIX):
        return key
    return IMAGES_PREFIX + key.lstrip(SEPARATOR)


def is_image_key(key: str) -> bool:
    return normalize_key(key).startswith(IMAGES_PREFIX)


def image_name(key: str) -> str:
    key = normalize_key(key)
    if not key.startswith(IMAGES_PREFIX):
        raise ValueError(f"Not an image key: {key}")
    return key[len(IMAGES_PREFIX):]


def backup_key(moment: Optional[datetime] = None, taken: Iterable[str] = ()) -> str:
    """
    Clé d'une sauvegarde automatique, horodatée en millisecondes epoch.
    Si la clé est déjà prise (même milliseconde), la milliseconde suivante est utilisée.
    """
    moment = moment or datetime.now(timezone.utc)
    taken = {normalize_key(key) for key in taken}
    millis = int(moment.timestamp() * 1000)
    while f"{BACKUP_PREFIX}{millis}" in taken:
        millis += 1
    return f"{BACKUP_PREFIX}{millis}"


def is_backup_key(key: str) -> bool:
    key = normalize_key(key)
    if not key.startswith(BACKUP_PREFIX):
        return False
    return key[len(BACKUP_PREFIX):].isdigit()


def parse_backup_key(key: str) -> datetime:
    """Retourne la date (UTC) encodée dans une clé de sauvegarde automatique"""
    if not is_backup_key(key):
        raise ValueError(f"Not a backup key: {key}")
    millis = int(normalize_key(key)[len(BACKUP_PREFIX):])
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
