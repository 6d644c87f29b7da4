"""
Client de stockage clé-valeur utilisé par le reste de l'application.

Trois implémentations d'un même contrat (get / set / delete / keys) :
- HttpKVStore : proxy vers l'API /api/kv du serveur
- StaticKVStore : instantané JSON immuable + surcouche locale persistante
- BackendKVStore : accès direct à l'adaptateur serveur (scripts, tests)
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from urllib.parse import quote

import requests

from artgallery.config import Settings
from artgallery.storage.backend import JsonFileKVBackend, KVBackend, create_backend
from artgallery.storage.keys import ARTWORKS_KEY, image_key, is_image_key, normalize_key

logger = logging.getLogger(__name__)


class KVStoreError(Exception):
    """Erreur d'écriture ou de transport du store clé-valeur."""


class KVStore:
    """Interface commune des clients de stockage"""

    def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def set(self, key: str, value: Any) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def keys(self) -> List[str]:
        raise NotImplementedError

    def close(self) -> None:
        pass


class BackendKVStore(KVStore):
    """Store adossé directement à l'adaptateur (lecture/écriture de la table complète)"""

    def __init__(self, backend: KVBackend):
        self.backend = backend

    def get(self, key: str) -> Optional[Any]:
        return self.backend.read().get(normalize_key(key))

    def set(self, key: str, value: Any) -> None:
        mapping = self.backend.read()
        mapping[normalize_key(key)] = value
        self.backend.write(mapping)

    def delete(self, key: str) -> None:
        key = normalize_key(key)
        mapping = self.backend.read()
        if key in mapping:
            del mapping[key]
            self.backend.write(mapping)

    def keys(self) -> List[str]:
        return list(self.backend.read().keys())

    def close(self) -> None:
        self.backend.close()


class HttpKVStore(KVStore):
    """
    Proxy vers le service HTTP.
    `get` renvoie None pour toute réponse non-2xx (404 compris) ou erreur réseau ;
    les écritures remontent une KVStoreError.
    """

    def __init__(self, base_url: str, session=None):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _kv_url(self, key: str) -> str:
        return self._url("/kv" + quote(normalize_key(key), safe="/"))

    def _request(self, method: str, url: str, **kwargs):
        try:
            response = getattr(self.session, method)(url, **kwargs)
        except requests.RequestException as exc:
            logger.error(f"KV request failed: {method.upper()} {url}: {exc}")
            raise KVStoreError(str(exc)) from exc
        if not 200 <= response.status_code < 300:
            raise KVStoreError(f"HTTP {response.status_code}: {response.text}")
        return response.json()

    def get(self, key: str) -> Optional[Any]:
        try:
            data = self._request("get", self._kv_url(key))
        except (KVStoreError, ValueError):
            return None
        return data.get("value")

    def set(self, key: str, value: Any) -> None:
        self._request("put", self._kv_url(key), json={"value": value})

    def delete(self, key: str) -> None:
        self._request("delete", self._kv_url(key))

    def keys(self) -> List[str]:
        return self._request("get", self._url("/kv/keys"))

    def user(self) -> Dict[str, Any]:
        return self._request("get", self._url("/user"))

    def close(self) -> None:
        self.session.close()


class LocalOverlay:
    """
    Persistance locale des modifications (équivalent du localStorage navigateur).
    Les entrées sont préfixées par un namespace pour cohabiter avec d'autres données
    dans le même fichier ; une suppression laisse une pierre tombale.
    """

    def __init__(self, path: Union[str, Path], namespace: str = "art-gallery-kv"):
        self.storage = JsonFileKVBackend(path)
        self.namespace = namespace

    def _value_entry(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    def _tombstone_entry(self, key: str) -> str:
        return f"{self.namespace}:deleted:{key}"

    def lookup(self, key: str):
        """Retourne (trouvé, supprimé, valeur)"""
        data = self.storage.read()
        if self._value_entry(key) in data:
            return True, False, data[self._value_entry(key)]
        return False, self._tombstone_entry(key) in data, None

    def put(self, key: str, value: Any) -> None:
        data = self.storage.read()
        data.pop(self._tombstone_entry(key), None)
        data[self._value_entry(key)] = value
        self.storage.write(data)

    def remove(self, key: str) -> None:
        data = self.storage.read()
        data.pop(self._value_entry(key), None)
        data[self._tombstone_entry(key)] = True
        self.storage.write(data)

    def entries(self):
        """Retourne (clés présentes, clés supprimées) de ce namespace"""
        tombstone_prefix = f"{self.namespace}:deleted:"
        value_prefix = f"{self.namespace}:"
        present, deleted = [], set()
        for entry in self.storage.read():
            if entry.startswith(tombstone_prefix):
                deleted.add(entry[len(tombstone_prefix):])
            elif entry.startswith(value_prefix):
                present.append(entry[len(value_prefix):])
        return present, deleted


def normalize_snapshot(data: Any) -> Dict[str, Any]:
    """
    Ramène un instantané statique à la forme plate {"/clé": valeur}.
    Formes acceptées : plate (clés déjà préfixées) ou imbriquée {artworks, images}.
    """
    if not isinstance(data, dict):
        logger.warning("Static snapshot is not a JSON object, ignoring it")
        return {}

    if "artworks" in data or "images" in data:
        flat = {ARTWORKS_KEY: data.get("artworks") or []}
        for key, payload in (data.get("images") or {}).items():
            key = normalize_key(key)
            flat[key if is_image_key(key) else image_key(key)] = payload
        return flat

    return {normalize_key(key): value for key, value in data.items()}


class StaticKVStore(KVStore):
    """
    Variante sans serveur : lectures sur l'instantané publié avec le site,
    écritures uniquement dans la surcouche locale.
    """

    def __init__(self, snapshot_source: Optional[str], overlay: LocalOverlay, session=None):
        self.snapshot_source = snapshot_source
        self.overlay = overlay
        self.session = session or requests.Session()
        self._snapshot: Optional[Dict[str, Any]] = None

    def _load_snapshot(self) -> Any:
        source = self.snapshot_source
        if source.startswith(("http://", "https://")):
            response = self.session.get(source)
            response.raise_for_status()
            return response.json()
        return json.loads(Path(source).read_text(encoding="utf-8"))

    @property
    def snapshot(self) -> Dict[str, Any]:
        if self._snapshot is None:
            if not self.snapshot_source:
                self._snapshot = {}
            else:
                try:
                    self._snapshot = normalize_snapshot(self._load_snapshot())
                    logger.info(f"Static snapshot loaded: {len(self._snapshot)} key(s)")
                except (OSError, ValueError, requests.RequestException) as e:
                    logger.warning(f"Static snapshot unavailable ({self.snapshot_source}): {e}")
                    self._snapshot = {}
        return self._snapshot

    def get(self, key: str) -> Optional[Any]:
        key = normalize_key(key)
        found, deleted, value = self.overlay.lookup(key)
        if found:
            return value
        if deleted:
            return None
        return self.snapshot.get(key)

    def set(self, key: str, value: Any) -> None:
        self.overlay.put(normalize_key(key), value)

    def delete(self, key: str) -> None:
        self.overlay.remove(normalize_key(key))

    def keys(self) -> List[str]:
        present, deleted = self.overlay.entries()
        result = [key for key in self.snapshot if key not in deleted]
        seen = set(result)
        for key in present:
            if key not in seen:
                result.append(key)
                seen.add(key)
        return result

    def close(self) -> None:
        self.session.close()


def create_kv_store(settings: Settings, session=None) -> KVStore:
    """Choisit l'implémentation du store selon KV_CLIENT_MODE"""
    mode = settings.kv_client_mode
    if mode == "http":
        return HttpKVStore(settings.api_base, session=session)
    if mode == "static":
        overlay = LocalOverlay(settings.local_overlay_file, settings.local_overlay_namespace)
        return StaticKVStore(settings.static_snapshot, overlay, session=session)
    if mode == "local":
        return BackendKVStore(create_backend(settings))
    raise ValueError(f"Unknown KV client mode: {mode}")
