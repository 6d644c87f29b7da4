"""
Adaptateur de persistance côté serveur : une table clé -> valeur JSON,
stockée soit dans MongoDB (collection `kv`), soit dans un fichier JSON local.

Pas de verrou : en cas d'écritures concurrentes, la dernière gagne.
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, Union

from pymongo import UpdateOne
from pymongo.errors import BulkWriteError

from artgallery.config import Settings
from artgallery.database import MongoConnection

logger = logging.getLogger(__name__)

KV_COLLECTION = "kv"


class KVBackend:
    """Contrat commun : lecture et écriture de la table complète"""

    def read(self) -> Dict[str, Any]:
        raise NotImplementedError

    def write(self, mapping: Dict[str, Any]) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass


class JsonFileKVBackend(KVBackend):
    """Table stockée dans un unique fichier JSON, créé ({}) au premier accès"""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _ensure_file(self) -> None:
        if not self.path.parent.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self.path.write_text("{}", encoding="utf-8")

    def read(self) -> Dict[str, Any]:
        self._ensure_file()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except (OSError, ValueError) as e:
            logger.warning(f"Unreadable KV file {self.path}, using empty store: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"KV file {self.path} does not hold a JSON object, using empty store")
            return {}
        return data

    def write(self, mapping: Dict[str, Any]) -> None:
        self._ensure_file()
        self.path.write_text(json.dumps(mapping, indent=2, ensure_ascii=False), encoding="utf-8")


class MongoKVBackend(KVBackend):
    """
    Chaque entrée est un document {key, value} de la collection `kv`.
    L'écriture est un bulk non ordonné d'upserts par clé : l'échec d'une clé
    ne bloque pas les autres et n'est pas remonté à l'appelant.
    """

    def __init__(self, connection: MongoConnection):
        self.connection = connection

    @property
    def collection(self):
        return self.connection.get_collection(KV_COLLECTION)

    def read(self) -> Dict[str, Any]:
        return {doc["key"]: doc.get("value") for doc in self.collection.find({})}

    def write(self, mapping: Dict[str, Any]) -> None:
        collection = self.collection
        operations = [
            UpdateOne({"key": key}, {"$set": {"key": key, "value": value}}, upsert=True)
            for key, value in mapping.items()
        ]
        if operations:
            try:
                collection.bulk_write(operations, ordered=False)
            except BulkWriteError as e:
                errors = e.details.get("writeErrors", [])
                logger.warning(f"⚠️ KV bulk write finished with {len(errors)} failed key(s)")

        # Les clés absentes de la table écrite ont été supprimées
        collection.delete_many({"key": {"$nin": list(mapping.keys())}})

    def close(self) -> None:
        self.connection.close()


def create_backend(settings: Settings) -> KVBackend:
    """MongoDB si une URI est configurée, sinon le fichier JSON local"""
    if settings.mongodb_uri:
        logger.info("KV backend: MongoDB")
        return MongoKVBackend(MongoConnection(settings.mongodb_uri, settings.mongodb_db))
    logger.info(f"KV backend: JSON file {settings.kv_data_file}")
    return JsonFileKVBackend(settings.kv_data_file)
