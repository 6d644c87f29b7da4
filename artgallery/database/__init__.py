import logging
from typing import Callable, Optional

from pymongo import MongoClient
from pymongo.database import Database

logger = logging.getLogger(__name__)


class MongoConnection:
    """
    Connexion MongoDB ouverte à la demande et réutilisée pendant toute la vie du process.
    La fermeture appartient à la racine de composition (arrêt de l'application).
    """

    def __init__(self, uri: str, db_name: str = "artgallery",
                 client_factory: Callable[..., MongoClient] = MongoClient):
        self.uri = uri
        self.db_name = db_name
        self._client_factory = client_factory
        self._client: Optional[MongoClient] = None
        self._db: Optional[Database] = None

    def get_database(self) -> Database:
        """Retourne l'instance de la base de données MongoDB"""
        if self._db is None:
            try:
                self._client = self._client_factory(self.uri, maxPoolSize=5)
                self._db = self._client[self.db_name]
            except Exception as e:
                logger.error(f"❌ MongoDB connection failed: {e}")
                self._client = None
                raise
            logger.info(f"✅ MongoDB connected (database: {self.db_name})")
        return self._db

    def get_collection(self, name: str):
        return self.get_database()[name]

    @property
    def is_open(self) -> bool:
        return self._client is not None

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            logger.info("MongoDB connection closed")
        self._client = None
        self._db = None
