"""
Repository des œuvres de la galerie.
Toutes les opérations portent sur la liste stockée sous la clé `gallery-artworks`,
via une liaison réactive (chargée une fois, écrite à chaque modification).
"""

from typing import Callable, List, Optional, Union
from datetime import datetime, timezone
import logging

from pydantic import ValidationError

from artgallery.models.artwork import Artwork, ArtworkCategory, ArtworkCreate, ArtworkView, SortOption
from artgallery.storage.binding import KVBinding
from artgallery.storage.client import KVStore
from artgallery.storage.keys import ARTWORKS_KEY
from artgallery.utils.string_utils import collation_key, contains_text, normalize_string

logger = logging.getLogger(__name__)

ALL_CATEGORIES = "all"
MISSING_YEAR = "0000"


class ArtworkValidationError(Exception):
    """Données d'œuvre invalides ou incomplètes."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def resolve_category(category: Union[str, ArtworkCategory]) -> ArtworkCategory:
    """Retrouve la catégorie (tolérant à la casse et aux accents)"""
    if isinstance(category, ArtworkCategory):
        return category
    wanted = normalize_string(category)
    for candidate in ArtworkCategory:
        if normalize_string(candidate.value) == wanted:
            return candidate
    raise ArtworkValidationError(f"Catégorie inconnue: {category}")


def _recency_key(artwork: Artwork):
    # identifiants horodatés : comparaison numérique quand c'est possible
    return (artwork.id.isdigit(), int(artwork.id) if artwork.id.isdigit() else 0, artwork.id)


def sort_artworks(artworks: List[Artwork], sort_by: Union[str, SortOption, None]) -> List[Artwork]:
    result = list(artworks)
    if sort_by is None:
        return result
    sort_by = SortOption(sort_by)
    if sort_by is SortOption.TITLE:
        result.sort(key=lambda a: collation_key(a.title))
    elif sort_by is SortOption.YEAR:
        # tri stable : titre croissant puis année décroissante
        result.sort(key=lambda a: collation_key(a.title))
        result.sort(key=lambda a: a.year or MISSING_YEAR, reverse=True)
    elif sort_by is SortOption.RECENT:
        result.sort(key=_recency_key, reverse=True)
    return result


class ArtworkRepository:
    """Repository des œuvres (création, listes, corbeille)"""

    def __init__(self, store: KVStore, clock: Callable[[], datetime] = _utcnow):
        self.binding: KVBinding[list] = KVBinding(store, ARTWORKS_KEY, [])
        self.clock = clock
        self._trash_hooks: List[Callable[[Artwork], None]] = []
        self._change_hooks: List[Callable[[List[dict]], None]] = []

    # --- Hooks ---

    def on_trash(self, callback: Callable[[Artwork], None]) -> None:
        """Appelé avec l'œuvre mise à la corbeille (ex: désélection dans l'interface)"""
        self._trash_hooks.append(callback)

    def on_change(self, callback: Callable[[List[dict]], None]) -> None:
        """Appelé après chaque modification persistée de la liste"""
        self._change_hooks.append(callback)

    # --- Accès bas niveau ---

    def _records(self) -> List[dict]:
        records = self.binding.activate()
        return records if isinstance(records, list) else []

    def _find_index(self, artwork_id: str) -> Optional[int]:
        for index, record in enumerate(self._records()):
            if isinstance(record, dict) and record.get("id") == artwork_id:
                return index
        return None

    def _commit(self, records: List[dict]) -> None:
        self.binding.set(records)
        for callback in list(self._change_hooks):
            try:
                callback(records)
            except Exception as e:
                logger.error(f"Artwork change hook failed: {e}")

    def _parse(self, record: dict) -> Optional[Artwork]:
        try:
            return Artwork.model_validate(record)
        except ValidationError as e:
            logger.warning(f"Skipping malformed artwork record {record.get('id') if isinstance(record, dict) else record!r}: {e.error_count()} error(s)")
            return None

    def reload(self) -> List[Artwork]:
        """Recharge la liste depuis le store (après une restauration)"""
        self.binding.reload()
        return self.all()

    # --- Lecture ---

    def all(self) -> List[Artwork]:
        """Toutes les œuvres lisibles, corbeille comprise, dans l'ordre d'ajout"""
        parsed = (self._parse(r) for r in self._records())
        return [a for a in parsed if a is not None]

    def get(self, artwork_id: str) -> Optional[Artwork]:
        index = self._find_index(artwork_id)
        if index is None:
            return None
        return self._parse(self._records()[index])

    def list_by_category(
        self,
        category: Union[str, ArtworkCategory, None] = ALL_CATEGORIES,
        view: Union[str, ArtworkView] = ArtworkView.ACTIVE,
        search: Optional[str] = None,
        sort_by: Union[str, SortOption, None] = None,
    ) -> List[Artwork]:
        """
        Liste filtrée d'une catégorie.

        Args:
            category: Catégorie, ou "all"/None pour toutes
            view: "active" exclut la corbeille, "trash" ne garde qu'elle
            search: Sous-chaîne cherchée dans titre, description, technique et année
            sort_by: "title", "year" ou "recent" (None: ordre d'ajout)
        """
        in_trash = ArtworkView(view) is ArtworkView.TRASH
        wanted = None if category in (None, ALL_CATEGORIES) else resolve_category(category)

        result = []
        for artwork in self.all():
            if artwork.is_deleted != in_trash:
                continue
            if wanted is not None and artwork.category is not wanted:
                continue
            if search and not contains_text(search, (artwork.title, artwork.description, artwork.medium, artwork.year)):
                continue
            result.append(artwork)

        return sort_artworks(result, sort_by)

    # --- Écriture ---

    def _new_id(self) -> str:
        existing = {r.get("id") for r in self._records() if isinstance(r, dict)}
        candidate = int(self.clock().timestamp() * 1000)
        while str(candidate) in existing:
            candidate += 1
        return str(candidate)

    def create(self, data: Union[ArtworkCreate, dict]) -> Artwork:
        """
        Ajoute une œuvre à la galerie.

        Raises:
            ArtworkValidationError: si titre, description, catégorie ou image manquent
        """
        if isinstance(data, dict):
            data = ArtworkCreate.model_validate(data)

        if not (data.title.strip() and data.description.strip() and data.category and data.image_url.strip()):
            raise ArtworkValidationError("Veuillez remplir tous les champs obligatoires")

        artwork = Artwork(
            id=self._new_id(),
            title=data.title,
            description=data.description,
            category=resolve_category(data.category),
            image_url=data.image_url,
            year=data.year or None,
            medium=data.medium or None,
            dimensions=data.dimensions or None,
        )
        self._commit(self._records() + [artwork.to_store()])
        logger.info(f"✅ Artwork created: {artwork.id} ({artwork.title})")
        return artwork

    def trash(self, artwork_id: str) -> Optional[Artwork]:
        """Met l'œuvre à la corbeille. Retourne None si elle n'existe pas."""
        index = self._find_index(artwork_id)
        if index is None:
            return None

        records = list(self._records())
        record = dict(records[index])
        record["isDeleted"] = True
        record["deletedAt"] = self.clock().isoformat()
        records[index] = record
        self._commit(records)
        logger.info(f"🗑️ Artwork moved to trash: {artwork_id}")

        artwork = self._parse(record)
        if artwork is not None:
            for callback in list(self._trash_hooks):
                try:
                    callback(artwork)
                except Exception as e:
                    logger.error(f"Artwork trash hook failed: {e}")
        return artwork

    def restore(self, artwork_id: str) -> Optional[Artwork]:
        """Sort l'œuvre de la corbeille. Retourne None si elle n'existe pas."""
        index = self._find_index(artwork_id)
        if index is None:
            return None

        records = list(self._records())
        record = dict(records[index])
        record["isDeleted"] = False
        record.pop("deletedAt", None)
        records[index] = record
        self._commit(records)
        logger.info(f"♻️ Artwork restored: {artwork_id}")
        return self._parse(record)

    def purge(self, artwork_id: str) -> bool:
        """
        Supprime définitivement une œuvre déjà mise à la corbeille.
        Retourne False si l'œuvre n'existe pas ou n'est pas dans la corbeille.
        """
        index = self._find_index(artwork_id)
        if index is None:
            return False

        records = list(self._records())
        if records[index].get("isDeleted") is not True:
            logger.warning(f"Refusing to purge artwork {artwork_id}: not in trash")
            return False

        del records[index]
        self._commit(records)
        logger.info(f"Artwork permanently deleted: {artwork_id}")
        return True
