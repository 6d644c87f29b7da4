"""
Sauvegarde et restauration de la galerie.

Une sauvegarde contient la liste complète des œuvres (corbeille comprise)
et toutes les images stockées sous /images/. Les sauvegardes automatiques
sont conservées dans le store sous des clés horodatées (5 au maximum).
"""
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from pydantic import ValidationError

from artgallery.models.backup import AutomaticBackup, BackupSnapshot, BackupStats, BACKUP_FORMAT_VERSION
from artgallery.storage.client import KVStore
from artgallery.storage.keys import (
    ARTWORKS_KEY,
    backup_key,
    is_backup_key,
    is_image_key,
    normalize_key,
    parse_backup_key,
)

logger = logging.getLogger(__name__)

MAX_AUTOMATIC_BACKUPS = 5


class BackupError(Exception):
    """Sauvegarde illisible, introuvable ou impossible à écrire."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class BackupService:

    def __init__(self, store: KVStore, clock: Callable[[], datetime] = _utcnow,
                 max_automatic_backups: int = MAX_AUTOMATIC_BACKUPS):
        self.store = store
        self.clock = clock
        self.max_automatic_backups = max_automatic_backups

    # --- Export / import manuel ---

    def export(self) -> BackupSnapshot:
        """Assemble une sauvegarde complète à partir du store"""
        try:
            artworks = self.store.get(ARTWORKS_KEY) or []
            image_keys = [key for key in self.store.keys() if is_image_key(key)]
        except Exception as e:
            logger.error(f"Export error: {e}")
            raise BackupError("Failed to export gallery data") from e

        images = {}
        for key in image_keys:
            try:
                payload = self.store.get(key)
            except Exception as e:
                logger.warning(f"Failed to export image {key}: {e}")
                continue
            if payload:
                images[key] = payload

        return BackupSnapshot(
            artworks=artworks,
            images=images,
            export_date=_iso(self.clock()),
            version=BACKUP_FORMAT_VERSION,
        )

    def dumps(self, snapshot: BackupSnapshot) -> str:
        return json.dumps(snapshot.to_json_dict(), indent=2, ensure_ascii=False)

    def default_filename(self) -> str:
        return f"gallery-backup-{self.clock().date().isoformat()}.json"

    def download(self, snapshot: BackupSnapshot, target: Union[str, Path, None] = None) -> Path:
        """
        Écrit la sauvegarde sur disque.
        `target` peut être un dossier (nom de fichier par défaut) ou un chemin de fichier.
        """
        path = Path(target) if target else Path.cwd()
        if path.is_dir():
            path = path / self.default_filename()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(self.dumps(snapshot), encoding="utf-8")
        except OSError as e:
            raise BackupError(f"Failed to write backup file {path}: {e}") from e
        logger.info(f"💾 Backup written to {path}")
        return path

    def parse(self, text: str) -> BackupSnapshot:
        """Lit une sauvegarde sérialisée ; lève BackupError si le format est invalide"""
        try:
            data = json.loads(text)
        except ValueError as e:
            raise BackupError(f"Failed to parse backup data: {e}") from e

        if not isinstance(data, dict):
            raise BackupError("Invalid backup format: expected a JSON object")
        missing = [field for field in ("artworks", "images") if data.get(field) is None]
        if missing:
            raise BackupError(f"Invalid backup format: missing {' and '.join(missing)}")

        try:
            return BackupSnapshot.model_validate(data)
        except ValidationError as e:
            raise BackupError(f"Invalid backup format: {e.error_count()} invalid field(s)") from e

    def import_snapshot(self, snapshot: Union[BackupSnapshot, dict, str]) -> None:
        """
        Restaure une sauvegarde : remplace (sans fusion) l'état courant.
        Les images sont écrites d'abord, une par une ; la liste des œuvres en dernier.
        """
        if isinstance(snapshot, str):
            snapshot = self.parse(snapshot)
        elif isinstance(snapshot, dict):
            snapshot = self.parse(json.dumps(snapshot))

        for key, payload in snapshot.images.items():
            try:
                self.store.set(key, payload)
            except Exception as e:
                logger.warning(f"Failed to import image {key}: {e}")

        try:
            self.store.set(ARTWORKS_KEY, snapshot.artworks)
        except Exception as e:
            logger.error(f"Import error: {e}")
            raise BackupError("Failed to import gallery data") from e
        logger.info(f"✅ Backup imported: {len(snapshot.artworks)} artwork(s), {len(snapshot.images)} image(s)")

    # --- Statistiques ---

    def stats(self, snapshot: BackupSnapshot) -> BackupStats:
        deleted = sum(1 for a in snapshot.artworks if isinstance(a, dict) and a.get("isDeleted") is True)
        size_in_bytes = len(json.dumps(snapshot.to_json_dict(), separators=(",", ":")).encode("utf-8"))

        export_date = ""
        if snapshot.export_date:
            try:
                export_date = datetime.fromisoformat(snapshot.export_date.replace("Z", "+00:00")).strftime("%d/%m/%Y")
            except ValueError:
                export_date = snapshot.export_date

        return BackupStats(
            total_artworks=len(snapshot.artworks),
            active_artworks=len(snapshot.artworks) - deleted,
            deleted_artworks=deleted,
            total_images=len(snapshot.images),
            backup_size=f"{size_in_bytes / (1024 * 1024):.2f} MB",
            export_date=export_date,
        )

    def missing_images(self, snapshot: BackupSnapshot) -> List[str]:
        """Images du store référencées par une œuvre mais absentes de la sauvegarde"""
        missing = []
        for artwork in snapshot.artworks:
            ref = artwork.get("imageUrl") if isinstance(artwork, dict) else None
            if ref and ref.startswith("/") and is_image_key(ref) and ref not in snapshot.images:
                missing.append(ref)
        return missing

    # --- Sauvegardes automatiques ---

    def _automatic_backup_keys(self) -> List[str]:
        keys = [key for key in self.store.keys() if is_backup_key(key)]
        return sorted(keys, key=parse_backup_key)

    def create_automatic_backup(self) -> Optional[str]:
        """
        Crée une sauvegarde horodatée dans le store puis supprime les plus anciennes
        au-delà de la limite. Retourne la clé créée, ou None en cas d'échec.
        """
        try:
            snapshot = self.export()
            key = backup_key(self.clock(), taken=self._automatic_backup_keys())
            self.store.set(key, snapshot.to_json_dict())

            keys = self._automatic_backup_keys()
            for old_key in keys[:max(0, len(keys) - self.max_automatic_backups)]:
                self.store.delete(old_key)
        except Exception as e:
            logger.error(f"Failed to create automatic backup: {e}")
            return None

        logger.info(f"Automatic backup created: {key}")
        return key

    def list_automatic_backups(self) -> List[AutomaticBackup]:
        """Sauvegardes automatiques, la plus récente d'abord"""
        try:
            keys = self._automatic_backup_keys()
        except Exception as e:
            logger.error(f"Failed to get automatic backups: {e}")
            return []

        backups = []
        for key in reversed(keys):
            data = self.store.get(key)
            if not data:
                continue
            try:
                snapshot = BackupSnapshot.model_validate(data)
            except ValidationError:
                logger.warning(f"Skipping unreadable automatic backup {key}")
                continue
            backups.append(AutomaticBackup(key=key, date=parse_backup_key(key), stats=self.stats(snapshot)))
        return backups

    def restore_from_automatic_backup(self, key: str) -> None:
        data = self.store.get(normalize_key(key))
        if not data:
            raise BackupError("Backup not found")
        self.import_snapshot(data)

    def ensure_initial_backup(self) -> Optional[str]:
        """Crée une première sauvegarde automatique si aucune n'existe"""
        if self.list_automatic_backups():
            return None
        logger.info("Creating initial automatic backup...")
        return self.create_automatic_backup()

    # --- Publication statique ---

    def export_static_snapshot(self) -> Dict[str, object]:
        """Table plate {clé: valeur} pour le déploiement sans serveur (sans les sauvegardes automatiques)"""
        snapshot = {}
        for key in self.store.keys():
            if is_backup_key(key):
                continue
            snapshot[normalize_key(key)] = self.store.get(key)
        return snapshot
