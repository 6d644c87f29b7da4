from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import datetime

BACKUP_FORMAT_VERSION = "1.0"


class BackupSnapshot(BaseModel):
    """Export complet : liste des œuvres (corbeille comprise) + images référencées"""
    artworks: List[Dict[str, Any]]
    images: Dict[str, Any]
    export_date: Optional[str] = Field(None, alias="exportDate")
    version: str = BACKUP_FORMAT_VERSION

    class Config:
        populate_by_name = True

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True)


class BackupStats(BaseModel):
    total_artworks: int
    active_artworks: int
    deleted_artworks: int
    total_images: int
    backup_size: str  # ex: "1.25 MB", affichage uniquement
    export_date: str


class AutomaticBackup(BaseModel):
    key: str
    date: datetime
    stats: BackupStats
