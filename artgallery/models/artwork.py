from pydantic import BaseModel, Field, model_validator
from typing import Optional
from enum import Enum


class ArtworkCategory(str, Enum):
    SCULPTURES = "sculptures"
    VERRES = "verres"
    PEINTURES = "peintures"


class ArtworkView(str, Enum):
    ACTIVE = "active"
    TRASH = "trash"


class SortOption(str, Enum):
    TITLE = "title"
    YEAR = "year"  # année décroissante, puis titre
    RECENT = "recent"  # ajout le plus récent d'abord


class ArtworkCreate(BaseModel):
    title: str = ""
    description: str = ""
    category: Optional[str] = None
    image_url: str = Field("", alias="imageUrl")
    year: Optional[str] = None
    medium: Optional[str] = None
    dimensions: Optional[str] = None

    class Config:
        populate_by_name = True


class Artwork(BaseModel):
    id: str
    title: str
    description: str
    category: ArtworkCategory
    image_url: str = Field(..., alias="imageUrl")  # data URI, URL externe ou /images/...
    year: Optional[str] = None
    medium: Optional[str] = None
    dimensions: Optional[str] = None
    is_deleted: bool = Field(False, alias="isDeleted")
    deleted_at: Optional[str] = Field(None, alias="deletedAt")  # ISO-8601

    class Config:
        populate_by_name = True

    @model_validator(mode="after")
    def _clear_stale_deletion_date(self):
        # drapeau et date vont ensemble
        if not self.is_deleted:
            self.deleted_at = None
        return self

    def to_store(self) -> dict:
        """Forme persistée (clés camelCase, champs vides omis)"""
        data = self.model_dump(by_alias=True, exclude_none=True, mode="json")
        if not self.is_deleted:
            data.pop("isDeleted", None)
        return data
