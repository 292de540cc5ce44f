"""Pydantic models used across gallery-ledger configuration."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_ITEM_IDS = ["panda1", "panda2", "panda3", "panda4", "panda5"]


class ProbeConfig(BaseModel):
    """Settings for the remote image reachability check."""

    timeout: float = 8.0
    user_agent: str = "image-checker"
    max_workers: int = 8

    @model_validator(mode="after")
    def _validate_limits(self) -> "ProbeConfig":
        if self.timeout <= 0:
            raise ValueError("probe timeout must be > 0")
        if self.max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        return self


class CatalogConfig(BaseModel):
    """Markers recognised inside the presentation markup."""

    gallery_class: str = "gallery"
    block_class: str = "image-container"
    id_attribute: str = "data-id"

    @field_validator("gallery_class", "block_class", "id_attribute")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("catalog markers cannot be empty")
        return value


class GlobalConfig(BaseModel):
    """Global controls shared by the ledger service and maintenance commands."""

    ledger_path: Path = Field(default=Path("data/views.json"))
    users_path: Path = Field(default=Path("data/users.json"))
    catalog_path: Path = Field(default=Path("public/index.html"))
    default_ids: list[str] = Field(default_factory=lambda: list(DEFAULT_ITEM_IDS))
    probe: ProbeConfig = Field(default_factory=ProbeConfig)
    catalog: CatalogConfig = Field(default_factory=CatalogConfig)

    @field_validator("ledger_path", "users_path", "catalog_path", mode="before")
    @classmethod
    def _coerce_paths(cls, value: Any) -> Path:
        return Path(value)

    @field_validator("default_ids", mode="before")
    @classmethod
    def _coerce_ids(cls, value: Any) -> list[str]:
        if value in (None, ""):
            return []
        if isinstance(value, str):
            value = value.split(",")
        if not isinstance(value, (list, tuple)):
            raise ValueError("default_ids expects a list of item ids")
        return [str(item).strip() for item in value if str(item).strip()]

    def resolve(self, path: Path, base_dir: Path) -> Path:
        """Return ``path`` anchored at ``base_dir`` when it is relative."""

        if not path.is_absolute():
            return (base_dir / path).resolve()
        return path


__all__ = ["CatalogConfig", "DEFAULT_ITEM_IDS", "GlobalConfig", "ProbeConfig"]
