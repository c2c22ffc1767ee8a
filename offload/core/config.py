"""Job configuration models.

The ``start-import`` command carries a job configuration payload. It is
parsed into these models, which accept both snake_case and camelCase keys so
the same payload works from Python callers and from message-based hosts.
"""
from __future__ import annotations

import json
import uuid
from enum import Enum
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .errors import ConfigurationError


class DestinationType(str, Enum):
    """Kinds of destination a file can be routed to.

    The set is closed: every destination is one of these variants and its
    routing priority is fixed by the variant.
    """
    LOCAL = "local"
    BACKUP = "backup"
    REMOTE = "remote"

    @property
    def priority(self) -> int:
        """Lower value is processed first."""
        return _PRIORITIES[self]

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def is_landing(self) -> bool:
        """Whether files are physically written by this destination."""
        return self in (DestinationType.LOCAL, DestinationType.BACKUP)


_PRIORITIES = {
    DestinationType.LOCAL: 1,
    DestinationType.BACKUP: 50,
    DestinationType.REMOTE: 200,
}

_DISPLAY_NAMES = {
    DestinationType.LOCAL: "Local Destination",
    DestinationType.BACKUP: "Backup",
    DestinationType.REMOTE: "Remote Upload",
}


class _ConfigModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class DestinationConfig(_ConfigModel):
    """One configured destination."""
    type: DestinationType = Field(..., description="Destination variant")
    path: Optional[Path] = Field(default=None, description="Target root (local/backup only)")
    enabled: bool = Field(default=True, description="Whether the destination takes part in the job")
    options: dict[str, Any] = Field(default_factory=dict, description="Service options (remote only)")

    @field_validator("path", mode="before")
    @classmethod
    def blank_path_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("path")
    @classmethod
    def expand_path(cls, value: Optional[Path]) -> Optional[Path]:
        return value.expanduser() if value is not None else None

    @property
    def services(self) -> list[str]:
        """Upload service names selected for a remote destination."""
        selected = self.options.get("services")
        if selected is None and "service" in self.options:
            selected = [self.options["service"]]
        return [str(name) for name in (selected or [])]


class FolderOrganizationConfig(_ConfigModel):
    """How to build a subfolder under each destination root."""
    enabled: bool = Field(default=False, description="Organize files into subfolders")
    mode: Literal["date", "custom"] = Field(default="date", description="Folder naming mode")
    date_format: str = Field(default="YYYY/MM/DD", description="Date folder template selector")
    custom_name: str = Field(default="", description="Folder name used in custom mode")

    @model_validator(mode="before")
    @classmethod
    def accept_type_key(cls, data: Any) -> Any:
        # Older payloads call the mode "type".
        if isinstance(data, dict) and "type" in data and "mode" not in data:
            data = {**data, "mode": data["type"]}
        return data


class ImportOptions(_ConfigModel):
    """Scan and copy options for a job."""
    include_subdirectories: bool = Field(default=True, description="Scan recursively")
    file_extensions: Optional[list[str]] = Field(
        default=None, description="Extension allow-list (None = all supported media)"
    )
    skip_duplicates: bool = Field(default=True, description="Skip same-size files already at the target")
    folder_organization: FolderOrganizationConfig = Field(default_factory=FolderOrganizationConfig)

    @field_validator("file_extensions")
    @classmethod
    def normalize_extensions(cls, value: Optional[list[str]]) -> Optional[list[str]]:
        if value is None:
            return None
        normalized = []
        for ext in value:
            ext = ext.strip().lower()
            if not ext:
                continue
            if not ext.startswith("."):
                ext = "." + ext
            if ext not in normalized:
                normalized.append(ext)
        return normalized


class ImportJobConfig(_ConfigModel):
    """Full configuration for one import job."""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex, description="Job identifier")
    source_path: Path = Field(..., description="Directory to import from")
    destinations: list[DestinationConfig] = Field(default_factory=list)
    options: ImportOptions = Field(default_factory=ImportOptions)

    @field_validator("source_path")
    @classmethod
    def expand_source(cls, value: Path) -> Path:
        return value.expanduser()

    @classmethod
    def parse(cls, data: Any) -> "ImportJobConfig":
        """Validate a raw payload, raising ConfigurationError on failure."""
        if isinstance(data, cls):
            return data
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid job configuration: {e}") from e

    @classmethod
    def from_file(cls, path: Path) -> "ImportJobConfig":
        """Load a job configuration from a JSON file."""
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot read job configuration {path}: {e}") from e
        return cls.parse(data)

    def destination(self, kind: DestinationType) -> Optional[DestinationConfig]:
        """First enabled destination of the given type, if any."""
        for dest in self.destinations:
            if dest.type == kind and dest.enabled:
                return dest
        return None

    def to_settings(self) -> dict[str, Any]:
        """Serializable camelCase view, as carried by upload-ready events."""
        return self.model_dump(mode="json", by_alias=True)
