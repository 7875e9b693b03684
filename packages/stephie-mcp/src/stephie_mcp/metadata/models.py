"""Pydantic models for the cached board metadata snapshot.

The serialised form (``model_dump(by_alias=True)``) is exactly what lives on
disk, so the in-memory and on-disk shapes cannot drift apart.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

SNAPSHOT_VERSION = "1.0.0"


class BoardDescriptor(BaseModel):
    """A Board Registry entry resolved to its real board."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field("", description="Display name of the registry item")
    item_id: str = Field(..., alias="itemId", description="Board Registry item ID")
    board_id: str = Field(..., alias="boardId", description="Real Monday.com board ID")


class CacheSnapshot(BaseModel):
    """The single cached value: board -> columns, board descriptors, sync time."""

    model_config = ConfigDict(populate_by_name=True)

    columns: dict[str, list[str]] = Field(
        default_factory=dict, description="Board ID -> column IDs"
    )
    boards: dict[str, BoardDescriptor] = Field(
        default_factory=dict, description="Board ID -> descriptor"
    )
    last_sync: datetime | None = Field(None, alias="lastSync")
    version: str = SNAPSHOT_VERSION

    @classmethod
    def empty(cls, last_sync: datetime | None = None) -> CacheSnapshot:
        return cls(last_sync=last_sync or datetime.now(timezone.utc))

    @property
    def board_count(self) -> int:
        return len(self.columns)

    @property
    def column_count(self) -> int:
        return sum(len(cols) for cols in self.columns.values())

    def last_sync_iso(self) -> str | None:
        return self.last_sync.isoformat() if self.last_sync else None

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)
