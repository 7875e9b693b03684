"""Environment-driven settings for the cache, sync trigger and MCP server."""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field

DEFAULT_TTL_SECONDS = 30 * 60


class RegistryLayout(BaseModel):
    """Where the two registries live on Monday.com and which fields to read."""

    columns_board_id: str = Field("2135717897", description="Column Registry board")
    meta_board_id: str = Field("1698570295", description="Board Registry board")
    board_id_column: str = Field(
        "board_id_mkn3k16t",
        description="Board Registry field holding the real board identifier",
    )
    column_id_column: str = Field(
        "text_mkvjc46e",
        description="Column Registry field holding the column identifier",
    )
    board_relation_column: str = Field(
        "board_relation_mkvjb1w9",
        description="Column Registry field linking to a Board Registry item",
    )
    page_limit: int = Field(500, description="Items fetched per registry")


class Settings(BaseModel):
    """Process configuration. Build it with :meth:`from_env`."""

    monday_api_token: str = Field("", description="Monday.com API token")
    ephemeral_fs: bool = Field(
        False, description="True on serverless hosts where only /tmp is writable"
    )
    cache_dir_override: str = Field("", description="Explicit cache directory")
    cache_ttl_seconds: float = Field(DEFAULT_TTL_SECONDS, description="Staleness TTL")
    cron_secret: str = Field("", description="Bearer secret for the scheduled trigger")
    admin_token: str = Field("", description="Bearer secret for the manual trigger")
    environment: str = Field("development", description="Deployment environment")
    registry: RegistryLayout = Field(default_factory=RegistryLayout)

    @property
    def cache_dir(self) -> Path:
        if self.cache_dir_override:
            return Path(self.cache_dir_override)
        return Path("/tmp/cache") if self.ephemeral_fs else Path("./cache")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @classmethod
    def from_env(cls) -> Settings:
        """Read settings from ``os.environ``; unset variables keep their defaults."""
        env = os.environ
        registry_overrides = {
            field: env[var]
            for field, var in (
                ("columns_board_id", "STEPHIE_COLUMNS_BOARD_ID"),
                ("meta_board_id", "STEPHIE_META_BOARD_ID"),
                ("board_id_column", "STEPHIE_BOARD_ID_COLUMN"),
                ("column_id_column", "STEPHIE_COLUMN_ID_COLUMN"),
                ("board_relation_column", "STEPHIE_BOARD_RELATION_COLUMN"),
            )
            if env.get(var)
        }
        return cls(
            monday_api_token=env.get("MONDAY_API_TOKEN") or env.get("MONDAY_API_KEY", ""),
            ephemeral_fs=bool(env.get("VERCEL")),
            cache_dir_override=env.get("STEPHIE_CACHE_DIR", ""),
            cache_ttl_seconds=float(
                env.get("STEPHIE_CACHE_TTL_SECONDS") or DEFAULT_TTL_SECONDS
            ),
            cron_secret=env.get("CRON_SECRET", ""),
            admin_token=env.get("ADMIN_TOKEN", ""),
            environment=env.get("STEPHIE_ENV", "development"),
            registry=RegistryLayout(**registry_overrides),
        )
