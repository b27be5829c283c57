"""
Configuration settings for fixture-builder.

Uses Pydantic Settings to load environment variables for the database
connection, the fixture directory layout, naming behaviour, and the dump
format. Values can also be supplied through a `.env` file or passed directly
as keyword arguments (handy in test suites).
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from fixture_builder.domain.models import DumpFormat


class Settings(BaseSettings):
    # Database
    database_url: Optional[str] = Field(None, alias="DATABASE_URL")
    db_driver: str = Field("postgresql+psycopg", alias="DB_DRIVER")
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("postgres", alias="DB_PASSWORD")
    db_name: str = Field("fixture_builder_test", alias="DB_NAME")
    connect_retries: int = Field(3, alias="DB_CONNECT_RETRIES")

    # Fixture layout
    fixtures_dir: Path = Field(Path("tests/fixtures"), alias="FIXTURES_DIR")
    fixture_extension: str = Field("yml", alias="FIXTURE_EXTENSION")
    tables: Optional[List[str]] = Field(None, alias="FIXTURE_TABLES")
    skip_tables: List[str] = Field(
        default_factory=lambda: ["alembic_version"], alias="FIXTURE_SKIP_TABLES"
    )
    legacy_fixtures: List[Path] = Field(default_factory=list, alias="FIXTURE_LEGACY_FILES")

    # Rebuild detection
    files_to_check: List[Path] = Field(default_factory=list, alias="FIXTURE_FILES_TO_CHECK")
    fingerprint_file: Path = Field(
        Path("tmp/fixture_builder.yml"), alias="FIXTURE_FINGERPRINT_FILE"
    )

    # Naming and SQL templates
    record_name_fields: List[str] = Field(
        default_factory=list, alias="FIXTURE_RECORD_NAME_FIELDS"
    )
    select_sql: str = Field("SELECT * FROM {table}", alias="FIXTURE_SELECT_SQL")
    delete_sql: str = Field("DELETE FROM {table}", alias="FIXTURE_DELETE_SQL")

    # Dump format
    datetime_format: str = Field("%Y-%m-%d %H:%M:%S", alias="FIXTURE_DATETIME_FORMAT")
    date_format: str = Field("%Y-%m-%d", alias="FIXTURE_DATE_FORMAT")
    time_format: str = Field("%H:%M:%S", alias="FIXTURE_TIME_FORMAT")

    # Application
    app_env: str = Field("test", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    json_logs: bool = Field(False, alias="LOG_JSON")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    def dump_format(self) -> DumpFormat:
        """Bundle the configured temporal formats for the fixture writer."""
        return DumpFormat(
            datetime_format=self.datetime_format,
            date_format=self.date_format,
            time_format=self.time_format,
        )

    def fixture_path(self, table_name: str) -> Path:
        return self.fixtures_dir / f"{table_name}.{self.fixture_extension}"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
