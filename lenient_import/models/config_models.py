from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the lenient import engine.

Built by config.loader.load_config() from config/import.yml; defaults match
the engine's built-in behaviour so default_config() needs no file.
"""

DEFAULT_BATCH_SIZE = 50
DEFAULT_FILTER_PROCEDURE = "filter_ppic_dynamic"
DEFAULT_SORT_BY = "createdAt"


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class ImportSettings:
    """Defaults for ImportOptions when the caller does not override them."""
    batch_size: int = DEFAULT_BATCH_SIZE
    skip_on_error: bool = False
    update_if_exists: bool = False
    auto_detect_mapping: bool = True
    fuzzy_mapping: bool = False  # SimilarityMatcher fallback for headers with no exact alias
    null_sentinels: frozenset[str] = frozenset()  # upper-cased cell strings read as empty


@dataclass(frozen=True)
class MappingSettings:
    extra_aliases: dict[str, list[str]] = field(default_factory=dict)  # canonical field -> extra header synonyms


@dataclass(frozen=True)
class FilterSettings:
    procedure: str = DEFAULT_FILTER_PROCEDURE
    default_sort_by: str = DEFAULT_SORT_BY


@dataclass(frozen=True)
class AppConfig:
    """Root configuration object."""
    imports: ImportSettings = field(default_factory=ImportSettings)
    mapping: MappingSettings = field(default_factory=MappingSettings)
    filters: FilterSettings = field(default_factory=FilterSettings)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    error_log_dir: str | None = "logs"  # None disables the JSON Lines error log
