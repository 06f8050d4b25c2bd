"""Domain models for the lenient purchase-order import engine."""

from .batch_result import BatchResult, BatchStatus, ChunkStatsAccumulator, RowErrorReport, derive_batch_status
from .config_models import AppConfig, DatabaseConfig, FilterSettings, ImportSettings, MappingSettings
from .error_record import ErrorRecord
from .filter_models import CanonicalFilter, FilterCondition, FilterPage, FilterTranslation
from .import_row import FieldError, ImportRow, RowStatus, Severity
from .persist_result import PersistResult

__all__ = [
    # Import rows and results
    "Severity",
    "RowStatus",
    "FieldError",
    "ImportRow",
    "PersistResult",
    "BatchStatus",
    "BatchResult",
    "RowErrorReport",
    "ChunkStatsAccumulator",
    "derive_batch_status",
    "ErrorRecord",
    # Filters
    "FilterCondition",
    "CanonicalFilter",
    "FilterTranslation",
    "FilterPage",
    # Configuration models
    "AppConfig",
    "DatabaseConfig",
    "ImportSettings",
    "MappingSettings",
    "FilterSettings",
]
