from __future__ import annotations

"""Exception hierarchy for the lenient import engine.

Only structural problems are raised. Row and field problems are recorded on
the ImportRow instead (see models.import_row).
"""

__all__ = [
    "LenientImportError",
    "ParseError",
    "PersistenceError",
    "StoreUnavailableError",
    "FilterQueryError",
]


class LenientImportError(Exception):
    """Base exception for the package."""


class ParseError(LenientImportError):
    """Input cannot be turned into headers + rows, is empty, or has no usable mapping."""


class PersistenceError(LenientImportError):
    """Base class for persistence collaborator failures."""


class StoreUnavailableError(PersistenceError):
    """Collaborator-level fault (connection lost, pool exhausted).

    Not isolated to a single row: the orchestrator fails the whole chunk.
    """


class FilterQueryError(LenientImportError):
    """The dynamic filter query engine failed."""
