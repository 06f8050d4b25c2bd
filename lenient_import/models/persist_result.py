from __future__ import annotations

from dataclasses import dataclass

"""Outcome of one store.save() call (row-scoped)."""

__all__ = ["PersistResult"]


@dataclass(frozen=True)
class PersistResult:
    success: bool
    id: str | None = None
    error: str | None = None  # set when success is False
