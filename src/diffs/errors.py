from __future__ import annotations


class DiffsError(Exception):
    """Base class for errors surfaced to the operator."""


class SpecError(DiffsError, ValueError):
    """A database location string could not be resolved."""


class DatabaseError(DiffsError):
    """The storage engine rejected an operation."""
