"""Core utilities for Curtain search: validation, status tracking, sorting, export and persistence."""

from .exceptions import (
    CurtainSearchError,
    DatasetError,
    DatasetUnavailableError,
    EmptyInputError,
    MalformedDatasetError,
    NoDatasetsSelectedError,
    SavedSearchError,
    SearchValidationError,
)
from .status_tracker import DatasetStatusTracker, StatusBoard

__all__ = [
    "CurtainSearchError",
    "DatasetError",
    "DatasetStatusTracker",
    "DatasetUnavailableError",
    "EmptyInputError",
    "MalformedDatasetError",
    "NoDatasetsSelectedError",
    "SavedSearchError",
    "SearchValidationError",
    "StatusBoard",
]
