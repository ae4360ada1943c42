"""
Exception hierarchy for the cross-dataset search engine.

    CurtainSearchError (base)
    ├── SearchValidationError (also a ValueError)
    │   ├── EmptyInputError
    │   └── NoDatasetsSelectedError
    ├── DatasetError
    │   ├── DatasetUnavailableError
    │   └── MalformedDatasetError
    └── SavedSearchError

Validation errors abort a run before any dataset is touched. Dataset errors
are recorded in the failing dataset's status and never reach the caller of a
search. Saved-search errors come from the persistence layer only.
"""
from typing import Optional


class CurtainSearchError(Exception):
    """Base exception for all search engine errors."""


class SearchValidationError(CurtainSearchError, ValueError):
    """The search request is unusable as submitted."""


class EmptyInputError(SearchValidationError):
    def __init__(self, message: str = "Please enter at least one search term"):
        super().__init__(message)


class NoDatasetsSelectedError(SearchValidationError):
    def __init__(self, message: str = "No datasets selected"):
        super().__init__(message)


class DatasetError(CurtainSearchError):
    """A failure local to one dataset."""

    def __init__(self, link_id: str, message: str):
        super().__init__(message)
        self.link_id = link_id


class DatasetUnavailableError(DatasetError):
    pass


class MalformedDatasetError(DatasetError):
    pass


class SavedSearchError(CurtainSearchError):
    """Saved-search persistence failed."""

    def __init__(self, message: str, search_id: Optional[str] = None):
        super().__init__(message)
        self.search_id = search_id
