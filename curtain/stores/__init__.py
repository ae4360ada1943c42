"""
Curtain Dataset Stores

Stores hold the processed rows and settings of downloaded datasets and answer
per-dataset term queries.

Supported kinds:
- directory (one folder per dataset link id)
- memory (pandas DataFrames held in process)
"""

from typing import Any

from .base import DatasetStore
from .repository import DatasetRepository


def get_dataset_store(kind: str = 'directory', **kwargs: Any) -> DatasetStore:
    """
    Get the dataset store for the given kind.

    Args:
        kind: Store kind ('directory' or 'memory')
        **kwargs: Store-specific constructor arguments

    Returns:
        Dataset store instance
    """
    if kind == 'directory':
        from .directory import DirectoryDatasetStore
        return DirectoryDatasetStore(**kwargs)
    elif kind == 'memory':
        from .memory import InMemoryDatasetStore
        return InMemoryDatasetStore(**kwargs)
    else:
        raise ValueError(f"Unsupported dataset store: {kind}")


__all__ = [
    'DatasetRepository',
    'DatasetStore',
    'get_dataset_store',
]
