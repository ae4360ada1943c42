"""
In-memory dataset store.

Holds processed tables as pandas DataFrames keyed by link id. Used by tests
and by callers that already have the data in memory.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Union

import pandas as pd

from curtain.core.exceptions import DatasetUnavailableError
from curtain.stores.base import DatasetStore, settings_from_dict
from curtain.shared import DatasetSettings

logger = logging.getLogger(__name__)

SettingsLike = Union[DatasetSettings, Mapping[str, Any], None]


class InMemoryDatasetStore(DatasetStore):
    """Dataset store backed by a dict of DataFrames."""

    def __init__(self,
                 datasets: Optional[Mapping[str, pd.DataFrame]] = None,
                 settings: Optional[Mapping[str, SettingsLike]] = None,
                 collections: Optional[Mapping[str, List[str]]] = None,
                 default_settings: Optional[DatasetSettings] = None):
        super().__init__(default_settings)
        self._frames: Dict[str, pd.DataFrame] = {}
        self._settings: Dict[str, DatasetSettings] = {}
        self._collections: Dict[str, List[str]] = {k: list(v) for k, v in (collections or {}).items()}

        for link_id, df in (datasets or {}).items():
            self.add_dataset(link_id, df, (settings or {}).get(link_id))

    def add_dataset(self, link_id: str, df: pd.DataFrame, settings: SettingsLike = None) -> None:
        """Add or replace one dataset."""
        if settings is None:
            resolved = self.default_settings.model_copy()
        elif isinstance(settings, DatasetSettings):
            resolved = settings
        else:
            resolved = settings_from_dict(dict(settings), self.default_settings)

        self._frames[link_id] = df
        self._settings[link_id] = resolved
        self.clear_cache(link_id)
        logger.debug(f"Registered in-memory dataset {link_id} ({len(df)} rows)")

    def remove_dataset(self, link_id: str) -> None:
        self._frames.pop(link_id, None)
        self._settings.pop(link_id, None)
        self.clear_cache(link_id)

    def add_collection(self, name: str, link_ids: List[str]) -> None:
        self._collections[name] = list(link_ids)

    def dataset_exists(self, link_id: str) -> bool:
        return link_id in self._frames

    def list_link_ids(self) -> List[str]:
        return list(self._frames.keys())

    def read_processed(self, link_id: str) -> pd.DataFrame:
        try:
            return self._frames[link_id]
        except KeyError:
            raise DatasetUnavailableError(link_id, "No data downloaded")

    def read_settings(self, link_id: str) -> DatasetSettings:
        return self._settings.get(link_id, self.default_settings)

    def get_collections(self) -> Dict[str, List[str]]:
        return {name: list(ids) for name, ids in self._collections.items()}
