"""
Directory-backed dataset store.

Layout under the data directory::

    <data_dir>/
        collections.json            # optional {"name": ["linkId", ...]}
        <link_id>/
            processed.csv           # or processed.tsv / processed.txt
            settings.json           # optional

Each dataset directory is one downloaded analysis session.
"""

import json
import logging
import os
from typing import Dict, List, Optional

import pandas as pd

from curtain.core.exceptions import DatasetUnavailableError, MalformedDatasetError
from curtain.stores.base import DatasetStore, settings_from_dict
from curtain.shared import DatasetSettings

logger = logging.getLogger(__name__)

PROCESSED_FILENAMES = ["processed.csv", "processed.tsv", "processed.txt"]
SETTINGS_FILENAME = "settings.json"
COLLECTIONS_FILENAME = "collections.json"


class DirectoryDatasetStore(DatasetStore):
    """Dataset store reading one sub-directory per dataset link id."""

    def __init__(self, data_dir: str, default_settings: Optional[DatasetSettings] = None):
        super().__init__(default_settings)
        self.data_dir = os.path.abspath(data_dir)

    def _first_existing_file(self, paths: List[str]) -> Optional[str]:
        for p in paths:
            if os.path.isfile(p):
                return p
        return None

    def _processed_file(self, link_id: str) -> Optional[str]:
        folder = os.path.join(self.data_dir, link_id)
        return self._first_existing_file([os.path.join(folder, name) for name in PROCESSED_FILENAMES])

    def dataset_exists(self, link_id: str) -> bool:
        if not link_id or os.sep in link_id or link_id.startswith("."):
            return False
        return self._processed_file(link_id) is not None

    def list_link_ids(self) -> List[str]:
        """Find every sub-directory holding a processed table."""
        if not os.path.isdir(self.data_dir):
            logger.warning(f"Data directory does not exist: {self.data_dir}")
            return []

        link_ids = []
        for item in sorted(os.listdir(self.data_dir)):
            if os.path.isdir(os.path.join(self.data_dir, item)) and self.dataset_exists(item):
                link_ids.append(item)

        logger.info(f"Found {len(link_ids)} datasets in {self.data_dir}")
        return link_ids

    def read_processed(self, link_id: str) -> pd.DataFrame:
        path = self._processed_file(link_id)
        if path is None:
            raise DatasetUnavailableError(link_id, "No data downloaded")

        sep = "," if path.endswith(".csv") else "\t"
        try:
            return pd.read_csv(path, sep=sep, dtype=str)
        except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
            raise MalformedDatasetError(link_id, f"Could not parse {os.path.basename(path)}: {e}")
        except OSError as e:
            raise DatasetUnavailableError(link_id, f"Could not read {os.path.basename(path)}: {e}")

    def read_settings(self, link_id: str) -> DatasetSettings:
        path = os.path.join(self.data_dir, link_id, SETTINGS_FILENAME)
        if not os.path.isfile(path):
            return self.default_settings

        try:
            with open(path, 'r') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise MalformedDatasetError(link_id, f"Invalid {SETTINGS_FILENAME}: {e}")

        if not isinstance(data, dict):
            raise MalformedDatasetError(link_id, f"{SETTINGS_FILENAME} must hold a JSON object")
        try:
            return settings_from_dict(data, self.default_settings)
        except ValueError as e:
            raise MalformedDatasetError(link_id, f"Invalid {SETTINGS_FILENAME}: {e}")

    def get_collections(self) -> Dict[str, List[str]]:
        path = os.path.join(self.data_dir, COLLECTIONS_FILENAME)
        if not os.path.isfile(path):
            return {}

        try:
            with open(path, 'r') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Error loading collections from {path}: {e}")
            return {}

        collections = {}
        for name, link_ids in data.items():
            if isinstance(link_ids, list):
                collections[str(name)] = [str(link_id) for link_id in link_ids]
            else:
                logger.warning(f"Skipping collection {name}: expected a list of link ids")
        return collections
