"""Dataset and collection lookups over a dataset store."""

import logging
from typing import Iterable, List, Optional

from curtain.core.exceptions import CurtainSearchError, NoDatasetsSelectedError
from curtain.stores.base import DatasetStore
from curtain.shared import DatasetInfo

logger = logging.getLogger(__name__)


class DatasetRepository:
    """Lists datasets and resolves collections; no search logic lives here."""

    def __init__(self, store: DatasetStore):
        self.store = store

    def display_name(self, link_id: str) -> str:
        """Dataset description from its settings, falling back to the link id."""
        if not self.store.dataset_exists(link_id):
            return link_id
        try:
            return self.store.read_settings(link_id).display_name or link_id
        except CurtainSearchError as e:
            logger.warning(f"Could not read settings for {link_id}: {e}")
            return link_id

    def list_available_datasets(self) -> List[DatasetInfo]:
        return [
            DatasetInfo(link_id=link_id, display_name=self.display_name(link_id))
            for link_id in self.store.list_link_ids()
        ]

    def list_collections(self) -> List[str]:
        return sorted(self.store.get_collections().keys())

    def resolve_collection(self, name: str) -> List[str]:
        """
        Member dataset ids of a collection.

        Raises:
            KeyError: If no collection has that name
        """
        collections = self.store.get_collections()
        if name not in collections:
            raise KeyError(f"Unknown collection: {name}")
        return list(collections[name])

    def resolve_selection(self, link_ids: Optional[Iterable[str]] = None,
                          collections: Optional[Iterable[str]] = None) -> List[str]:
        """Explicit link ids followed by collection members, de-duplicated in order."""
        selected = list(link_ids or [])
        for name in collections or []:
            selected.extend(self.resolve_collection(name))

        selected = list(dict.fromkeys(s for s in selected if s))
        if not selected:
            raise NoDatasetsSelectedError()
        return selected
