"""
Base Dataset Store Interface

This module defines the abstract base class for all dataset stores. A store
owns the processed rows and settings of independently downloaded datasets and
hands them out as DatasetTable objects; the search engine never touches the
underlying storage directly.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Pattern

import pandas as pd

from curtain.core.exceptions import DatasetUnavailableError, MalformedDatasetError
from curtain.search.executor import search_dataset
from curtain.search.matching import build_mappings
from curtain.shared import (
    PROCESSED_COLUMNS,
    AdvancedFilterParams,
    DatasetSettings,
    DatasetTable,
    RawMatch,
    SearchType,
)

logger = logging.getLogger(__name__)

# Column spellings seen in exported differential analysis tables
COLUMN_ALIASES = {
    "primaryId": ["primaryId", "Primary ID", "primary_id", "Index", "Protein.Ids", "Protein IDs"],
    "geneNames": ["geneNames", "Gene Names", "Gene", "gene", "gene_name", "Genes", "SYMBOL"],
    "foldChange": ["foldChange", "logFC", "log2FC", "log2FoldChange", "Fold Change"],
    "significant": ["significant", "pValue", "P.Value", "adj.P.Val", "p-value", "pvalue"],
    "comparison": ["comparison", "Comparison", "contrast"],
    "accession": ["accession", "Accession"],
    "description": ["description", "Description", "Protein names", "Protein Names"],
}


def standardize_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Rename the first recognised spelling of each column to its canonical name."""
    renames = {}
    for canonical, candidates in COLUMN_ALIASES.items():
        if canonical in df.columns:
            continue
        for col in candidates:
            if col in df.columns and col not in renames:
                renames[col] = canonical
                break
    return df.rename(columns=renames) if renames else df


def settings_from_dict(data: Dict[str, Any], defaults: Optional[DatasetSettings] = None) -> DatasetSettings:
    """
    Build DatasetSettings from a stored settings mapping.

    Accepts both the snake_case field names and the camelCase keys used by
    Curtain session files (``pCutoff``, ``log2FCCutoff``, ``currentComparison``,
    ``volcanoConditionLabels``, ``description``).
    """
    base = (defaults or DatasetSettings()).model_dump()
    labels = data.get("volcanoConditionLabels") or {}

    mapped = {
        "display_name": data.get("display_name", data.get("description", data.get("dataDescription"))),
        "p_cutoff": data.get("p_cutoff", data.get("pCutoff")),
        "log2fc_cutoff": data.get("log2fc_cutoff", data.get("log2FCCutoff")),
        "current_comparison": data.get("current_comparison", data.get("currentComparison")),
        "condition_labels_enabled": data.get("condition_labels_enabled", labels.get("enabled")),
        "condition_left": data.get("condition_left", labels.get("leftCondition")),
        "condition_right": data.get("condition_right", labels.get("rightCondition")),
    }
    base.update({k: v for k, v in mapped.items() if v not in (None, "")})
    return DatasetSettings.model_validate(base)


class DatasetStore(ABC):
    """
    Abstract base class for dataset stores.

    Subclasses provide raw access (existence, processed rows, settings); this
    class adds validation, caching, mapping construction and term queries.
    """

    def __init__(self, default_settings: Optional[DatasetSettings] = None):
        """Initialize the dataset store."""
        self.name = self.__class__.__name__.replace('DatasetStore', '').lower()
        self.default_settings = default_settings or DatasetSettings()
        self._cache: Dict[str, DatasetTable] = {}
        self._lock = threading.Lock()

    @abstractmethod
    def dataset_exists(self, link_id: str) -> bool:
        """
        Check whether processed data for a dataset is available locally.

        Args:
            link_id: Dataset link id

        Returns:
            True if the dataset can be loaded
        """
        pass

    @abstractmethod
    def list_link_ids(self) -> List[str]:
        """
        List the link ids of every dataset held by the store.

        Returns:
            Link ids in a stable order
        """
        pass

    @abstractmethod
    def read_processed(self, link_id: str) -> pd.DataFrame:
        """
        Read the raw processed table of a dataset.

        Raises:
            DatasetUnavailableError: If the dataset cannot be read
        """
        pass

    @abstractmethod
    def read_settings(self, link_id: str) -> DatasetSettings:
        """Read the analysis settings of a dataset."""
        pass

    def get_collections(self) -> Dict[str, List[str]]:
        """Named collections of datasets. Stores without collections return an empty mapping."""
        return {}

    def load_dataset(self, link_id: str) -> DatasetTable:
        """
        Load and validate one dataset.

        Raises:
            DatasetUnavailableError: If the dataset has not been downloaded
            MalformedDatasetError: If required columns are missing
        """
        with self._lock:
            cached = self._cache.get(link_id)
        if cached is not None:
            return cached

        if not self.dataset_exists(link_id):
            raise DatasetUnavailableError(link_id, "No data downloaded")

        settings = self.read_settings(link_id)
        processed = self.validate_processed(link_id, self.read_processed(link_id), settings)
        table = DatasetTable(link_id=link_id, settings=settings, processed=processed)
        logger.info(f"Loaded dataset {link_id} with {len(processed)} processed rows")

        with self._lock:
            self._cache[link_id] = table
        return table

    def validate_processed(self, link_id: str, df: pd.DataFrame, settings: DatasetSettings) -> pd.DataFrame:
        """Standardise column names and fill optional columns; primaryId is mandatory."""
        df = standardize_columns(df)
        if "primaryId" not in df.columns:
            raise MalformedDatasetError(
                link_id, f"Missing required column 'primaryId'. Available columns: {df.columns.tolist()}")

        df = df.copy()
        for col in PROCESSED_COLUMNS:
            if col not in df.columns:
                if col == "comparison":
                    df[col] = settings.current_comparison or "1"
                else:
                    df[col] = None
        df = df[df["primaryId"].notna()]
        df["primaryId"] = df["primaryId"].astype(str)
        df["comparison"] = df["comparison"].fillna(settings.current_comparison or "1").astype(str)
        return df.reset_index(drop=True)

    def needs_mappings(self, table: DatasetTable) -> bool:
        return table.mappings is None

    def build_mappings(self, table: DatasetTable) -> None:
        """Materialise the lookup tables used for exact term matching."""
        table.mappings = build_mappings(table.processed)

    def query(self, link_id: str, search_term: str, search_type: SearchType,
              use_regex: bool = False, filters: Optional[AdvancedFilterParams] = None,
              significant_only: bool = False,
              pattern: Optional[Pattern] = None) -> List[RawMatch]:
        """
        Matches of one term in one dataset.

        Args:
            pattern: *search_term* already compiled by the caller (regex mode)

        Returns:
            One RawMatch per matching processed row; empty when nothing matches
        """
        table = self.load_dataset(link_id)
        if self.needs_mappings(table):
            self.build_mappings(table)
        return search_dataset(
            table,
            [search_term],
            search_type,
            use_regex=use_regex,
            significant_only=significant_only,
            advanced_filtering=filters,
            patterns={search_term: pattern} if pattern is not None else None,
        )

    def clear_cache(self, link_id: Optional[str] = None) -> None:
        with self._lock:
            if link_id is None:
                self._cache.clear()
            else:
                self._cache.pop(link_id, None)
