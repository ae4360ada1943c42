# curtain/shared/__init__.py

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# --- Enums ---

class SearchType(str, Enum):
    PRIMARY_ID = "PRIMARY_ID"
    GENE_NAME = "GENE_NAME"
    ACCESSION_ID = "ACCESSION_ID"
    DESCRIPTION = "DESCRIPTION"

    @property
    def display_name(self) -> str:
        return {
            "PRIMARY_ID": "Primary ID",
            "GENE_NAME": "Gene Name",
            "ACCESSION_ID": "Accession ID",
            "DESCRIPTION": "Description",
        }[self.value]


class ProcessingState(str, Enum):
    PENDING = "pending"
    LOADING = "loading"
    BUILDING = "building"
    SEARCHING = "searching"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessingState.COMPLETED, ProcessingState.FAILED, ProcessingState.CANCELLED)


class ProteinSortOption(str, Enum):
    NAME_ASC = "nameAsc"
    NAME_DESC = "nameDesc"
    MATCH_COUNT_DESC = "matchCountDesc"
    AVG_FC_ASC = "avgFCAsc"
    AVG_FC_DESC = "avgFCDesc"

    @property
    def display_name(self) -> str:
        return {
            "nameAsc": "Name (A-Z)",
            "nameDesc": "Name (Z-A)",
            "matchCountDesc": "Most Datasets",
            "avgFCAsc": "Avg FC (Low)",
            "avgFCDesc": "Avg FC (High)",
        }[self.value]


# --- Search configuration (serialised into saved searches, camelCase on the wire) ---

class AdvancedFilterParams(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    min_p: Optional[float] = Field(None, description="Lower bound on the p-value")
    max_p: Optional[float] = Field(None, description="Upper bound on the p-value")
    min_fc_left: Optional[float] = Field(None, description="Minimum |FC| for down-regulated rows")
    max_fc_left: Optional[float] = Field(None, description="Maximum |FC| for down-regulated rows")
    min_fc_right: Optional[float] = Field(None, description="Minimum FC for up-regulated rows")
    max_fc_right: Optional[float] = Field(None, description="Maximum FC for up-regulated rows")
    search_left: bool = Field(True, description="Apply the left (negative FC) range")
    search_right: bool = Field(True, description="Apply the right (positive FC) range")


class CrossDatasetSearchConfig(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    search_terms: Tuple[str, ...] = Field(..., description="Normalised search terms, in input order")
    search_type: SearchType = Field(SearchType.GENE_NAME, description="Field the terms are matched against")
    dataset_link_ids: Tuple[str, ...] = Field(..., description="Selected datasets, in selection order")
    significant_only: bool = Field(False, description="Keep only significant rows")
    use_regex: bool = Field(False, description="Treat each term as a regular expression")
    advanced_filtering: Optional[AdvancedFilterParams] = None

    @field_validator("dataset_link_ids")
    @classmethod
    def _unique_link_ids(cls, value: Tuple[str, ...]) -> Tuple[str, ...]:
        return tuple(dict.fromkeys(value))


# --- Status ---

class DatasetProcessingStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Dataset link id")
    dataset_name: str
    state: ProcessingState = ProcessingState.PENDING
    error: Optional[str] = None


# --- Raw matches (internal) ---

@dataclass(frozen=True)
class RawMatch:
    """One matching processed row of one dataset for one search term."""
    search_term: str
    primary_id: str
    gene_name: Optional[str]
    fold_change: Optional[float]
    p_value: Optional[float]
    is_significant: bool
    comparison: str
    dataset_link_id: str
    found: bool = True


# --- Results ---

class ProteinSearchSummary(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    search_term: str
    primary_id: Optional[str] = None
    gene_name: Optional[str] = None
    datasets_found_in: int = 0
    total_datasets_searched: int = 0
    average_fold_change: Optional[float] = None
    has_significant_result: bool = False

    @property
    def id(self) -> str:
        return f"{self.search_term}_{self.primary_id or 'unknown'}"

    @property
    def display_name(self) -> str:
        return self.gene_name or self.search_term

    def __eq__(self, other):
        if not isinstance(other, ProteinSearchSummary):
            return NotImplemented
        return (self.search_term, self.primary_id) == (other.search_term, other.primary_id)

    def __hash__(self):
        return hash((self.search_term, self.primary_id))


class CrossDatasetSearchResult(BaseModel):
    config: CrossDatasetSearchConfig
    protein_summaries: List[ProteinSearchSummary] = Field(default_factory=list)
    search_timestamp: datetime = Field(default_factory=datetime.now)
    dataset_statuses: Dict[str, DatasetProcessingStatus] = Field(
        default_factory=dict, description="Terminal status of every dataset in the run")


class DatasetComparisonInfo(BaseModel):
    link_id: str
    dataset_description: str
    comparison: str


class DatasetComparisonResult(BaseModel):
    dataset_info: DatasetComparisonInfo
    fold_change: Optional[float] = None
    p_value: Optional[float] = None
    is_significant: bool = False
    found: bool = False

    @property
    def id(self) -> str:
        return f"{self.dataset_info.link_id}_{self.dataset_info.comparison}"


class ProteinDetailedReport(BaseModel):
    search_term: str
    primary_id: Optional[str] = None
    gene_name: Optional[str] = None
    results: List[DatasetComparisonResult] = Field(default_factory=list)
    datasets_found_in: int = 0
    total_datasets_searched: int = 0


# --- Matrix ---

class MatrixCell(BaseModel):
    fold_change: Optional[float] = None
    p_value: Optional[float] = None
    is_significant: bool = False
    found: bool = False


class MatrixRow(BaseModel):
    dataset_link_id: str
    dataset_name: str
    comparison: str
    condition_left: Optional[str] = None
    condition_right: Optional[str] = None
    cells: Dict[str, MatrixCell] = Field(default_factory=dict, description="Keyed by protein id")

    @property
    def id(self) -> str:
        return f"{self.dataset_link_id}_{self.comparison}"


class CrossDatasetMatrix(BaseModel):
    protein_ids: List[str] = Field(default_factory=list)
    rows: List[MatrixRow] = Field(default_factory=list)
    protein_gene_names: Dict[str, Optional[str]] = Field(default_factory=dict)

    def column_label(self, protein_id: str) -> str:
        return self.protein_gene_names.get(protein_id) or protein_id

    def to_frame(self) -> pd.DataFrame:
        """Fold changes as a (datasetLinkId, comparison) x protein DataFrame; NaN where not found."""
        records = []
        for row in self.rows:
            record = {"datasetLinkId": row.dataset_link_id, "comparison": row.comparison}
            for protein_id in self.protein_ids:
                cell = row.cells.get(protein_id)
                found = cell is not None and cell.found and cell.fold_change is not None
                record[protein_id] = cell.fold_change if found else float("nan")
            records.append(record)

        columns = ["datasetLinkId", "comparison"] + list(self.protein_ids)
        df = pd.DataFrame(records, columns=columns)
        return df.set_index(["datasetLinkId", "comparison"])


class MatrixFilterOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    show_significant_only: bool = False
    hide_not_found: bool = False
    min_fold_change: Optional[float] = None
    max_p_value: Optional[float] = None
    selected_datasets: Optional[FrozenSet[str]] = None


# --- Dataset store records ---

class DatasetSettings(BaseModel):
    display_name: Optional[str] = None
    p_cutoff: float = 0.05
    log2fc_cutoff: float = 0.6
    current_comparison: str = "1"
    condition_labels_enabled: bool = False
    condition_left: Optional[str] = None
    condition_right: Optional[str] = None

    def is_significant(self, fold_change: Optional[float], p_value: Optional[float]) -> bool:
        if fold_change is None or p_value is None:
            return False
        return p_value < self.p_cutoff and abs(fold_change) > self.log2fc_cutoff

    @property
    def conditions(self) -> Tuple[Optional[str], Optional[str]]:
        if not self.condition_labels_enabled:
            return None, None
        return self.condition_left or None, self.condition_right or None


PROCESSED_COLUMNS = ["primaryId", "geneNames", "foldChange", "significant", "comparison"]


@dataclass
class ProteinMappings:
    """Upper-cased lookup keys to the primary ids they resolve to, in table order."""
    gene_names: Dict[str, List[str]] = field(default_factory=dict)
    split_ids: Dict[str, List[str]] = field(default_factory=dict)
    accessions: Dict[str, List[str]] = field(default_factory=dict)


@dataclass
class DatasetTable:
    """Processed rows and settings of one dataset, as handed out by a store."""
    link_id: str
    settings: DatasetSettings
    processed: pd.DataFrame
    mappings: Optional[ProteinMappings] = None

    @property
    def display_name(self) -> str:
        return self.settings.display_name or self.link_id

    @property
    def comparisons(self) -> List[str]:
        if self.processed.empty:
            return [self.settings.current_comparison or "1"]
        return sorted(self.processed["comparison"].astype(str).unique().tolist())


class DatasetInfo(BaseModel):
    link_id: str
    display_name: str


# --- Saved searches ---

class SavedSearch(BaseModel):
    search_id: str
    name: str
    config: CrossDatasetSearchConfig
    summaries: List[ProteinSearchSummary] = Field(default_factory=list)
    protein_count: int = 0
    dataset_count: int = 0
    created: datetime = Field(default_factory=datetime.now)
    last_opened: datetime = Field(default_factory=datetime.now)

    def to_result(self) -> CrossDatasetSearchResult:
        return CrossDatasetSearchResult(
            config=self.config,
            protein_summaries=list(self.summaries),
            search_timestamp=self.created,
        )
