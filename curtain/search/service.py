"""
Cross-dataset search orchestration.

CrossDatasetSearchService is the entry point for callers: it validates a
search request, runs the per-dataset executor over a bounded thread pool,
reports every dataset's progress through a status callback, waits for all
datasets to finish and aggregates the successful ones into a sorted
CrossDatasetSearchResult. Report, matrix, export and saved-search operations
work from that result.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Pattern, Sequence

from curtain.core import data_formatters
from curtain.core.saved_searches import SavedSearchStore
from curtain.core.sorting import sort_result
from curtain.core.status_tracker import DatasetStatusTracker, StatusBoard, StatusCallback
from curtain.core.terms import validate_config
from curtain.search.aggregator import aggregate_matches
from curtain.search.matching import compile_term
from curtain.search.matrix import build_matrix
from curtain.search.report import build_detailed_report
from curtain.stores.base import DatasetStore
from curtain.stores.repository import DatasetRepository
from curtain.shared import (
    CrossDatasetMatrix,
    CrossDatasetSearchConfig,
    CrossDatasetSearchResult,
    MatrixFilterOptions,
    ProcessingState,
    ProteinDetailedReport,
    ProteinSortOption,
    RawMatch,
    SavedSearch,
    SearchType,
)

logger = logging.getLogger(__name__)

DEFAULT_SORT = ProteinSortOption.MATCH_COUNT_DESC


class CrossDatasetSearchService:
    """Searches a selection of datasets and builds reports and matrices from the result."""

    def __init__(self, store: DatasetStore, max_workers: int = 4,
                 repository: Optional[DatasetRepository] = None,
                 saved_searches: Optional[SavedSearchStore] = None):
        self.store = store
        self.max_workers = max(1, max_workers)
        self.repository = repository or DatasetRepository(store)
        self.saved_searches = saved_searches

    # --- Search ---

    def search_across_datasets(self, config: CrossDatasetSearchConfig,
                               on_status: Optional[StatusCallback] = None,
                               cancel_event: Optional[threading.Event] = None) -> CrossDatasetSearchResult:
        """
        Search every selected dataset and aggregate the hits.

        Args:
            config: Search request
            on_status: Called once per status transition of any dataset; may be
                called from worker threads, never concurrently with itself
            cancel_event: When set, datasets not yet started are marked cancelled

        Returns:
            Result built from the datasets that completed, sorted by match count

        Raises:
            SearchValidationError: If the request has no terms or no datasets;
                raised before any dataset is touched
        """
        config = validate_config(config)
        link_ids = list(config.dataset_link_ids)

        board = StatusBoard(on_status)
        for link_id in link_ids:
            board.add(link_id, self.repository.display_name(link_id))

        patterns: Dict[str, Optional[Pattern]] = {}
        if config.use_regex:
            patterns = {term: compile_term(term) for term in config.search_terms}

        logger.info(f"Searching {len(config.search_terms)} terms across {len(link_ids)} datasets")
        workers = min(self.max_workers, len(link_ids))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="curtain-search") as pool:
            futures = {
                link_id: pool.submit(self._search_one, board[link_id], config, patterns, cancel_event)
                for link_id in link_ids
            }
            # Barrier: every dataset reaches a terminal state before aggregation
            per_dataset = {link_id: future.result() for link_id, future in futures.items()}

        matches: List[RawMatch] = []
        for link_id in link_ids:
            matches.extend(per_dataset[link_id] or [])

        attempted = len(link_ids) - len(board.ids_in_state(ProcessingState.CANCELLED))
        failed = board.ids_in_state(ProcessingState.FAILED)
        if failed:
            logger.warning(f"{len(failed)} of {len(link_ids)} datasets failed: {', '.join(failed)}")

        summaries = aggregate_matches(matches, config.search_terms, attempted)
        result = CrossDatasetSearchResult(
            config=config,
            protein_summaries=summaries,
            dataset_statuses=board.snapshot(),
        )
        return sort_result(result, DEFAULT_SORT)

    def _search_one(self, tracker: DatasetStatusTracker, config: CrossDatasetSearchConfig,
                    patterns: Dict[str, Optional[Pattern]],
                    cancel_event: Optional[threading.Event]) -> Optional[List[RawMatch]]:
        """Run one dataset through its state machine. Never raises."""
        link_id = tracker.link_id
        if cancel_event is not None and cancel_event.is_set():
            tracker.cancelled()
            return None

        try:
            if not self.store.dataset_exists(link_id):
                tracker.failed("No data downloaded")
                return None

            tracker.loading()
            table = self.store.load_dataset(link_id)

            if self.store.needs_mappings(table):
                tracker.building()
                self.store.build_mappings(table)

            tracker.searching()
            matches: List[RawMatch] = []
            for term in config.search_terms:
                pattern = patterns.get(term)
                if config.use_regex and pattern is None:
                    continue
                matches.extend(self.store.query(
                    link_id,
                    term,
                    config.search_type,
                    use_regex=config.use_regex,
                    filters=config.advanced_filtering,
                    significant_only=config.significant_only,
                    pattern=pattern,
                ))
            logger.info(f"Dataset {link_id}: {len(matches)} matching rows")
            tracker.completed()
            return matches
        except Exception as e:
            logger.error(f"Search failed for dataset {link_id}: {e}")
            if not tracker.is_terminal:
                tracker.failed(str(e) or e.__class__.__name__)
            return None

    # --- Views over a result ---

    def sort_results(self, result: CrossDatasetSearchResult, option: ProteinSortOption) -> CrossDatasetSearchResult:
        return sort_result(result, option)

    def build_detailed_report(self, search_term: str, primary_id: Optional[str],
                              dataset_link_ids: Sequence[str], search_type: SearchType,
                              use_regex: bool = False) -> ProteinDetailedReport:
        return build_detailed_report(self.store, search_term, primary_id, dataset_link_ids,
                                     search_type, use_regex=use_regex)

    def build_matrix(self, result: CrossDatasetSearchResult,
                     filter_options: Optional[MatrixFilterOptions] = None) -> CrossDatasetMatrix:
        return build_matrix(self.store, result, filter_options)

    def export_summaries_csv(self, result: CrossDatasetSearchResult) -> str:
        return data_formatters.export_summaries_csv(result)

    def export_matrix_csv(self, matrix: CrossDatasetMatrix) -> str:
        return data_formatters.export_matrix_csv(matrix)

    def export_report_csv(self, report: ProteinDetailedReport) -> str:
        return data_formatters.export_report_csv(report)

    # --- Saved searches ---

    def _require_saved_searches(self) -> SavedSearchStore:
        if self.saved_searches is None:
            raise RuntimeError("No saved search store configured")
        return self.saved_searches

    def save_search(self, name: str, result: CrossDatasetSearchResult) -> str:
        """Persist a result's config and summaries. The result itself is left untouched."""
        return self._require_saved_searches().save(name, result.config, result.protein_summaries)

    def open_saved_search(self, search_id: str) -> CrossDatasetSearchResult:
        """Rebuild the cached result of a saved search and mark it as opened."""
        store = self._require_saved_searches()
        saved: SavedSearch = store.get(search_id)
        store.touch_last_opened(search_id)
        return saved.to_result()
