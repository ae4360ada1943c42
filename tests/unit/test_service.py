"""Tests for the cross-dataset search orchestration."""
import threading

import pytest

from curtain.core.exceptions import EmptyInputError, NoDatasetsSelectedError
from curtain.core.terms import build_search_config
from curtain.search.service import CrossDatasetSearchService
from curtain.shared import (
    AdvancedFilterParams,
    CrossDatasetSearchConfig,
    ProcessingState,
    ProteinSortOption,
    SearchType,
)


def _config(terms, link_ids=("linkA", "linkB"), **kwargs):
    return build_search_config(terms, list(link_ids), **kwargs)


def test_single_hit_across_two_datasets(service):
    """Test AAK1 found in dataset A only."""
    result = service.search_across_datasets(_config("AAK1"))

    summary, = result.protein_summaries
    assert summary.search_term == "AAK1"
    assert summary.primary_id == "Q2M2I8"
    assert summary.gene_name == "AAK1"
    assert summary.datasets_found_in == 1
    assert summary.total_datasets_searched == 2
    assert summary.average_fold_change == pytest.approx(0.5)
    assert summary.has_significant_result is True


def test_failing_dataset_is_isolated(flaky_store):
    """Test one dataset failing leaves the others and the result intact."""
    service = CrossDatasetSearchService(flaky_store, max_workers=2)
    updates = []

    result = service.search_across_datasets(_config("TP53"), on_status=updates.append)

    statuses = result.dataset_statuses
    assert statuses["linkA"].state == ProcessingState.COMPLETED
    assert statuses["linkB"].state == ProcessingState.FAILED
    assert statuses["linkB"].error == "disk error"

    summary, = result.protein_summaries
    assert summary.datasets_found_in == 1
    assert summary.average_fold_change == pytest.approx(0.1)
    assert summary.has_significant_result is False

    b_states = [u.state for u in updates if u.id == "linkB"]
    assert b_states == [ProcessingState.LOADING, ProcessingState.FAILED]


def test_missing_dataset_fails_without_loading(service):
    """Test a dataset that was never downloaded fails straight from pending."""
    updates = []

    result = service.search_across_datasets(_config("AAK1", ("linkA", "linkZ")), on_status=updates.append)

    assert result.dataset_statuses["linkZ"].state == ProcessingState.FAILED
    assert result.dataset_statuses["linkZ"].error == "No data downloaded"
    assert [u.state for u in updates if u.id == "linkZ"] == [ProcessingState.FAILED]
    assert result.protein_summaries[0].datasets_found_in == 1


def test_status_sequence_per_dataset(service):
    """Test each dataset reports its own ordered lifecycle."""
    updates = []

    service.search_across_datasets(_config("EGFR"), on_status=updates.append)

    for link_id in ("linkA", "linkB"):
        assert [u.state for u in updates if u.id == link_id] == [
            ProcessingState.LOADING,
            ProcessingState.BUILDING,
            ProcessingState.SEARCHING,
            ProcessingState.COMPLETED,
        ]


def test_mappings_are_built_once(service):
    """Test a second run skips the building step."""
    service.search_across_datasets(_config("EGFR"))
    updates = []

    service.search_across_datasets(_config("EGFR"), on_status=updates.append)

    assert ProcessingState.BUILDING not in [u.state for u in updates]


def test_dataset_names_come_from_settings(service):
    """Test statuses carry the dataset display name."""
    updates = []

    service.search_across_datasets(_config("AAK1"), on_status=updates.append)

    names = {u.id: u.dataset_name for u in updates}
    assert names == {"linkA": "Kinase screen", "linkB": "Phospho study"}


def test_validation_happens_before_any_dataset(service):
    """Test invalid requests raise without status updates."""
    updates = []

    with pytest.raises(EmptyInputError):
        service.search_across_datasets(
            CrossDatasetSearchConfig(search_terms=(" ",), dataset_link_ids=("linkA",)),
            on_status=updates.append)
    with pytest.raises(NoDatasetsSelectedError):
        service.search_across_datasets(
            CrossDatasetSearchConfig(search_terms=("AAK1",), dataset_link_ids=()),
            on_status=updates.append)

    assert updates == []


def test_default_order_is_match_count(service):
    """Test results come back sorted by datasets found in."""
    result = service.search_across_datasets(_config("AAK1\nTP53\nEGFR"))

    assert [(s.search_term, s.primary_id) for s in result.protein_summaries] == [
        ("TP53", "P04637"),
        ("EGFR", "P00533"),
        ("EGFR", "P00533;P00533-2"),
        ("AAK1", "Q2M2I8"),
    ]


def test_average_over_all_found_rows(service):
    """Test the average spans every matching row of every dataset."""
    result = service.search_across_datasets(_config("TP53"))

    summary, = result.protein_summaries
    assert summary.datasets_found_in == 2
    assert summary.average_fold_change == pytest.approx((0.1 - 0.7 + 0.2) / 3)
    assert summary.has_significant_result is True


def test_significant_only(service):
    """Test significant_only keeps significant rows only."""
    result = service.search_across_datasets(_config("TP53", significant_only=True))

    summary, = result.protein_summaries
    assert summary.datasets_found_in == 1
    assert summary.average_fold_change == pytest.approx(-0.7)


def test_advanced_filtering(service):
    """Test advanced filters reach every dataset."""
    filters = AdvancedFilterParams(min_fc_left=1.0, min_fc_right=1.0)

    result = service.search_across_datasets(_config("EGFR", advanced_filtering=filters))

    by_id = {s.primary_id: s for s in result.protein_summaries}
    assert by_id["P00533;P00533-2"].average_fold_change == pytest.approx(-1.2)
    assert by_id["P00533"].average_fold_change == pytest.approx(1.5)


def test_primary_id_search(service):
    """Test isoform ids resolve per dataset."""
    result = service.search_across_datasets(_config("P00533", search_type=SearchType.PRIMARY_ID))

    assert {s.primary_id for s in result.protein_summaries} == {"P00533", "P00533;P00533-2"}


def test_regex_search(service):
    """Test regex terms across datasets, with an invalid pattern ignored."""
    result = service.search_across_datasets(_config("^GAP\n([", use_regex=True))

    by_term = {s.search_term: s for s in result.protein_summaries}
    assert by_term["^GAP"].primary_id == "P12345"
    assert by_term["(["].datasets_found_in == 0
    assert all(s.state == ProcessingState.COMPLETED for s in result.dataset_statuses.values())


def test_zero_match_term(service):
    """Test a term found nowhere still yields one summary."""
    result = service.search_across_datasets(_config("NOTAGENE"))

    summary, = result.protein_summaries
    assert summary.primary_id is None
    assert summary.datasets_found_in == 0
    assert summary.total_datasets_searched == 2


def test_cancelled_before_start(service):
    """Test a cancelled run marks unstarted datasets cancelled."""
    cancel = threading.Event()
    cancel.set()

    result = service.search_across_datasets(_config("AAK1"), cancel_event=cancel)

    assert {s.state for s in result.dataset_statuses.values()} == {ProcessingState.CANCELLED}
    summary, = result.protein_summaries
    assert summary.datasets_found_in == 0
    assert summary.total_datasets_searched == 0


def test_found_never_exceeds_searched(service):
    """Test the found count never exceeds the searched count."""
    result = service.search_across_datasets(_config("AAK1;EGFR;TP53;GAPDH;NEMO;AURKA;X"))

    assert all(s.datasets_found_in <= s.total_datasets_searched for s in result.protein_summaries)


def test_sort_results_returns_copy(service):
    """Test re-sorting leaves the original result untouched."""
    result = service.search_across_datasets(_config("AAK1\nTP53"))

    by_name = service.sort_results(result, ProteinSortOption.NAME_ASC)

    assert [s.search_term for s in by_name.protein_summaries] == ["AAK1", "TP53"]
    assert [s.search_term for s in result.protein_summaries] == ["TP53", "AAK1"]


def test_regex_search_over_empty_dataset(memory_store, dataset_a_frame):
    """Test a dataset without rows completes with no hits."""
    memory_store.add_dataset("empty", dataset_a_frame.iloc[0:0])
    service = CrossDatasetSearchService(memory_store)

    result = service.search_across_datasets(_config("^AAK", ("empty", "linkA"), use_regex=True))

    assert result.dataset_statuses["empty"].state == ProcessingState.COMPLETED
    summary, = result.protein_summaries
    assert summary.datasets_found_in == 1
    assert summary.total_datasets_searched == 2


def test_search_goes_through_store_query(memory_store):
    """Test every term of every dataset is answered by the store."""
    calls = []
    original = memory_store.query

    def recording_query(link_id, search_term, *args, **kwargs):
        calls.append((link_id, search_term))
        return original(link_id, search_term, *args, **kwargs)

    memory_store.query = recording_query
    service = CrossDatasetSearchService(memory_store, max_workers=1)

    result = service.search_across_datasets(_config("AAK1\nTP53"))

    assert sorted(calls) == [("linkA", "AAK1"), ("linkA", "TP53"), ("linkB", "AAK1"), ("linkB", "TP53")]
    assert {s.search_term for s in result.protein_summaries} == {"AAK1", "TP53"}
