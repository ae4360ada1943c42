"""Ordering of protein summaries."""
from typing import List, Sequence

from curtain.shared import CrossDatasetSearchResult, ProteinSearchSummary, ProteinSortOption


def _name_key(summary: ProteinSearchSummary) -> str:
    return summary.gene_name or summary.search_term


def _fold_change_key(summary: ProteinSearchSummary) -> float:
    return summary.average_fold_change if summary.average_fold_change is not None else 0.0


def _match_count_key(summary: ProteinSearchSummary):
    return summary.datasets_found_in, abs(_fold_change_key(summary))


def sort_summaries(summaries: Sequence[ProteinSearchSummary],
                   option: ProteinSortOption) -> List[ProteinSearchSummary]:
    """
    Sort summaries by *option*.

    The sort is stable: summaries with equal keys keep their prior order, in
    both ascending and descending options.
    """
    option = ProteinSortOption(option)
    if option == ProteinSortOption.NAME_ASC:
        return sorted(summaries, key=_name_key)
    if option == ProteinSortOption.NAME_DESC:
        return sorted(summaries, key=_name_key, reverse=True)
    if option == ProteinSortOption.MATCH_COUNT_DESC:
        return sorted(summaries, key=_match_count_key, reverse=True)
    if option == ProteinSortOption.AVG_FC_ASC:
        return sorted(summaries, key=_fold_change_key)
    return sorted(summaries, key=_fold_change_key, reverse=True)


def sort_result(result: CrossDatasetSearchResult, option: ProteinSortOption) -> CrossDatasetSearchResult:
    """Copy of *result* with its summaries re-ordered."""
    return result.model_copy(update={"protein_summaries": sort_summaries(result.protein_summaries, option)})
