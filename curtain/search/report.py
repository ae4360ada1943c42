"""
Detailed per-dataset report for one protein.

Re-queries every selected dataset for a single (search term, primary id) and
expands the hits into one DatasetComparisonResult per dataset and comparison.
Datasets or comparisons without a hit are reported with ``found=False``.
"""

import logging
from typing import Dict, List, Optional, Pattern, Sequence

import pandas as pd

from curtain.core.exceptions import DatasetError
from curtain.search.executor import filter_rows, find_matching_rows
from curtain.search.matching import compile_term
from curtain.shared import (
    AdvancedFilterParams,
    DatasetComparisonInfo,
    DatasetComparisonResult,
    DatasetTable,
    ProteinDetailedReport,
    SearchType,
)

logger = logging.getLogger(__name__)

NOT_AVAILABLE = "N/A"


def load_for_search(store, link_id: str) -> Optional[DatasetTable]:
    """Load a dataset with its mappings, or None when it cannot be used."""
    try:
        table = store.load_dataset(link_id)
        if store.needs_mappings(table):
            store.build_mappings(table)
        return table
    except DatasetError as e:
        logger.warning(f"Dataset {link_id} unavailable for report: {e}")
        return None
    except Exception as e:
        logger.error(f"Could not load dataset {link_id}: {e}")
        return None


def protein_hits_by_comparison(
    table: DatasetTable,
    search_term: str,
    primary_id: Optional[str],
    search_type: SearchType,
    use_regex: bool = False,
    pattern: Optional[Pattern] = None,
    significant_only: bool = False,
    advanced_filtering: Optional[AdvancedFilterParams] = None,
) -> Dict[str, pd.Series]:
    """
    First matching processed row of one protein for each comparison of a dataset.

    With *primary_id* None every protein matched by the term is considered.
    """
    rows = find_matching_rows(table, search_term, search_type, use_regex=use_regex,
                              pattern=pattern, primary_id=primary_id)
    rows = filter_rows(rows, significant_only, advanced_filtering)
    if rows.empty:
        return {}
    firsts = rows.drop_duplicates("comparison", keep="first")
    return {str(row["comparison"]): row for _, row in firsts.iterrows()}


def _value_or_none(value) -> Optional[float]:
    return None if value is None or pd.isna(value) else float(value)


def merge_gene_names(gene_names: Sequence[str]) -> Optional[str]:
    """Split on ``;``, de-duplicate, sort and re-join."""
    parts = set()
    for names in gene_names:
        parts.update(p.strip() for p in names.split(";") if p.strip())
    return ";".join(sorted(parts)) or None


def build_detailed_report(
    store,
    search_term: str,
    primary_id: Optional[str],
    dataset_link_ids: Sequence[str],
    search_type: SearchType,
    use_regex: bool = False,
) -> ProteinDetailedReport:
    """
    Expand one protein into a row per selected dataset and comparison.

    Args:
        store: Dataset store holding the selected datasets
        search_term: Term the protein was found by
        primary_id: Protein to report; None reports every protein matched by the term
        dataset_link_ids: Selected datasets, in selection order
        search_type: Field the term is matched against
        use_regex: Treat the term as a regular expression

    Returns:
        Report ordered by dataset selection, then comparison ascending. Never
        raises for missing data; an unusable dataset yields a single ``N/A``
        row with ``found=False``.
    """
    link_ids = list(dict.fromkeys(dataset_link_ids))
    pattern = compile_term(search_term) if use_regex else None

    results: List[DatasetComparisonResult] = []
    gene_names: List[str] = []
    found_in = 0

    for link_id in link_ids:
        table = load_for_search(store, link_id)
        if table is None:
            results.append(DatasetComparisonResult(
                dataset_info=DatasetComparisonInfo(
                    link_id=link_id, dataset_description=link_id, comparison=NOT_AVAILABLE),
                found=False,
            ))
            continue

        hits = {}
        if not (use_regex and pattern is None):
            hits = protein_hits_by_comparison(table, search_term, primary_id, search_type,
                                              use_regex=use_regex, pattern=pattern)
        if hits:
            found_in += 1

        for comparison in table.comparisons:
            info = DatasetComparisonInfo(
                link_id=link_id, dataset_description=table.display_name, comparison=comparison)
            row = hits.get(comparison)
            if row is None:
                results.append(DatasetComparisonResult(dataset_info=info, found=False))
                continue

            if isinstance(row["geneNames"], str) and row["geneNames"].strip():
                gene_names.append(row["geneNames"])
            results.append(DatasetComparisonResult(
                dataset_info=info,
                fold_change=_value_or_none(row["foldChange"]),
                p_value=_value_or_none(row["significant"]),
                is_significant=bool(row["isSignificant"]),
                found=True,
            ))

    logger.info(f"Report for {search_term} ({primary_id}): found in {found_in}/{len(link_ids)} datasets")
    return ProteinDetailedReport(
        search_term=search_term,
        primary_id=primary_id,
        gene_name=merge_gene_names(gene_names),
        results=results,
        datasets_found_in=found_in,
        total_datasets_searched=len(link_ids),
    )
