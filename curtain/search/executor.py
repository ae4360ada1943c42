"""
Per-dataset search execution.

Resolves every search term against one loaded dataset, applies the row
filters of the run (significance and advanced fold-change / p-value ranges)
and returns one RawMatch per surviving processed row. A term without matches
produces no RawMatch at all; absence is inferred later by counting.
"""

import logging
from typing import Dict, List, Optional, Pattern, Sequence

import pandas as pd

from curtain.search.matching import compile_term, match_term
from curtain.shared import AdvancedFilterParams, DatasetSettings, DatasetTable, RawMatch, SearchType

logger = logging.getLogger(__name__)


def _optional_float(value) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    return float(value)


def _optional_str(value) -> Optional[str]:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    text = str(value).strip()
    return text or None


def annotate_significance(rows: pd.DataFrame, settings: DatasetSettings) -> pd.DataFrame:
    """Add an ``isSignificant`` column: p < p_cutoff and |FC| > log2FC cutoff; missing values are never significant."""
    rows = rows.copy()
    fc = pd.to_numeric(rows["foldChange"], errors="coerce")
    p = pd.to_numeric(rows["significant"], errors="coerce")
    rows["foldChange"] = fc
    rows["significant"] = p
    rows["isSignificant"] = (p < settings.p_cutoff) & (fc.abs() > settings.log2fc_cutoff)
    return rows


def advanced_filter_mask(rows: pd.DataFrame, params: AdvancedFilterParams) -> pd.Series:
    """
    Rows passing the advanced p-value and fold-change ranges.

    The p-value range and the fold-change sides are ANDed. With ``search_left``
    a down-regulated row must have |FC| inside [min_fc_left, max_fc_left]; with
    ``search_right`` an up-regulated row must have FC inside
    [min_fc_right, max_fc_right]. Rows missing the filtered value pass.
    """
    fc = rows["foldChange"]
    p = rows["significant"]
    mask = pd.Series(True, index=rows.index)

    if params.min_p is not None:
        mask &= p.isna() | (p >= params.min_p)
    if params.max_p is not None:
        mask &= p.isna() | (p <= params.max_p)

    if params.search_left:
        abs_fc = fc.abs()
        in_range = pd.Series(True, index=rows.index)
        if params.min_fc_left is not None:
            in_range &= abs_fc >= params.min_fc_left
        if params.max_fc_left is not None:
            in_range &= abs_fc <= params.max_fc_left
        mask &= fc.isna() | (fc >= 0) | in_range

    if params.search_right:
        in_range = pd.Series(True, index=rows.index)
        if params.min_fc_right is not None:
            in_range &= fc >= params.min_fc_right
        if params.max_fc_right is not None:
            in_range &= fc <= params.max_fc_right
        mask &= fc.isna() | (fc <= 0) | in_range

    return mask


def filter_rows(rows: pd.DataFrame, significant_only: bool = False,
                advanced_filtering: Optional[AdvancedFilterParams] = None) -> pd.DataFrame:
    """Apply the run's row filters to significance-annotated rows."""
    if rows.empty:
        return rows
    if advanced_filtering is not None:
        rows = rows[advanced_filter_mask(rows, advanced_filtering)]
    if significant_only:
        rows = rows[rows["isSignificant"]]
    return rows


def find_matching_rows(table: DatasetTable, term: str, search_type: SearchType,
                       use_regex: bool = False, pattern: Optional[Pattern] = None,
                       primary_id: Optional[str] = None) -> pd.DataFrame:
    """
    Processed rows of *table* matched by *term*, annotated with ``isSignificant``.

    When *primary_id* is given only that protein's rows are kept. Row order
    follows the processed table.
    """
    ids = match_term(table, term, search_type, use_regex=use_regex, pattern=pattern)
    if primary_id is not None:
        ids = [pid for pid in ids if pid == primary_id]
    if not ids:
        return annotate_significance(table.processed.iloc[0:0], table.settings)

    df = table.processed
    rows = df[df["primaryId"].astype(str).isin(ids)]
    return annotate_significance(rows, table.settings)


def rows_to_matches(rows: pd.DataFrame, term: str, link_id: str) -> List[RawMatch]:
    matches = []
    for row in rows.itertuples(index=False):
        matches.append(RawMatch(
            search_term=term,
            primary_id=str(row.primaryId),
            gene_name=_optional_str(row.geneNames),
            fold_change=_optional_float(row.foldChange),
            p_value=_optional_float(row.significant),
            is_significant=bool(row.isSignificant),
            comparison=str(row.comparison),
            dataset_link_id=link_id,
        ))
    return matches


def search_dataset(
    table: DatasetTable,
    search_terms: Sequence[str],
    search_type: SearchType,
    use_regex: bool = False,
    significant_only: bool = False,
    advanced_filtering: Optional[AdvancedFilterParams] = None,
    patterns: Optional[Dict[str, Optional[Pattern]]] = None,
) -> List[RawMatch]:
    """
    Search one dataset for every term.

    Args:
        table: Loaded dataset
        search_terms: Normalised search terms
        search_type: Field to match against
        use_regex: Treat terms as regular expressions
        significant_only: Keep only significant rows
        advanced_filtering: Optional p-value / fold-change ranges
        patterns: Terms already compiled by the caller (regex mode)

    Returns:
        RawMatch list, grouped by term in input order
    """
    matches: List[RawMatch] = []
    for term in search_terms:
        pattern = None
        if use_regex:
            pattern = patterns.get(term) if patterns and term in patterns else compile_term(term)
            if pattern is None:
                continue

        rows = find_matching_rows(table, term, search_type, use_regex=use_regex, pattern=pattern)
        rows = filter_rows(rows, significant_only, advanced_filtering)
        if rows.empty:
            continue
        matches.extend(rows_to_matches(rows, term, table.link_id))

    logger.debug(f"Dataset {table.link_id}: {len(matches)} matching rows for {len(search_terms)} terms")
    return matches
