"""
Protein x (dataset, comparison) matrix.

The matrix is built from a finished search result: one column per protein of
the summaries, one row per comparison of every selected dataset. Cells are
re-derived from the datasets with the run's own row filters, then display
filters are applied to a copy.
"""

import logging
from typing import Dict, List, Optional, Tuple

import pandas as pd

from curtain.search.matching import compile_term
from curtain.search.report import load_for_search, protein_hits_by_comparison
from curtain.shared import (
    CrossDatasetMatrix,
    CrossDatasetSearchResult,
    MatrixCell,
    MatrixFilterOptions,
    MatrixRow,
)

logger = logging.getLogger(__name__)


def _value_or_none(value) -> Optional[float]:
    return None if value is None or pd.isna(value) else float(value)


def matrix_columns(result: CrossDatasetSearchResult) -> Tuple[List[Tuple[str, str, Optional[str]]], Dict[str, Optional[str]]]:
    """
    Columns of the matrix in summary order.

    Returns:
        (key, search term, primary id) per distinct protein key, and the gene
        name lookup keyed the same way
    """
    columns = []
    gene_names: Dict[str, Optional[str]] = {}
    for summary in result.protein_summaries:
        key = summary.primary_id or summary.search_term
        if key in gene_names:
            continue
        gene_names[key] = summary.gene_name
        columns.append((key, summary.search_term, summary.primary_id))
    return columns, gene_names


def build_matrix(store, result: CrossDatasetSearchResult,
                 options: Optional[MatrixFilterOptions] = None) -> CrossDatasetMatrix:
    """
    Pivot a search result into a matrix and apply display filters.

    Datasets that cannot be loaded contribute no rows.
    """
    config = result.config
    columns, gene_names = matrix_columns(result)
    patterns = {}
    if config.use_regex:
        patterns = {term: compile_term(term) for term in config.search_terms}

    rows: List[MatrixRow] = []
    for link_id in config.dataset_link_ids:
        table = load_for_search(store, link_id)
        if table is None:
            continue

        # One lookup per protein and dataset, shared by every comparison row
        hits_by_key = {}
        for key, term, primary_id in columns:
            pattern = patterns.get(term)
            if config.use_regex and pattern is None:
                hits_by_key[key] = {}
                continue
            hits_by_key[key] = protein_hits_by_comparison(
                table, term, primary_id, config.search_type,
                use_regex=config.use_regex,
                pattern=pattern,
                significant_only=config.significant_only,
                advanced_filtering=config.advanced_filtering,
            )

        condition_left, condition_right = table.settings.conditions
        for comparison in table.comparisons:
            cells = {}
            for key, _, _ in columns:
                row = hits_by_key[key].get(comparison)
                if row is None:
                    cells[key] = MatrixCell(found=False)
                else:
                    cells[key] = MatrixCell(
                        fold_change=_value_or_none(row["foldChange"]),
                        p_value=_value_or_none(row["significant"]),
                        is_significant=bool(row["isSignificant"]),
                        found=True,
                    )
            rows.append(MatrixRow(
                dataset_link_id=link_id,
                dataset_name=table.display_name,
                comparison=comparison,
                condition_left=condition_left,
                condition_right=condition_right,
                cells=cells,
            ))

    matrix = CrossDatasetMatrix(
        protein_ids=[key for key, _, _ in columns],
        rows=rows,
        protein_gene_names=gene_names,
    )
    logger.info(f"Built matrix with {len(matrix.protein_ids)} proteins and {len(rows)} rows")
    return apply_matrix_filters(matrix, options) if options is not None else matrix


def _keep_cell(cell: MatrixCell, options: MatrixFilterOptions) -> bool:
    if options.hide_not_found and not cell.found:
        return False
    if options.show_significant_only and not cell.is_significant:
        return False
    if options.min_fold_change is not None:
        if cell.fold_change is None or abs(cell.fold_change) < options.min_fold_change:
            return False
    if options.max_p_value is not None:
        if cell.p_value is None or cell.p_value > options.max_p_value:
            return False
    return True


def apply_matrix_filters(matrix: CrossDatasetMatrix, options: MatrixFilterOptions) -> CrossDatasetMatrix:
    """
    Apply display filters, returning a new matrix.

    Order: dataset selection, not-found cells, non-significant cells, then
    fold-change and p-value thresholds. Rows left without cells are kept.
    """
    rows = matrix.rows
    if options.selected_datasets is not None:
        rows = [row for row in rows if row.dataset_link_id in options.selected_datasets]

    filtered = []
    for row in rows:
        cells = {pid: cell for pid, cell in row.cells.items() if _keep_cell(cell, options)}
        filtered.append(row.model_copy(update={"cells": cells}))

    return matrix.model_copy(update={"rows": filtered})
