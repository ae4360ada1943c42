"""CSV formatting of search summaries, matrices and detailed reports."""
from io import StringIO
from typing import List, Optional

import pandas as pd

from curtain.shared import (
    CrossDatasetMatrix,
    CrossDatasetSearchResult,
    ProteinDetailedReport,
    ProteinSearchSummary,
)

SUMMARY_COLUMNS = [
    "searchTerm",
    "primaryId",
    "geneName",
    "datasetsFoundIn",
    "totalDatasetsSearched",
    "averageFoldChange",
    "hasSignificantResult",
]

MATRIX_ID_COLUMNS = ["datasetLinkId", "comparison", "conditionLeft", "conditionRight"]

REPORT_COLUMNS = [
    "searchTerm",
    "primaryId",
    "geneName",
    "dataset",
    "comparison",
    "foldChange",
    "pValue",
    "significant",
    "found",
]


def _text(value: Optional[str]) -> str:
    return "" if value is None else str(value)


def _yes_no(value: bool) -> str:
    return "Yes" if value else "No"


def format_fold_change(value: Optional[float]) -> str:
    return "" if value is None else f"{value:.4f}"


def format_p_value(value: Optional[float]) -> str:
    return "" if value is None else f"{value:.6f}"


def _to_csv(df: pd.DataFrame) -> str:
    # Quoting follows RFC 4180: only fields holding a delimiter, quote or newline are quoted
    return df.to_csv(index=False, lineterminator="\n")


def create_summary_table(summaries: List[ProteinSearchSummary]) -> pd.DataFrame:
    """
    Create the summary export table.

    Args:
        summaries: Summaries in display order

    Returns:
        DataFrame of strings with the summary export columns
    """
    records = []
    for s in summaries:
        records.append({
            "searchTerm": s.search_term,
            "primaryId": _text(s.primary_id),
            "geneName": _text(s.gene_name),
            "datasetsFoundIn": str(s.datasets_found_in),
            "totalDatasetsSearched": str(s.total_datasets_searched),
            "averageFoldChange": format_fold_change(s.average_fold_change),
            "hasSignificantResult": _yes_no(s.has_significant_result),
        })
    return pd.DataFrame(records, columns=SUMMARY_COLUMNS)


def export_summaries_csv(result: CrossDatasetSearchResult) -> str:
    """Summaries of a search result as CSV text, in the result's current order."""
    return _to_csv(create_summary_table(result.protein_summaries))


def import_summaries_csv(text: str) -> List[ProteinSearchSummary]:
    """Parse summaries exported by export_summaries_csv. Empty fields become None."""
    df = pd.read_csv(StringIO(text), dtype=str, keep_default_na=False)
    missing = [col for col in SUMMARY_COLUMNS if col not in df.columns]
    if missing:
        raise ValueError(f"Missing summary columns: {missing}")

    summaries = []
    for row in df.to_dict(orient="records"):
        summaries.append(ProteinSearchSummary(
            search_term=row["searchTerm"],
            primary_id=row["primaryId"] or None,
            gene_name=row["geneName"] or None,
            datasets_found_in=int(row["datasetsFoundIn"] or 0),
            total_datasets_searched=int(row["totalDatasetsSearched"] or 0),
            average_fold_change=float(row["averageFoldChange"]) if row["averageFoldChange"] else None,
            has_significant_result=row["hasSignificantResult"].strip().lower() in ("yes", "true", "1"),
        ))
    return summaries


def create_matrix_table(matrix: CrossDatasetMatrix) -> pd.DataFrame:
    """
    Create the matrix export table.

    Protein columns are headed by gene name when known, else by protein id;
    cells hold the fold change, or nothing when the protein was not found.
    """
    labels = [matrix.column_label(pid) for pid in matrix.protein_ids]
    records = []
    for row in matrix.rows:
        record = [
            row.dataset_link_id,
            row.comparison,
            _text(row.condition_left),
            _text(row.condition_right),
        ]
        for pid in matrix.protein_ids:
            cell = row.cells.get(pid)
            record.append(format_fold_change(cell.fold_change) if cell is not None and cell.found else "")
        records.append(record)

    # Gene names may repeat across protein ids, so columns are set positionally
    df = pd.DataFrame(records, columns=range(len(MATRIX_ID_COLUMNS) + len(labels)))
    df.columns = MATRIX_ID_COLUMNS + labels
    return df


def export_matrix_csv(matrix: CrossDatasetMatrix) -> str:
    return _to_csv(create_matrix_table(matrix))


def create_report_table(report: ProteinDetailedReport) -> pd.DataFrame:
    records = []
    for result in report.results:
        records.append({
            "searchTerm": report.search_term,
            "primaryId": _text(report.primary_id),
            "geneName": _text(report.gene_name),
            "dataset": result.dataset_info.dataset_description,
            "comparison": result.dataset_info.comparison,
            "foldChange": format_fold_change(result.fold_change),
            "pValue": format_p_value(result.p_value),
            "significant": _yes_no(result.is_significant),
            "found": _yes_no(result.found),
        })
    return pd.DataFrame(records, columns=REPORT_COLUMNS)


def export_report_csv(report: ProteinDetailedReport) -> str:
    """Detailed report rows as CSV text."""
    return _to_csv(create_report_table(report))
