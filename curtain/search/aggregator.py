"""
Summary aggregation.

Groups the RawMatch rows of every completed dataset by (search term, primary
id) and reduces each group to one ProteinSearchSummary.
"""

import logging
from dataclasses import asdict
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from curtain.shared import ProteinSearchSummary, RawMatch

logger = logging.getLogger(__name__)

GROUP_KEYS = ["search_term", "primary_id"]


def matches_to_frame(matches: Sequence[RawMatch]) -> pd.DataFrame:
    """RawMatch rows as a DataFrame in discovery order; fold changes as floats (NaN when missing)."""
    columns = list(RawMatch.__dataclass_fields__)
    df = pd.DataFrame([asdict(m) for m in matches], columns=columns)
    df["fold_change"] = pd.to_numeric(df["fold_change"], errors="coerce")
    df["is_significant"] = df["is_significant"].astype(bool)
    return df


def _mean_or_none(value) -> Optional[float]:
    value = float(value)
    return None if np.isnan(value) else value


def _gene_or_none(value) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def aggregate_matches(matches: Sequence[RawMatch], search_terms: Sequence[str],
                      total_datasets_searched: int) -> List[ProteinSearchSummary]:
    """
    Reduce raw matches to one summary per (term, protein).

    Args:
        matches: Matches of every completed dataset, in dataset selection order
        search_terms: Terms of the run, in input order
        total_datasets_searched: Datasets attempted in the run

    Returns:
        Summaries ordered by term, then by the order proteins were first seen.
        A term without any match gets one summary with ``datasets_found_in=0``.
    """
    summaries_by_term = {term: [] for term in search_terms}

    if matches:
        df = matches_to_frame(matches)
        grouped = df.groupby(GROUP_KEYS, sort=False)
        stats = pd.DataFrame({
            "datasets_found_in": grouped["dataset_link_id"].nunique(),
            "average_fold_change": grouped["fold_change"].mean(),
            "has_significant_result": grouped["is_significant"].any(),
        })
        # First match of each group supplies the displayed gene name
        first = df.drop_duplicates(GROUP_KEYS, keep="first").set_index(GROUP_KEYS)["gene_name"]

        for (term, primary_id), row in stats.iterrows():
            summary = ProteinSearchSummary(
                search_term=term,
                primary_id=primary_id,
                gene_name=_gene_or_none(first.loc[(term, primary_id)]),
                datasets_found_in=int(row["datasets_found_in"]),
                total_datasets_searched=total_datasets_searched,
                average_fold_change=_mean_or_none(row["average_fold_change"]),
                has_significant_result=bool(row["has_significant_result"]),
            )
            summaries_by_term.setdefault(term, []).append(summary)

    summaries: List[ProteinSearchSummary] = []
    for term, term_summaries in summaries_by_term.items():
        if not term_summaries:
            term_summaries = [ProteinSearchSummary(
                search_term=term,
                total_datasets_searched=total_datasets_searched,
            )]
        summaries.extend(term_summaries)

    logger.info(f"Aggregated {len(matches)} matches into {len(summaries)} protein summaries")
    return summaries
