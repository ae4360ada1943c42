"""
Term matching against one dataset's processed table.

Exact lookups go through ProteinMappings, built once per dataset from the
processed rows: every primary id and each of its ``;``-separated parts, every
accession, and every gene name together with its space/``;``/``\\`` separated
tokens. Keys are upper-cased so lookups are case-insensitive.
"""

import logging
import re
from typing import Dict, Iterable, List, Optional, Pattern

import pandas as pd

from curtain.shared import DatasetTable, ProteinMappings, SearchType

logger = logging.getLogger(__name__)

GENE_TOKEN_PATTERN = re.compile(r"[ ;\\]+")


def _add(index: Dict[str, List[str]], key: str, primary_id: str) -> None:
    key = key.strip().upper()
    if not key:
        return
    bucket = index.setdefault(key, [])
    if primary_id not in bucket:
        bucket.append(primary_id)


def _clean(value) -> Optional[str]:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return None
    text = str(value).strip()
    return text or None


def build_mappings(processed: pd.DataFrame) -> ProteinMappings:
    """Build the lookup tables for a processed DataFrame."""
    mappings = ProteinMappings()
    has_accession = "accession" in processed.columns

    for row in processed.itertuples(index=False):
        primary_id = _clean(getattr(row, "primaryId"))
        if primary_id is None:
            continue

        _add(mappings.split_ids, primary_id, primary_id)
        for split_id in primary_id.split(";"):
            _add(mappings.split_ids, split_id, primary_id)

        if has_accession:
            accession = _clean(getattr(row, "accession"))
            if accession:
                _add(mappings.accessions, accession, primary_id)

        gene_names = _clean(getattr(row, "geneNames"))
        if gene_names:
            _add(mappings.gene_names, gene_names, primary_id)
            for part in GENE_TOKEN_PATTERN.split(gene_names):
                _add(mappings.gene_names, part, primary_id)

    logger.debug(
        f"Built mappings: {len(mappings.gene_names)} gene keys, "
        f"{len(mappings.split_ids)} id keys, {len(mappings.accessions)} accession keys")
    return mappings


def compile_term(term: str) -> Optional[Pattern]:
    """Compile a user regex case-insensitively; an invalid pattern yields None."""
    try:
        return re.compile(term, re.IGNORECASE)
    except re.error as e:
        logger.warning(f"Invalid regular expression '{term}': {e}")
        return None


def _search_columns(search_type: SearchType) -> List[str]:
    if search_type == SearchType.GENE_NAME:
        return ["geneNames"]
    if search_type == SearchType.ACCESSION_ID:
        return ["primaryId", "accession"]
    if search_type == SearchType.DESCRIPTION:
        return ["description"]
    return ["primaryId"]


def _distinct(ids: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(ids))


def match_regex(table: DatasetTable, pattern: Pattern, search_type: SearchType) -> List[str]:
    """Primary ids whose search field contains a match for *pattern*, in table order."""
    df = table.processed
    mask = pd.Series(False, index=df.index)
    for column in _search_columns(search_type):
        if column not in df.columns:
            continue
        values = df[column].fillna("").astype(str)
        mask |= values.map(lambda text: pattern.search(text) is not None).astype(bool)
    return _distinct(df.loc[mask, "primaryId"].astype(str))


def match_exact(table: DatasetTable, term: str, search_type: SearchType) -> List[str]:
    """Primary ids resolved by a case-insensitive lookup (substring for descriptions)."""
    key = term.strip().upper()
    if not key:
        return []

    if search_type == SearchType.DESCRIPTION:
        df = table.processed
        if "description" not in df.columns:
            return []
        mask = df["description"].fillna("").astype(str).str.upper().str.contains(key, regex=False)
        return _distinct(df.loc[mask, "primaryId"].astype(str))

    mappings = table.mappings or build_mappings(table.processed)
    if search_type == SearchType.GENE_NAME:
        return list(mappings.gene_names.get(key, []))
    if search_type == SearchType.ACCESSION_ID:
        return _distinct(mappings.split_ids.get(key, []) + mappings.accessions.get(key, []))
    return list(mappings.split_ids.get(key, []))


def match_term(table: DatasetTable, term: str, search_type: SearchType,
               use_regex: bool = False, pattern: Optional[Pattern] = None) -> List[str]:
    """
    Resolve one search term to the primary ids it matches in one dataset.

    Args:
        table: Loaded dataset
        term: Search term (a regular expression when *use_regex*)
        search_type: Field to match against
        use_regex: Treat *term* as a regular expression
        pattern: Pre-compiled pattern for *term*, to avoid recompiling per dataset

    Returns:
        Distinct primary ids; empty when nothing matches
    """
    if use_regex:
        pattern = pattern or compile_term(term)
        if pattern is None:
            return []
        return match_regex(table, pattern, search_type)
    return match_exact(table, term, search_type)
