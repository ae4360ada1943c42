"""Tests for term matching against one dataset."""
import pandas as pd
import pytest

from curtain.search.matching import build_mappings, compile_term, match_term
from curtain.shared import DatasetSettings, DatasetTable, SearchType


@pytest.fixture
def table_a(dataset_a_frame):
    return DatasetTable(link_id="linkA", settings=DatasetSettings(), processed=dataset_a_frame)


def test_build_mappings_keys(dataset_a_frame):
    """Test gene tokens and split ids are indexed upper-case."""
    mappings = build_mappings(dataset_a_frame)

    assert mappings.gene_names["AAK1"] == ["Q2M2I8"]
    assert mappings.gene_names["IKBKG;NEMO"] == ["Q9Y6K9"]
    assert mappings.gene_names["NEMO"] == ["Q9Y6K9"]
    assert mappings.split_ids["P00533-2"] == ["P00533;P00533-2"]
    assert mappings.split_ids["P00533;P00533-2"] == ["P00533;P00533-2"]


def test_build_mappings_gene_token_separators():
    """Test spaces and backslashes also separate gene names."""
    df = pd.DataFrame({"primaryId": ["X1"], "geneNames": ["ABC1 DEF2\\GHI3"]})

    mappings = build_mappings(df)

    assert {"ABC1", "DEF2", "GHI3"} <= set(mappings.gene_names)


def test_gene_name_match_is_case_insensitive(table_a):
    """Test exact gene lookups ignore case."""
    assert match_term(table_a, "aak1", SearchType.GENE_NAME) == ["Q2M2I8"]
    assert match_term(table_a, "nemo", SearchType.GENE_NAME) == ["Q9Y6K9"]


def test_gene_name_match_is_not_substring(table_a):
    """Test non-regex gene lookups need a whole token."""
    assert match_term(table_a, "AAK", SearchType.GENE_NAME) == []


def test_primary_id_match(table_a):
    """Test primary ids match whole or by isoform part."""
    assert match_term(table_a, "P00533", SearchType.PRIMARY_ID) == ["P00533;P00533-2"]
    assert match_term(table_a, "p04637", SearchType.PRIMARY_ID) == ["P04637"]
    assert match_term(table_a, "AAK1", SearchType.PRIMARY_ID) == []


def test_accession_match_uses_accession_column():
    """Test accession search checks ids and the accession column."""
    df = pd.DataFrame({
        "primaryId": ["P1", "P2"],
        "geneNames": ["A", "B"],
        "accession": ["ACC9", "ACC8"],
    })
    table = DatasetTable(link_id="x", settings=DatasetSettings(), processed=df)

    assert match_term(table, "acc8", SearchType.ACCESSION_ID) == ["P2"]
    assert match_term(table, "P1", SearchType.ACCESSION_ID) == ["P1"]


def test_description_substring_match(table_a):
    """Test description search is a case-insensitive substring match."""
    assert match_term(table_a, "KINASE", SearchType.DESCRIPTION) == ["Q2M2I8", "O14965"]


def test_description_match_without_column(dataset_b_frame):
    """Test datasets without descriptions never match."""
    table = DatasetTable(link_id="linkB", settings=DatasetSettings(), processed=dataset_b_frame)

    assert match_term(table, "kinase", SearchType.DESCRIPTION) == []


def test_regex_match(table_a):
    """Test regex terms use search semantics, case-insensitively."""
    assert match_term(table_a, "^aa", SearchType.GENE_NAME, use_regex=True) == ["Q2M2I8"]
    assert match_term(table_a, "NEMO$", SearchType.GENE_NAME, use_regex=True) == ["Q9Y6K9"]
    assert match_term(table_a, "EGF", SearchType.GENE_NAME, use_regex=True) == ["P00533;P00533-2"]


def test_invalid_regex_matches_nothing(table_a):
    """Test an invalid pattern yields no matches instead of raising."""
    assert compile_term("([") is None
    assert match_term(table_a, "([", SearchType.GENE_NAME, use_regex=True) == []


def test_precomputed_mappings_are_used(table_a, dataset_a_frame):
    """Test lookups go through the table's mappings when present."""
    table_a.mappings = build_mappings(dataset_a_frame)
    table_a.mappings.gene_names["ALIAS"] = ["Q2M2I8"]

    assert match_term(table_a, "alias", SearchType.GENE_NAME) == ["Q2M2I8"]


@pytest.mark.filterwarnings("error")
def test_regex_over_empty_table(dataset_a_frame):
    """Test a regex over a dataset without rows matches nothing, cleanly."""
    empty = DatasetTable(link_id="empty", settings=DatasetSettings(), processed=dataset_a_frame.iloc[0:0])

    assert match_term(empty, ".*", SearchType.GENE_NAME, use_regex=True) == []
    assert match_term(empty, ".*", SearchType.DESCRIPTION, use_regex=True) == []
