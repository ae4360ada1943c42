"""Tests for dataset stores and the dataset repository."""
import re

import pandas as pd
import pytest

from curtain.core.exceptions import DatasetUnavailableError, MalformedDatasetError, NoDatasetsSelectedError
from curtain.stores import DatasetRepository, get_dataset_store
from curtain.stores.base import settings_from_dict, standardize_columns
from curtain.stores.directory import DirectoryDatasetStore
from curtain.stores.memory import InMemoryDatasetStore
from curtain.shared import AdvancedFilterParams, DatasetSettings, SearchType


def test_get_dataset_store_factory(tmp_path):
    """Test the factory returns the requested store kind."""
    assert isinstance(get_dataset_store('memory'), InMemoryDatasetStore)
    assert isinstance(get_dataset_store('directory', data_dir=str(tmp_path)), DirectoryDatasetStore)
    with pytest.raises(ValueError):
        get_dataset_store('cloud')


def test_load_dataset_validates_and_caches(memory_store):
    """Test loading returns the same validated table twice."""
    table = memory_store.load_dataset('linkA')

    assert table.display_name == 'Kinase screen'
    assert table.comparisons == ['1', '2']
    assert memory_store.load_dataset('linkA') is table


def test_load_missing_dataset(memory_store):
    with pytest.raises(DatasetUnavailableError) as excinfo:
        memory_store.load_dataset('linkZ')
    assert excinfo.value.link_id == 'linkZ'
    assert str(excinfo.value) == 'No data downloaded'


def test_malformed_dataset():
    """Test a table without a primary id column is rejected."""
    store = InMemoryDatasetStore(datasets={'bad': pd.DataFrame({'foo': [1]})})

    with pytest.raises(MalformedDatasetError):
        store.load_dataset('bad')


def test_missing_optional_columns_are_filled():
    """Test comparison defaults to the dataset's current comparison."""
    store = InMemoryDatasetStore(
        datasets={'d': pd.DataFrame({'primaryId': ['P1'], 'geneNames': ['G1']})},
        settings={'d': {'currentComparison': '7'}},
    )

    table = store.load_dataset('d')

    assert table.processed['comparison'].tolist() == ['7']
    assert table.processed['foldChange'].isna().all()
    assert table.comparisons == ['7']


def test_standardize_columns():
    """Test exported column spellings map to canonical names."""
    df = pd.DataFrame(columns=['Index', 'Gene Names', 'logFC', 'adj.P.Val', 'Comparison'])

    assert standardize_columns(df).columns.tolist() == [
        'primaryId', 'geneNames', 'foldChange', 'significant', 'comparison']


def test_settings_from_curtain_keys():
    """Test Curtain session keys are understood."""
    settings = settings_from_dict({
        'description': 'Screen',
        'pCutoff': 0.01,
        'log2FCCutoff': 1,
        'volcanoConditionLabels': {'enabled': True, 'leftCondition': 'WT', 'rightCondition': 'KO'},
    })

    assert settings.display_name == 'Screen'
    assert settings.p_cutoff == 0.01
    assert settings.log2fc_cutoff == 1.0
    assert settings.conditions == ('WT', 'KO')


def test_settings_defaults_apply():
    defaults = DatasetSettings(p_cutoff=0.01)

    assert settings_from_dict({}, defaults).p_cutoff == 0.01


def test_condition_labels_disabled():
    """Test labels are hidden unless enabled."""
    settings = settings_from_dict({'volcanoConditionLabels': {'leftCondition': 'WT', 'rightCondition': 'KO'}})

    assert settings.conditions == (None, None)


def test_query(memory_store):
    """Test the store-level query for one term in one dataset."""
    matches = memory_store.query('linkA', 'EGFR', SearchType.GENE_NAME,
                                 filters=AdvancedFilterParams(min_fc_left=1.0))

    assert [(m.primary_id, m.comparison) for m in matches] == [('P00533;P00533-2', '1')]
    assert memory_store.load_dataset('linkA').mappings is not None


def test_repository_lists_datasets(memory_store):
    repository = DatasetRepository(memory_store)

    datasets = repository.list_available_datasets()

    assert [(d.link_id, d.display_name) for d in datasets] == [
        ('linkA', 'Kinase screen'), ('linkB', 'Phospho study')]
    assert repository.display_name('linkZ') == 'linkZ'


def test_repository_resolves_collections(memory_store):
    """Test collections expand to member ids, merged with explicit ids."""
    repository = DatasetRepository(memory_store)

    assert repository.resolve_collection('both') == ['linkA', 'linkB']
    assert repository.resolve_selection(['linkB'], ['both']) == ['linkB', 'linkA']
    with pytest.raises(KeyError):
        repository.resolve_collection('nope')
    with pytest.raises(NoDatasetsSelectedError):
        repository.resolve_selection([], [])


def test_memory_store_collections(memory_store):
    """Test collections added at runtime resolve like configured ones."""
    memory_store.add_collection('phospho', ['linkB'])
    repository = DatasetRepository(memory_store)

    assert repository.list_collections() == ['both', 'phospho']
    assert repository.resolve_selection(['linkA'], ['phospho']) == ['linkA', 'linkB']


def test_query_with_compiled_pattern(memory_store):
    """Test a pattern compiled by the caller is used as is."""
    matches = memory_store.query('linkB', '^gap', SearchType.GENE_NAME, use_regex=True,
                                 pattern=re.compile('^GAP', re.IGNORECASE))

    assert [(m.primary_id, m.comparison) for m in matches] == [('P12345', '1'), ('P12345', '3')]
