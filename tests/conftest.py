"""Pytest fixtures for Curtain cross-dataset search tests."""
import json

import numpy as np
import pandas as pd
import pytest

from curtain.search.service import CrossDatasetSearchService
from curtain.shared import DatasetSettings
from curtain.stores.memory import InMemoryDatasetStore


@pytest.fixture
def dataset_a_frame():
    """Processed rows of a kinase screen with two comparisons."""
    return pd.DataFrame({
        'primaryId': ['Q2M2I8', 'P00533;P00533-2', 'P04637', 'Q9Y6K9', 'O14965', 'P00533;P00533-2'],
        'geneNames': ['AAK1', 'EGFR', 'TP53', 'IKBKG;NEMO', 'AURKA', 'EGFR'],
        'foldChange': [0.5, -1.2, 0.1, 2.0, np.nan, -0.8],
        'significant': [0.01, 0.001, 0.5, 0.03, 0.2, 0.02],
        'comparison': ['1', '1', '1', '1', '1', '2'],
        'description': [
            'AP2-associated protein kinase 1',
            'Epidermal growth factor receptor',
            'Cellular tumor antigen p53',
            'NF-kappa-B essential modulator',
            'Aurora kinase A',
            'Epidermal growth factor receptor',
        ],
    })


@pytest.fixture
def dataset_b_frame():
    """Processed rows of a phospho study; comparisons 1 and 3, no descriptions."""
    return pd.DataFrame({
        'primaryId': ['P00533', 'P04637', 'P12345', 'P04637', 'P12345'],
        'geneNames': ['EGFR', 'TP53', 'GAPDH', 'TP53', 'GAPDH'],
        'foldChange': [1.5, -0.7, 0.05, 0.2, 0.0],
        'significant': [0.0001, 0.04, 0.9, 0.6, 1.0],
        'comparison': ['1', '1', '1', '3', '3'],
    })


@pytest.fixture
def dataset_a_settings():
    """Settings of dataset A: relaxed fold-change cutoff and condition labels."""
    return DatasetSettings(
        display_name='Kinase screen',
        p_cutoff=0.05,
        log2fc_cutoff=0.4,
        condition_labels_enabled=True,
        condition_left='Ctrl',
        condition_right='Treated',
    )


@pytest.fixture
def dataset_b_settings():
    return DatasetSettings(display_name='Phospho study')


@pytest.fixture
def memory_store(dataset_a_frame, dataset_b_frame, dataset_a_settings, dataset_b_settings):
    """In-memory store holding datasets linkA and linkB and one collection."""
    return InMemoryDatasetStore(
        datasets={'linkA': dataset_a_frame, 'linkB': dataset_b_frame},
        settings={'linkA': dataset_a_settings, 'linkB': dataset_b_settings},
        collections={'both': ['linkA', 'linkB']},
    )


class FlakyDatasetStore(InMemoryDatasetStore):
    """In-memory store whose reads fail for selected datasets."""

    def __init__(self, failing, **kwargs):
        super().__init__(**kwargs)
        self.failing = set(failing)

    def read_processed(self, link_id):
        if link_id in self.failing:
            raise RuntimeError('disk error')
        return super().read_processed(link_id)


@pytest.fixture
def service(memory_store):
    return CrossDatasetSearchService(memory_store, max_workers=2)


@pytest.fixture
def flaky_store(dataset_a_frame, dataset_b_frame, dataset_a_settings):
    """Store holding linkA and linkB where every read of linkB fails."""
    return FlakyDatasetStore(
        ['linkB'],
        datasets={'linkA': dataset_a_frame, 'linkB': dataset_b_frame},
        settings={'linkA': dataset_a_settings},
    )


@pytest.fixture
def temp_db(tmp_path):
    """Path of a fresh saved-search database."""
    return str(tmp_path / 'saved' / 'saved_searches.db')


@pytest.fixture
def dataset_dir(tmp_path, dataset_a_frame, dataset_b_frame):
    """
    Data directory with two downloaded datasets.

    linkA uses canonical column names and Curtain-style settings; linkB uses
    exported column spellings and has no settings file.
    """
    root = tmp_path / 'curtain_data'

    link_a = root / 'linkA'
    link_a.mkdir(parents=True)
    dataset_a_frame.to_csv(link_a / 'processed.csv', index=False)
    (link_a / 'settings.json').write_text(json.dumps({
        'description': 'Kinase screen',
        'pCutoff': 0.05,
        'log2FCCutoff': 0.4,
        'currentComparison': '1',
        'volcanoConditionLabels': {
            'enabled': True,
            'leftCondition': 'Ctrl',
            'rightCondition': 'Treated',
        },
    }))

    link_b = root / 'linkB'
    link_b.mkdir()
    dataset_b_frame.rename(columns={
        'primaryId': 'Index',
        'geneNames': 'Gene Names',
        'foldChange': 'logFC',
        'significant': 'P.Value',
    }).to_csv(link_b / 'processed.tsv', sep='\t', index=False)

    # A folder without processed data is not a dataset
    (root / 'notes').mkdir()

    (root / 'collections.json').write_text(json.dumps({'kinases': ['linkA', 'linkB']}))
    return root
