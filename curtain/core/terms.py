"""Search input normalisation and request validation."""
from typing import Iterable, List, Optional, Sequence, Union

from curtain.core.exceptions import EmptyInputError, NoDatasetsSelectedError
from curtain.shared import AdvancedFilterParams, CrossDatasetSearchConfig, SearchType


def normalize_terms(raw_input: Union[str, Iterable[str]]) -> List[str]:
    """
    Parse raw user input into an ordered, de-duplicated list of search terms.

    Each line is split on ``;`` when present, every fragment is trimmed and
    empty fragments are dropped. Duplicates are removed keeping the first
    occurrence; terms differing only in case are kept apart.

    Args:
        raw_input: Free text, or several chunks of free text

    Returns:
        List of search terms in first-seen order

    Raises:
        EmptyInputError: If no term survives normalisation
    """
    chunks = [raw_input] if isinstance(raw_input, str) else list(raw_input)

    terms: List[str] = []
    seen = set()
    for chunk in chunks:
        for line in chunk.splitlines():
            line = line.strip()
            if not line:
                continue
            fragments = line.split(";") if ";" in line else [line]
            for fragment in fragments:
                term = fragment.strip()
                if term and term not in seen:
                    seen.add(term)
                    terms.append(term)

    if not terms:
        raise EmptyInputError()
    return terms


def validate_dataset_selection(dataset_link_ids: Sequence[str]) -> List[str]:
    """
    Validate that at least one dataset is selected.

    Returns:
        The selection with blanks and duplicates removed, order preserved

    Raises:
        NoDatasetsSelectedError: If nothing usable is selected
    """
    cleaned = [link_id.strip() for link_id in dataset_link_ids if link_id and link_id.strip()]
    cleaned = list(dict.fromkeys(cleaned))
    if not cleaned:
        raise NoDatasetsSelectedError()
    return cleaned


def validate_config(config: CrossDatasetSearchConfig) -> CrossDatasetSearchConfig:
    """Re-normalise a submitted config, raising before any dataset is touched."""
    terms = normalize_terms(config.search_terms)
    link_ids = validate_dataset_selection(config.dataset_link_ids)
    if list(config.search_terms) == terms and list(config.dataset_link_ids) == link_ids:
        return config
    return config.model_copy(update={"search_terms": tuple(terms), "dataset_link_ids": tuple(link_ids)})


def build_search_config(
    raw_input: Union[str, Iterable[str]],
    dataset_link_ids: Sequence[str],
    search_type: SearchType = SearchType.GENE_NAME,
    significant_only: bool = False,
    use_regex: bool = False,
    advanced_filtering: Optional[AdvancedFilterParams] = None,
) -> CrossDatasetSearchConfig:
    """Normalise free-text input and a dataset selection into a search config."""
    terms = normalize_terms(raw_input)
    link_ids = validate_dataset_selection(dataset_link_ids)
    return CrossDatasetSearchConfig(
        search_terms=tuple(terms),
        search_type=search_type,
        dataset_link_ids=tuple(link_ids),
        significant_only=significant_only,
        use_regex=use_regex,
        advanced_filtering=advanced_filtering,
    )
