"""
Curtain Cross-Dataset Search Command Line Interface

Subcommands:
- datasets: List downloaded datasets and collections
- search: Search several datasets for proteins and summarise the hits
- report: Per-dataset, per-comparison report for one protein
- saved: Manage saved searches
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

import pandas as pd
from dotenv import find_dotenv, load_dotenv

from curtain import __version__
from curtain.config import get_settings
from curtain.core.data_formatters import create_report_table, create_summary_table
from curtain.core.saved_searches import SQLiteSavedSearchStore
from curtain.core.terms import build_search_config
from curtain.search.service import CrossDatasetSearchService
from curtain.shared import (
    AdvancedFilterParams,
    DatasetSettings,
    MatrixFilterOptions,
    ProcessingState,
    ProteinSortOption,
    SearchType,
)
from curtain.shared.workflow_logging import setup_logging
from curtain.stores import DatasetRepository, get_dataset_store

logger = logging.getLogger(__name__)


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point with subcommands."""
    parser = argparse.ArgumentParser(
        prog="curtain",
        description="Curtain - cross-dataset protein search",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  curtain datasets
  curtain search AAK1 EGFR --datasets linkA linkB --significant-only
  curtain search "^RPL" --regex --collection kinases --output hits.csv
  curtain report AAK1 --datasets linkA linkB
  curtain saved list

For more help on a specific command, use:
  curtain COMMAND --help
        """
    )

    parser.add_argument('--version', action='version', version=f'Curtain {__version__}')
    parser.add_argument('--data-dir', help='Directory holding one folder per dataset (default: CURTAIN_DATA_DIR)')
    parser.add_argument('--db', help='Saved search database (default: CURTAIN_SAVED_SEARCH_DB)')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging (DEBUG level)')

    subparsers = parser.add_subparsers(
        dest='command',
        help='Available commands',
        metavar='COMMAND'
    )

    # ========================================================================
    # DATASETS subcommand
    # ========================================================================
    datasets_parser = subparsers.add_parser(
        'datasets',
        help='List downloaded datasets and collections',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    datasets_parser.set_defaults(func=run_datasets)

    # ========================================================================
    # SEARCH subcommand
    # ========================================================================
    search_parser = subparsers.add_parser(
        'search',
        help='Search proteins across datasets',
        description='Search one or more terms across a selection of datasets',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    search_core = search_parser.add_argument_group('Core Options', 'What to search and where')
    search_core.add_argument('terms', nargs='*',
                             help='Search terms; a term may hold several terms separated by ";"')
    search_core.add_argument('--terms-file', help='File with one search term per line')
    _add_selection_arguments(search_core)
    search_core.add_argument('-t', '--type', dest='search_type', default=SearchType.GENE_NAME.value,
                             choices=[t.value for t in SearchType], help='Field the terms are matched against')
    search_core.add_argument('--regex', action='store_true', help='Treat each term as a regular expression')
    search_core.add_argument('--significant-only', action='store_true', help='Keep only significant rows')

    search_filters = search_parser.add_argument_group('Advanced Filters', 'P-value and fold-change ranges')
    search_filters.add_argument('--min-p', type=float, help='Lower bound on the p-value')
    search_filters.add_argument('--max-p', type=float, help='Upper bound on the p-value')
    search_filters.add_argument('--min-fc-left', type=float, help='Minimum |FC| for down-regulated rows')
    search_filters.add_argument('--max-fc-left', type=float, help='Maximum |FC| for down-regulated rows')
    search_filters.add_argument('--min-fc-right', type=float, help='Minimum FC for up-regulated rows')
    search_filters.add_argument('--max-fc-right', type=float, help='Maximum FC for up-regulated rows')
    search_filters.add_argument('--no-left', action='store_true', help='Do not apply the left fold-change range')
    search_filters.add_argument('--no-right', action='store_true', help='Do not apply the right fold-change range')

    search_output = search_parser.add_argument_group('Output Options')
    search_output.add_argument('--sort', default=ProteinSortOption.MATCH_COUNT_DESC.value,
                               choices=[o.value for o in ProteinSortOption], help='Order of the summaries')
    search_output.add_argument('-o', '--output', help='Write the summaries to this CSV file')
    search_output.add_argument('--matrix-output', help='Write the protein x comparison matrix to this CSV file')
    search_output.add_argument('--hide-not-found', action='store_true', help='Matrix: drop cells without a match')
    search_output.add_argument('--matrix-significant-only', action='store_true',
                               help='Matrix: drop non-significant cells')
    search_output.add_argument('--min-fold-change', type=float, help='Matrix: drop cells with a smaller |FC|')
    search_output.add_argument('--max-p-value', type=float, help='Matrix: drop cells with a larger p-value')
    search_output.add_argument('--save', metavar='NAME', help='Save the search under this name')

    search_parser.set_defaults(func=run_search)

    # ========================================================================
    # REPORT subcommand
    # ========================================================================
    report_parser = subparsers.add_parser(
        'report',
        help='Detailed per-dataset report for one protein',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    report_parser.add_argument('term', help='Search term the protein is found by')
    report_parser.add_argument('--primary-id', help='Restrict the report to this primary id')
    _add_selection_arguments(report_parser)
    report_parser.add_argument('-t', '--type', dest='search_type', default=SearchType.GENE_NAME.value,
                               choices=[t.value for t in SearchType])
    report_parser.add_argument('--regex', action='store_true')
    report_parser.add_argument('-o', '--output', help='Write the report to this CSV file')
    report_parser.set_defaults(func=run_report)

    # ========================================================================
    # SAVED subcommand
    # ========================================================================
    saved_parser = subparsers.add_parser('saved', help='Manage saved searches')
    saved_subparsers = saved_parser.add_subparsers(dest='saved_command', metavar='ACTION')

    saved_list = saved_subparsers.add_parser('list', help='List saved searches, most recently opened first')
    saved_list.set_defaults(func=run_saved_list)

    saved_show = saved_subparsers.add_parser('show', help='Show the summaries of a saved search')
    saved_show.add_argument('search_id')
    saved_show.set_defaults(func=run_saved_show)

    saved_rename = saved_subparsers.add_parser('rename', help='Rename a saved search')
    saved_rename.add_argument('search_id')
    saved_rename.add_argument('name')
    saved_rename.set_defaults(func=run_saved_rename)

    saved_delete = saved_subparsers.add_parser('delete', help='Delete a saved search')
    saved_delete.add_argument('search_id')
    saved_delete.set_defaults(func=run_saved_delete)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == 'saved' and not args.saved_command:
        saved_parser.print_help()
        sys.exit(1)

    _load_environment_variables()
    settings = get_settings()
    setup_logging(logging.DEBUG if args.verbose else settings.log_level,
                  log_dir=settings.log_dir or None)

    try:
        args.func(args)
    except KeyboardInterrupt:
        print("\nOperation cancelled by user.")
        sys.exit(1)
    except Exception as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def _add_selection_arguments(parser):
    parser.add_argument('-d', '--datasets', nargs='+', default=[], metavar='LINK_ID',
                        help='Dataset link ids to search')
    parser.add_argument('-c', '--collection', action='append', default=[],
                        help='Collection whose datasets are searched (repeatable)')


def _load_environment_variables():
    """Load environment variables from the nearest .env file."""
    env_file = find_dotenv(usecwd=True)
    if env_file:
        load_dotenv(env_file)
        logger.info(f"Loaded environment variables from: {env_file}")


def _build_service(args) -> CrossDatasetSearchService:
    settings = get_settings()
    store = get_dataset_store(
        'directory',
        data_dir=args.data_dir or settings.data_dir,
        default_settings=DatasetSettings(
            p_cutoff=settings.default_p_cutoff,
            log2fc_cutoff=settings.default_log2fc_cutoff,
        ),
    )
    saved = None
    if getattr(args, 'save', None) or args.command == 'saved':
        saved = SQLiteSavedSearchStore(args.db or settings.saved_search_db)
    return CrossDatasetSearchService(store, max_workers=settings.max_workers, saved_searches=saved)


def _read_terms(args) -> List[str]:
    chunks = list(args.terms)
    if args.terms_file:
        chunks.append(Path(args.terms_file).read_text())
    return chunks


def _advanced_filters(args) -> Optional[AdvancedFilterParams]:
    values = {
        'min_p': args.min_p,
        'max_p': args.max_p,
        'min_fc_left': args.min_fc_left,
        'max_fc_left': args.max_fc_left,
        'min_fc_right': args.min_fc_right,
        'max_fc_right': args.max_fc_right,
    }
    if all(v is None for v in values.values()) and not (args.no_left or args.no_right):
        return None
    return AdvancedFilterParams(search_left=not args.no_left, search_right=not args.no_right, **values)


def _print_table(df: pd.DataFrame):
    if df.empty:
        print("(no rows)")
    else:
        print(df.to_string(index=False))


def run_datasets(args):
    """List datasets and collections."""
    service = _build_service(args)
    repository: DatasetRepository = service.repository

    datasets = repository.list_available_datasets()
    if not datasets:
        print(f"No datasets found in {service.store.data_dir}")
        return

    _print_table(pd.DataFrame(
        [{"linkId": d.link_id, "name": d.display_name} for d in datasets]))

    collections = repository.list_collections()
    if collections:
        print("\nCollections:")
        for name in collections:
            members = repository.resolve_collection(name)
            print(f"  {name}: {', '.join(members)}")


def run_search(args):
    """Run a cross-dataset search and write its outputs."""
    service = _build_service(args)
    link_ids = service.repository.resolve_selection(args.datasets, args.collection)

    config = build_search_config(
        _read_terms(args),
        link_ids,
        search_type=SearchType(args.search_type),
        significant_only=args.significant_only,
        use_regex=args.regex,
        advanced_filtering=_advanced_filters(args),
    )

    def on_status(status):
        logger.info(f"{status.dataset_name}: {status.state.value}")

    result = service.search_across_datasets(config, on_status=on_status)
    result = service.sort_results(result, ProteinSortOption(args.sort))

    for status in result.dataset_statuses.values():
        if status.state in (ProcessingState.FAILED, ProcessingState.CANCELLED):
            print(f"Warning: {status.dataset_name} {status.state.value}: {status.error}", file=sys.stderr)

    _print_table(create_summary_table(result.protein_summaries))

    if args.output:
        Path(args.output).write_text(service.export_summaries_csv(result))
        print(f"\nSummaries written to {args.output}")

    if args.matrix_output:
        options = MatrixFilterOptions(
            show_significant_only=args.matrix_significant_only,
            hide_not_found=args.hide_not_found,
            min_fold_change=args.min_fold_change,
            max_p_value=args.max_p_value,
        )
        matrix = service.build_matrix(result, options)
        Path(args.matrix_output).write_text(service.export_matrix_csv(matrix))
        print(f"Matrix written to {args.matrix_output}")

    if args.save:
        search_id = service.save_search(args.save, result)
        print(f"Saved search '{args.save}' with id {search_id}")


def run_report(args):
    """Print the detailed report of one protein."""
    service = _build_service(args)
    link_ids = service.repository.resolve_selection(args.datasets, args.collection)

    report = service.build_detailed_report(
        args.term, args.primary_id, link_ids, SearchType(args.search_type), use_regex=args.regex)

    print(f"{report.gene_name or report.search_term}: found in "
          f"{report.datasets_found_in}/{report.total_datasets_searched} datasets")
    _print_table(create_report_table(report))

    if args.output:
        Path(args.output).write_text(service.export_report_csv(report))
        print(f"\nReport written to {args.output}")


def run_saved_list(args):
    store = _build_service(args).saved_searches
    searches = store.load_all()
    if not searches:
        print("No saved searches")
        return
    _print_table(pd.DataFrame([{
        "id": s.search_id,
        "name": s.name,
        "proteins": s.protein_count,
        "datasets": s.dataset_count,
        "lastOpened": s.last_opened.strftime("%Y-%m-%d %H:%M"),
    } for s in searches]))


def run_saved_show(args):
    service = _build_service(args)
    result = service.open_saved_search(args.search_id)
    print(f"Terms: {', '.join(result.config.search_terms)}")
    print(f"Datasets: {', '.join(result.config.dataset_link_ids)}")
    _print_table(create_summary_table(result.protein_summaries))


def run_saved_rename(args):
    _build_service(args).saved_searches.rename(args.search_id, args.name)
    print(f"Renamed {args.search_id} to '{args.name}'")


def run_saved_delete(args):
    _build_service(args).saved_searches.delete(args.search_id)
    print(f"Deleted {args.search_id}")


if __name__ == "__main__":
    main()
