"""
Command line entry point (sf-describe).
Fetches object schemas from an org, maintains the store and queries it.
"""
import argparse
import json
import logging
import re
import sys
from typing import List, Optional

from dotenv import load_dotenv

from config import get_settings, Settings
from exceptions import SalesforceAPIError
from services.cleanup_service import CleanupService
from services.describe_service import DescribeService
from services.file_service import FileService
from services.reference_service import ReferenceService
from services.salesforce_service import CONNECTION_HELP, SalesforceService

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Argument parser with one sub-command per operation."""
    parser = argparse.ArgumentParser(
        prog="sf-describe",
        description="Build and query a Salesforce object schema reference"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    fetch = subparsers.add_parser("fetch", help="Describe objects and save them to a store")
    fetch.add_argument("--output-dir", help="Store root (SF_OUTPUT_DIR)")
    fetch.add_argument("--objects", help="Comma separated allow-list of objects (SF_OBJECTS)")
    fetch.add_argument("--merge", dest="merge_with_docs", action="store_true", default=None,
                       help="Merge into objects/<L>/<Name>.json keeping curated descriptions")
    fetch.add_argument("--no-merge", dest="merge_with_docs", action="store_false",
                       help="Write raw converted schemas")
    fetch.add_argument("--batch-size", type=int, help="Objects between rate-limit pauses (SF_BATCH_SIZE)")
    fetch.add_argument("--no-resume", dest="resume", action="store_false", default=None,
                       help="Ignore any saved checkpoint")
    fetch.add_argument("--start-from-index", type=int, help="Manual start position in the catalog")
    fetch.add_argument("--include-custom", dest="skip_custom_objects", action="store_false", default=None,
                       help="Also describe custom objects")
    fetch.add_argument("--skip-custom", dest="skip_custom_objects", action="store_true",
                       help="Skip objects whose name contains '__'")
    fetch.add_argument("--no-metadata", dest="include_metadata", action="store_false",
                       help="Omit key prefix, flags, icons and relationships")

    rebuild = subparsers.add_parser("rebuild-index", help="Regenerate index.json from the objects/ tree")
    rebuild.add_argument("--doc-dir", help="Store root (DOC_DIR)")

    clean = subparsers.add_parser("clean", help="Run maintenance passes over a store")
    clean.add_argument("--doc-dir", help="Store root (DOC_DIR)")
    clean.add_argument("--custom-fields", action="store_true", help="Remove __c/__r fields")
    clean.add_argument("--min-max", action="store_true", help="Remove minimum/maximum constraints")
    clean.add_argument("--redundant-descriptions", action="store_true",
                       help="Remove descriptions that only restate the field name")
    clean.add_argument("--unwanted-objects", action="store_true",
                       help="Delete History/Event/Feed/Share objects")

    export = subparsers.add_parser("export-csv", help="Export every stored field to CSV")
    export.add_argument("--doc-dir", help="Store root (DOC_DIR)")
    export.add_argument("--output-dir", help="Directory of the CSV file, the store root by default")

    lookup = subparsers.add_parser("lookup", help="Query a store")
    lookup.add_argument("--doc-dir", help="Store root (DOC_DIR)")
    group = lookup.add_mutually_exclusive_group(required=True)
    group.add_argument("--search", metavar="PATTERN", help="Objects whose name matches a pattern")
    group.add_argument("--search-description", metavar="PATTERN",
                       help="Objects whose description matches a pattern")
    group.add_argument("--object", metavar="NAME", help="Full document of one object")
    group.add_argument("--describe", metavar="NAME", help="Description and field count of one object")

    return parser


def _pick(value, default):
    return default if value is None else value


def run_fetch(args: argparse.Namespace, settings: Settings) -> int:
    objects = (
        [name.strip() for name in args.objects.split(",") if name.strip()]
        if args.objects else settings.objects
    )
    merge_with_docs = _pick(args.merge_with_docs, settings.merge_with_docs)
    output_dir = args.output_dir or settings.output_dir
    if args.output_dir is None and merge_with_docs != settings.merge_with_docs:
        output_dir = "doc" if merge_with_docs else "schemas"

    describe_service = DescribeService(SalesforceService(settings))
    summary = describe_service.fetch_and_save(
        output_dir,
        objects=objects,
        include_metadata=args.include_metadata,
        merge_with_docs=merge_with_docs,
        batch_size=_pick(args.batch_size, settings.batch_size),
        resume=_pick(args.resume, settings.resume),
        start_from_index=_pick(args.start_from_index, settings.start_from_index),
        skip_custom_objects=_pick(args.skip_custom_objects, settings.skip_custom_objects),
        checkpoint_every=settings.checkpoint_every,
        rate_limit_pause=settings.rate_limit_pause,
    )
    print(json.dumps(summary, indent=2))
    return 0


def run_rebuild_index(args: argparse.Namespace, settings: Settings) -> int:
    index = FileService(args.doc_dir or settings.doc_dir).rebuild_index()
    print(f"Indexed {index['totalObjects']} objects")
    return 0


def run_clean(args: argparse.Namespace, settings: Settings) -> int:
    cleanup_service = CleanupService(FileService(args.doc_dir or settings.doc_dir))
    passes = [
        (args.unwanted_objects, cleanup_service.clean_unwanted_objects),
        (args.custom_fields, cleanup_service.remove_custom_fields),
        (args.min_max, cleanup_service.clean_min_max),
        (args.redundant_descriptions, cleanup_service.clean_redundant_descriptions),
    ]
    selected = [run for enabled, run in passes if enabled]
    if not selected:
        print("Nothing to do: pass at least one of --custom-fields, --min-max, "
              "--redundant-descriptions, --unwanted-objects", file=sys.stderr)
        return 2

    for run in selected:
        print(f"{run.__name__}: {json.dumps(run())}")
    return 0


def run_export_csv(args: argparse.Namespace, settings: Settings) -> int:
    file_path = FileService(args.doc_dir or settings.doc_dir).export_fields_csv(args.output_dir)
    print(file_path)
    return 0


def run_lookup(args: argparse.Namespace, settings: Settings) -> int:
    reference_service = ReferenceService(args.doc_dir or settings.doc_dir)

    try:
        if args.search is not None:
            result = reference_service.search_objects(args.search)
        elif args.search_description is not None:
            result = reference_service.search_objects_by_description(args.search_description)
        elif args.object is not None:
            result = reference_service.get_object(args.object)
        else:
            result = reference_service.get_object_description(args.describe)
    except re.error as e:
        print(f"Invalid search pattern: {e}", file=sys.stderr)
        return 2

    if result is None:
        print(f"Object not found: {args.object or args.describe}", file=sys.stderr)
        return 1
    print(json.dumps(result, indent=2, ensure_ascii=False))
    return 0


COMMANDS = {
    "fetch": run_fetch,
    "rebuild-index": run_rebuild_index,
    "clean": run_clean,
    "export-csv": run_export_csv,
    "lookup": run_lookup,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the sf-describe command."""
    load_dotenv()
    settings = get_settings()

    logging.basicConfig(
        level=settings.log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    args = build_parser().parse_args(argv)
    try:
        return COMMANDS[args.command](args, settings)
    except SalesforceAPIError as e:
        logger.error(f"Salesforce connection failed: {e}")
        print(f"\nError: {e}\n\n{CONNECTION_HELP}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
