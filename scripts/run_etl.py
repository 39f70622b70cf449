"""
Script to run the ETL pipeline for one entity and one source.

Usage:
    python scripts/run_etl.py --entity caregiver --file data/caregivers.csv
    python scripts/run_etl.py --entity carelog --url https://example.com/carelogs --header "Authorization=Bearer x"
    python scripts/run_etl.py --entity carelog --query "SELECT * FROM legacy_carelogs" --validate-only

Exit codes: 0 run succeeded, 1 run failed, 2 configuration error.
"""

import argparse
import asyncio
import sys
import os
import logging
from typing import Any, Dict, List, Optional

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import settings
from core.database import engine, session_scope
from core.exceptions import ConfigurationError, ExtractionRetriesExhausted
from core.logging import setup_logging
from ingestion.audit import run_and_record
from ingestion.entities import ENTITY_STRATEGIES
from schemas.pipeline import PipelineRunResult

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Load caregivers or carelogs from a file, HTTP endpoint or database query",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Load caregivers from a CSV export
  python scripts/run_etl.py --entity caregiver --file data/caregivers.csv

  # Validate carelogs from an API without writing anything
  python scripts/run_etl.py --entity carelog --url https://example.com/carelogs \\
      --header "Authorization=Bearer token" --validate-only
        """
    )
    parser.add_argument(
        "--entity",
        required=True,
        choices=sorted(ENTITY_STRATEGIES),
        help="Entity stream to load"
    )

    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--file", help="Path to a delimited file")
    source.add_argument("--url", help="HTTP endpoint returning a JSON array")
    source.add_argument("--query", help="Read query against the destination database")

    parser.add_argument(
        "--delimiter",
        default=",",
        help="Field delimiter for --file (default: ,)"
    )
    parser.add_argument(
        "--header",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="HTTP header for --url (repeatable)"
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=settings.ETL_BATCH_SIZE,
        help=f"Records per transaction (default: {settings.ETL_BATCH_SIZE})"
    )
    parser.add_argument(
        "--validate-only",
        action="store_true",
        help="Extract and transform only; write nothing"
    )
    parser.add_argument(
        "--max-retries",
        type=int,
        default=None,
        help="Extraction attempts (default: 3 for --query, 2 otherwise)"
    )
    return parser


def parse_headers(pairs: List[str]) -> Dict[str, str]:
    headers = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise ConfigurationError(
                f"Invalid header '{pair}', expected KEY=VALUE",
                context={"header": pair}
            )
        headers[key.strip()] = value.strip()
    return headers


def build_source(args: argparse.Namespace) -> Dict[str, Any]:
    if args.file:
        return {"type": "file", "path": args.file, "delimiter": args.delimiter}
    if args.url:
        return {"type": "http", "url": args.url, "headers": parse_headers(args.header)}
    return {"type": "database", "query": args.query}


def build_options(args: argparse.Namespace) -> Dict[str, Any]:
    options = {"batch_size": args.batch_size, "validate_only": args.validate_only}
    if args.max_retries is not None:
        options["max_retries"] = args.max_retries
    return options


def print_summary(result: PipelineRunResult):
    print("=" * 60)
    print(f"ETL RUN {'SUCCEEDED' if result.success else 'FAILED'}: {result.entity} from {result.source_type}")
    print("=" * 60)
    print(f"Extracted:   {result.extracted_count}")
    print(f"Transformed: {result.transformed_count}")
    print(f"Loaded:      {result.loaded_count}{' (validate only)' if result.validate_only else ''}")
    print(f"Errors:      {result.error_count}")
    print(f"Duration:    {result.duration_ms:.0f}ms")
    if result.load_result is not None:
        summary = result.load_result.summary
        print(f"Error rate:  {summary.error_rate:.1%}  by category: {summary.errors_by_category}")
    for error in result.errors[:20]:
        print(f"  {error}")
    if result.error_count > 20:
        print(f"  ... {result.error_count - 20} more")
    print("=" * 60)


async def run_etl(args: argparse.Namespace) -> int:
    """Run one pipeline and return the process exit code"""
    try:
        source = build_source(args)
        options = build_options(args)
        async with session_scope() as session:
            result, run = await run_and_record(session, args.entity, source, options)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e.message}", extra={"error_context": e.to_dict()})
        return EXIT_CONFIG
    except ExtractionRetriesExhausted as e:
        logger.error(f"ETL failed: {e.message}")
        if e.result is not None:
            print_summary(e.result)
        return EXIT_FAILED
    finally:
        await engine.dispose()

    print_summary(result)
    logger.info(f"Recorded as pipeline run {run.run_id}")
    return EXIT_OK if result.success else EXIT_FAILED


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging()
    return asyncio.run(run_etl(args))


if __name__ == "__main__":
    sys.exit(main())
