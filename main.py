#!/usr/bin/env python3
"""
Invoice Extraction Pipeline - Main Entry Point.

Runs every supported document under ``--input`` through the extraction
pipeline (OCR -> LLM -> assembly -> persistence) and prints a summary.

Usage:
    python main.py --input invoice.pdf
    python main.py --input ./invoices/ --output outputs/results.json
    python main.py --input scan.png --no-database --debug

Set GROQ_API_KEY to enable LLM field extraction; without it invoices are
saved as PENDING with OCR text only.

Author: ML Engineering Team
Version: 1.0.0
"""

import argparse
import dataclasses
import json
import sys
from concurrent.futures import Future
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

# Import project modules
from config import ConfigurationManager
from config.settings import AppSettings, load_settings
from invoice_pipeline.input_handler import detect_mime_type
from invoice_pipeline.output_handler import InMemoryPersistenceGateway, PersistenceGateway
from invoice_pipeline.pipeline import build_orchestrator
from invoice_pipeline.utils.exceptions import InvoicePipelineError
from invoice_pipeline.utils.helpers import ensure_directory
from invoice_pipeline.utils.logger import get_logger, set_level, setup_logger_from_config


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed argument namespace.
    """
    parser = argparse.ArgumentParser(
        description="Invoice Extraction Pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    Process single invoice:
        python main.py --input invoice.pdf

    Process directory and keep a JSON report:
        python main.py --input ./invoices/ --output outputs/results.json

    Run without touching the database:
        python main.py --input ./invoices/ --no-database
        """
    )

    parser.add_argument(
        "--input", "-i",
        type=str,
        required=True,
        help="Input file or directory containing invoices"
    )

    parser.add_argument(
        "--output", "-o",
        type=str,
        default=None,
        help="Write a JSON report of all results to this file"
    )

    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to custom configuration file"
    )

    database = parser.add_mutually_exclusive_group()
    database.add_argument(
        "--database",
        type=str,
        default=None,
        metavar="PATH",
        help="SQLite database path (overrides configuration)"
    )
    database.add_argument(
        "--no-database",
        action="store_true",
        help="Keep records in memory only"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    return parser.parse_args(argv)


def initialize_system(args: argparse.Namespace) -> AppSettings:
    """
    Load configuration, configure logging and apply CLI overrides.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Settings for the orchestrator.
    """
    config = ConfigurationManager(args.config)
    logger = setup_logger_from_config(args.config)

    if args.debug:
        set_level("DEBUG")

    settings = load_settings(args.config)
    if args.database:
        settings = dataclasses.replace(
            settings,
            storage=dataclasses.replace(
                settings.storage, database_enabled=True, database_path=Path(args.database)
            ),
        )

    logger.info("=" * 60)
    logger.info("INVOICE EXTRACTION PIPELINE")
    logger.info("=" * 60)
    logger.info(f"Version: {config.get('project.version', '1.0.0')}")
    logger.info(f"Input: {args.input}")
    if args.no_database:
        logger.info("Database: disabled (in-memory records)")
    else:
        logger.info(f"Database: {settings.storage.database_path}")
    if not settings.llm.is_configured:
        logger.warning("LLM not configured, invoices will be saved as PENDING")

    return settings


def collect_input_files(input_arg: str) -> List[Path]:
    """
    Resolve ``--input`` to the list of files to process.

    Raises:
        FileNotFoundError: If input path doesn't exist.
        ValueError: If a single file has an unsupported type.
    """
    logger = get_logger(__name__)
    input_path = Path(input_arg)

    if not input_path.exists():
        raise FileNotFoundError(f"Input path not found: {input_path}")

    if input_path.is_file():
        if detect_mime_type(input_path.name) is None:
            raise ValueError(f"Unsupported file type: {input_path.suffix}")
        return [input_path]

    files = sorted(
        path for path in input_path.iterdir()
        if path.is_file() and detect_mime_type(path.name) is not None
    )
    if not files:
        logger.warning(f"No supported files found in: {input_path}")
    else:
        logger.info(f"Found {len(files)} files to process")
    return files


def process_files(
    files: List[Path],
    settings: AppSettings,
    gateway: Optional[PersistenceGateway] = None
) -> List[Dict[str, Any]]:
    """
    Submit every file to the orchestrator and collect one result per file.

    Returns:
        Result dictionaries with ``status`` SUCCESS or FAILED.
    """
    logger = get_logger(__name__)
    results: List[Dict[str, Any]] = []

    with build_orchestrator(settings, gateway=gateway) as orchestrator:
        submitted: List[Tuple[Path, Future]] = []
        for path in files:
            try:
                future = orchestrator.run_extraction(
                    path.read_bytes(), path.name, detect_mime_type(path.name)
                )
                submitted.append((path, future))
            except InvoicePipelineError as e:
                logger.error(f"Rejected {path.name}: {e}")
                results.append({'file': path.name, 'status': 'FAILED', 'error': e.to_dict()})

        for path, future in submitted:
            try:
                outcome = future.result()
            except InvoicePipelineError as e:
                results.append({'file': path.name, 'status': 'FAILED', 'error': e.to_dict()})
                continue

            invoice = outcome.invoice
            logger.info(
                f"  {path.name}: Invoice #{invoice.invoice_number}, "
                f"{invoice.amount} {invoice.currency}, {invoice.party_name} "
                f"[{invoice.status.value}]"
            )
            results.append({'file': path.name, 'status': 'SUCCESS', **outcome.to_dict()})

    return results


def print_summary(results: List[Dict[str, Any]]) -> None:
    succeeded = [r for r in results if r['status'] == 'SUCCESS']
    failed = [r for r in results if r['status'] == 'FAILED']

    print()
    print(f"{'File':<40} {'Status':<10} {'Invoice #':<28} {'Amount':>12}")
    print("-" * 92)
    for result in results:
        invoice = result.get('invoice', {})
        print(
            f"{result['file'][:40]:<40} {result['status']:<10} "
            f"{invoice.get('invoice_number', result.get('error', {}).get('errorCode', ''))[:28]:<28} "
            f"{invoice.get('amount', ''):>12}"
        )
    print("-" * 92)
    print(f"{len(succeeded)} succeeded, {len(failed)} failed")


def write_report(results: List[Dict[str, Any]], output_path: str) -> Path:
    path = Path(output_path)
    ensure_directory(path.parent)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(results, f, indent=2, ensure_ascii=False)
    return path


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main function - entry point for command-line execution.

    Returns:
        Exit code (0 when every file succeeded, 1 otherwise).
    """
    try:
        args = parse_arguments(argv)
        settings = initialize_system(args)
        logger = get_logger(__name__)

        input_files = collect_input_files(args.input)
        if not input_files:
            logger.error("No files to process")
            return 1

        gateway = InMemoryPersistenceGateway() if args.no_database else None
        results = process_files(input_files, settings, gateway)

        print_summary(results)
        if args.output:
            report = write_report(results, args.output)
            logger.info(f"Report written to {report}")

        logger.info("=" * 60)
        logger.info(f"Extraction complete. Processed {len(input_files)} files.")
        logger.info("=" * 60)

        return 0 if all(r['status'] == 'SUCCESS' for r in results) else 1

    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    except InvoicePipelineError as e:
        print(f"Pipeline error: {e}", file=sys.stderr)
        return 1

    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
