# main.py
"""
Main entry point for the ChessReviewer application.

This script handles command-line argument parsing, sets up logging,
and initiates the review by creating and running the ReviewPipeline.
"""
import argparse
import logging
import os
import sys
from shutil import which
from typing import Optional

# Allows running `python main.py` from the project root.
sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

from chess_reviewer.config import settings
from chess_reviewer.exceptions import EngineInitializationError, PGNImportError
from chess_reviewer.pipeline import ReviewPipeline
from chess_reviewer.utils.logging_config import setup_logging


def find_stockfish_executable() -> Optional[str]:
    """Tries to find the Stockfish executable in common locations."""
    # Priority 1: Environment variable
    if 'STOCKFISH_PATH' in os.environ:
        path = os.environ['STOCKFISH_PATH']
        if os.path.exists(path) and os.access(path, os.X_OK):
            return path

    # Priority 2: Common relative paths for local development
    for path in ['./stockfish/stockfish', './stockfish', './stockfish.exe']:
        if os.path.isfile(path) and os.access(path, os.X_OK):
            return os.path.abspath(path)

    # Priority 3: System PATH
    return which('stockfish')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Reviews chess games from a PGN file: labels every move and computes per-side accuracy.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    parser.add_argument("input_pgn", help="Path to the input PGN file.")
    parser.add_argument(
        "-o", "--output-pgn", required=True,
        help="Path to the output PGN file where annotated games will be appended."
    )
    parser.add_argument(
        "-s", "--stockfish",
        default=find_stockfish_executable(),
        help="Path to the Stockfish executable. Tries to find it automatically if not provided."
    )
    parser.add_argument(
        "-d", "--depth", type=int, default=settings.DEFAULT_ANALYSIS_DEPTH,
        help=f"Search depth per position (clamped to {settings.MIN_SEARCH_DEPTH}-{settings.MAX_SEARCH_DEPTH})."
    )
    parser.add_argument(
        "--workers", type=int, default=settings.DEFAULT_WORKER_COUNT,
        help=f"Engine sessions evaluating in parallel ({settings.MIN_WORKER_COUNT}-{settings.MAX_WORKER_COUNT})."
    )
    parser.add_argument(
        "--multipv", type=int, default=settings.DEFAULT_MULTI_PV,
        help=f"Ranked lines per position (at least {settings.MIN_MULTI_PV})."
    )
    parser.add_argument(
        "--threads", type=int, default=settings.DEFAULT_STOCKFISH_THREADS,
        help="CPU threads per Stockfish process."
    )
    parser.add_argument(
        "--hash", type=int, default=settings.DEFAULT_STOCKFISH_HASH_MB,
        help="Hash memory (in MB) per Stockfish process."
    )
    parser.add_argument(
        "--cloud", action="store_true",
        help="Look up opening positions in the Lichess cloud evaluation database first."
    )
    parser.add_argument(
        "-r", "--report", dest="report_path", default=settings.DEFAULT_CSV_REPORT_FILENAME,
        help="Path for the CSV summary report."
    )
    parser.add_argument(
        "--json-report", dest="json_report_path", default=None,
        help="Optional path for a JSON report with every position's review."
    )
    parser.add_argument(
        "--pgn-columns", type=int, default=settings.PGN_DEFAULT_COLUMNS,
        help="Column width for wrapping move text in the output PGN. 0 for no wrapping."
    )
    parser.add_argument(
        "--log-level", default=settings.DEFAULT_LOG_LEVEL,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        help="Set the logging level for console and file output."
    )
    parser.add_argument(
        "--log-file", default=settings.DEFAULT_LOG_FILENAME,
        help="Path to the log file."
    )
    parser.add_argument(
        "--no-console-log", action="store_true", help="Disable logging to the console."
    )
    return parser


def main():
    """Parses command-line arguments and runs the review pipeline."""
    args = build_parser().parse_args()

    setup_logging(
        log_level_str=args.log_level,
        log_file=args.log_file,
        log_to_console=not args.no_console_log
    )

    if not args.stockfish:
        logging.critical("Stockfish executable not found. Please specify the path with the -s/--stockfish argument or set the STOCKFISH_PATH environment variable.")
        sys.exit(1)

    logging.info(f"{settings.APP_NAME} starting up...")

    try:
        pipeline = ReviewPipeline(
            stockfish_path=args.stockfish,
            analysis_depth=args.depth,
            multipv_count=args.multipv,
            worker_count=args.workers,
            stockfish_threads=args.threads,
            stockfish_hash_mb=args.hash,
            pgn_write_columns=args.pgn_columns,
            use_cloud=args.cloud,
        )
        pipeline.run(
            input_pgn_path=args.input_pgn,
            output_pgn_path=args.output_pgn,
            report_path=args.report_path,
            json_report_path=args.json_report_path,
        )
    except (EngineInitializationError, PGNImportError) as e:
        logging.critical(f"{e}")
        sys.exit(1)
    except Exception as e:
        logging.critical(f"A fatal, unhandled exception occurred at the top level: {e}", exc_info=True)
        sys.exit(1)

    logging.info(f"{settings.APP_NAME} has finished successfully.")
    sys.exit(0)


if __name__ == "__main__":
    main()
