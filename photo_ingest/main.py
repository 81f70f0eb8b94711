import argparse
import logging
import sys
from pathlib import Path

from . import config
from .core import PhotoIngestApp
from .exceptions import CorruptCatalogError
from .reporting import TqdmReporter


def setup_logging(storage_root: Path, verbose: bool):
    """Sets up logging to both console and a file in the storage root."""
    log_level = logging.DEBUG if verbose else logging.INFO

    storage_root.mkdir(parents=True, exist_ok=True)
    log_file = storage_root / config.LOG_FILE

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[
            logging.FileHandler(log_file, encoding='utf-8'),
            logging.StreamHandler(sys.stdout)
        ]
    )

    # Silence chatty libraries
    logging.getLogger("exifread").setLevel(logging.ERROR)
    logging.getLogger("PIL").setLevel(logging.WARNING)


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Photo Ingest: classify Incoming against the catalog")

    p.add_argument("-s", "--storage", type=Path, default=Path("."), help="Storage root (default: current directory)")
    p.add_argument("--db", type=Path, default=None, help=f"Custom catalog path (default: storage/{config.CATALOG_FILE})")
    p.add_argument("--sorted-duplicates", choices=config.SORTED_DUPLICATE_POLICIES,
                   default=config.DEFAULT_SORTED_DUPLICATE_POLICY,
                   help="Merge sorted copies of catalogued content, or only warn about them")
    p.add_argument("--dry-run", action="store_true", help="Log intended moves without touching the disk")
    p.add_argument("--report-csv", type=Path, default=None, help="Write every action of the run to this CSV")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    storage_root = args.storage.resolve()
    setup_logging(storage_root, args.verbose)

    logging.info("=== Photo Ingest Started ===")
    logging.info(f"Storage: {storage_root}")

    app = PhotoIngestApp(
        storage_root,
        catalog_path=args.db.resolve() if args.db else None,
        reporter=TqdmReporter(),
        sorted_duplicate_policy=args.sorted_duplicates,
        dry_run=args.dry_run,
        show_progress=True,
    )

    try:
        result = app.run(handle_signals=True, report_csv=args.report_csv)
    except CorruptCatalogError as e:
        logging.error(f"Catalog cannot be loaded: {e}")
        sys.exit(1)
    except Exception:
        logging.exception("Fatal error during ingest.")
        sys.exit(1)

    if not result.saved and not args.dry_run:
        sys.exit(1)
    if result.cancelled:
        logging.warning("Operation cancelled by user.")
        sys.exit(130)


if __name__ == "__main__":
    main()
