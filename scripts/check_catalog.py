# scripts/check_catalog.py

import argparse
import logging
import sys
import time
from collections import Counter

from cityweather.catalog import CatalogContext, DatasetError, load_file
from cityweather.config import settings

# Configure logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def check_catalog(path: str, probes: list) -> int:
    """
    Load the city list the way the service does at startup, build the
    index, and report statistics. Returns a process exit code.
    """
    logger.info(f"🚀 Checking city catalog: {path}")
    start_time = time.time()

    try:
        context = CatalogContext.from_records(load_file(path))
    except DatasetError as e:
        logger.error(f"❌ {e}")
        logger.error("The service would refuse to start with this catalog")
        return 1

    build_time = time.time() - start_time
    records = context.records

    names = Counter(record.name.casefold() for record in records)
    ids = Counter(record.id for record in records)
    duplicate_names = sum(1 for count in names.values() if count > 1)
    duplicate_ids = sum(1 for count in ids.values() if count > 1)
    unnamed = sum(1 for record in records if not record.name)
    no_country = sum(1 for record in records if not record.country)

    logger.info("📊 Catalog statistics:")
    logger.info(f"   - Cities: {len(records)}")
    logger.info(f"   - Countries: {len({record.country for record in records if record.country})}")
    logger.info(f"   - Index nodes: {context.index.node_count}")
    logger.info(f"   - Load + build time: {build_time:.2f}s")

    if duplicate_names:
        logger.info(f"   - Names shared by several cities: {duplicate_names}")
    if duplicate_ids:
        logger.warning(f"⚠️  {duplicate_ids} city ids appear more than once")
    if unnamed:
        logger.warning(f"⚠️  {unnamed} cities have an empty name and cannot be found")
    if no_country:
        logger.info(f"   - Cities without a country code: {no_country}")

    for probe in probes:
        probe_start = time.perf_counter()
        matches = context.lookup(probe)
        elapsed_ms = (time.perf_counter() - probe_start) * 1000
        preview = ", ".join(f"{city.name} ({city.country})" for city in matches[:5])
        logger.info(f"🔎 {probe!r}: {len(matches)} matches in {elapsed_ms:.3f}ms {preview}")

    logger.info("✅ Catalog is loadable")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Validate the city catalog and probe the search index")
    parser.add_argument("path", nargs="?", default=settings.catalog_path, help="city list JSON file")
    parser.add_argument("-q", "--query", action="append", default=[], help="query to probe (repeatable)")
    args = parser.parse_args()
    return check_catalog(args.path, args.query)


if __name__ == "__main__":
    sys.exit(main())
