# City Weather Service - City Catalog
# Static city list loading and the process-wide catalog context

import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, List, Optional, Tuple, Union

from pydantic import BaseModel, Field, ValidationError

from cityweather.search_index import PrefixSearchIndex

# Configure logging
logger = logging.getLogger(__name__)


class DatasetError(Exception):
    """Raised when the city catalog cannot be read or has the wrong shape."""


# =============================================================================
# RECORDS
# =============================================================================

class RawCoordinates(BaseModel):
    lon: float = Field(strict=True, allow_inf_nan=False)
    lat: float = Field(strict=True, allow_inf_nan=False)


class RawCityEntry(BaseModel):
    """One entry of the OpenWeatherMap ``city.list.json`` document."""
    id: int = Field(strict=True)
    name: str = Field(strict=True)
    country: str = Field(strict=True)
    coord: RawCoordinates


@dataclass(frozen=True)
class CityRecord:
    """Immutable catalog entry; ``index`` is its position in the catalog."""
    index: int
    id: int
    name: str
    country: str
    coordinates: Tuple[float, float]

    @property
    def lon(self) -> float:
        return self.coordinates[0]

    @property
    def lat(self) -> float:
        return self.coordinates[1]

    def to_dict(self) -> dict:
        """Convert record to the lookup endpoint's JSON shape."""
        return {
            "id": self.id,
            "country": self.country,
            "name": self.name,
            "coords": {"lon": self.lon, "lat": self.lat},
        }


# =============================================================================
# LOADING
# =============================================================================

def load(raw_dataset: Any) -> Tuple[CityRecord, ...]:
    """
    Parse the raw dataset into an ordered tuple of ``CityRecord``.

    Args:
        raw_dataset: Sequence of mappings with ``id``, ``name``, ``country``
            and ``coord.lon``/``coord.lat``

    Returns:
        Records in input order, ``index`` set to the 0-based position

    Raises:
        DatasetError: If the dataset or any entry has the wrong shape
    """
    if not isinstance(raw_dataset, (list, tuple)):
        raise DatasetError(
            f"City catalog must be an array, got {type(raw_dataset).__name__}"
        )

    records = []
    for position, raw in enumerate(raw_dataset):
        try:
            entry = RawCityEntry.model_validate(raw)
        except ValidationError as e:
            raise DatasetError(f"Invalid city entry at position {position}: {e}") from e

        records.append(CityRecord(
            index=position,
            id=entry.id,
            name=entry.name,
            country=entry.country,
            coordinates=(entry.coord.lon, entry.coord.lat),
        ))

    return tuple(records)


def load_file(path: Union[str, Path]) -> Tuple[CityRecord, ...]:
    """Read a JSON city list from disk and load it."""
    catalog_path = Path(path)

    try:
        with open(catalog_path, mode='r', encoding='utf-8') as fp:
            raw_dataset = json.load(fp)
    except FileNotFoundError as e:
        raise DatasetError(f"City catalog not found at: {catalog_path}") from e
    except json.JSONDecodeError as e:
        raise DatasetError(f"City catalog {catalog_path} is not valid JSON: {e}") from e
    except (OSError, UnicodeDecodeError) as e:
        raise DatasetError(f"Cannot read city catalog {catalog_path}: {e}") from e

    return load(raw_dataset)


# =============================================================================
# CATALOG CONTEXT
# =============================================================================

@dataclass(frozen=True)
class CatalogContext:
    """Loaded records paired with the search index built from them."""
    records: Tuple[CityRecord, ...]
    index: PrefixSearchIndex

    @classmethod
    def from_records(cls, records: Iterable[CityRecord]) -> "CatalogContext":
        records = tuple(records)
        return cls(records=records, index=PrefixSearchIndex.build(records))

    def lookup(self, query: str, limit: Optional[int] = None) -> List[CityRecord]:
        """Return records whose name starts with ``query``, in catalog order."""
        matches = self.index.search(query)
        if limit is not None:
            matches = matches[:limit]
        return [self.records[i] for i in matches]

    def __len__(self) -> int:
        return len(self.records)


class CatalogManager:
    """
    Owns the catalog context for the lifetime of the process.
    Built once during startup, read-only afterwards.
    """

    def __init__(self):
        self._context: Optional[CatalogContext] = None
        self.source: Optional[str] = None
        self.build_seconds: Optional[float] = None

    def initialize(self, path: Union[str, Path]) -> CatalogContext:
        """
        Load the catalog from ``path`` and build the search index.
        Any failure propagates so the application refuses to start.
        """
        if self._context is not None:
            logger.warning("Catalog already initialized - keeping existing index")
            return self._context

        start_time = time.time()
        logger.info(f"📂 Loading city catalog from: {path}")

        try:
            records = load_file(path)
            logger.info(f"📊 Loaded {len(records)} cities")
            context = CatalogContext.from_records(records)
        except Exception as e:
            logger.error(f"❌ Failed to build city catalog: {e}")
            raise

        self.build_seconds = time.time() - start_time
        self.source = str(path)
        self._context = context

        logger.info(
            f"🌳 Search index ready: {len(context.index)} names, "
            f"{context.index.node_count} nodes in {self.build_seconds:.2f}s"
        )
        return context

    def install(self, context: CatalogContext) -> None:
        """Use an already built context (tests and scripts)."""
        self._context = context

    def reset(self) -> None:
        self._context = None
        self.source = None
        self.build_seconds = None

    @property
    def is_ready(self) -> bool:
        return self._context is not None

    @property
    def context(self) -> CatalogContext:
        if self._context is None:
            raise RuntimeError("Catalog not initialized - call initialize() first")
        return self._context

    def get_info(self) -> dict:
        """Get catalog and index statistics for monitoring."""
        if self._context is None:
            return {"status": "not_loaded"}

        return {
            "status": "loaded",
            "source": self.source,
            "cities": len(self._context),
            "index_nodes": self._context.index.node_count,
            "build_seconds": round(self.build_seconds, 2) if self.build_seconds is not None else None,
        }


# =============================================================================
# GLOBAL CATALOG MANAGER INSTANCE
# =============================================================================

catalog_manager = CatalogManager()


def get_catalog() -> CatalogContext:
    """
    FastAPI dependency to get the catalog context.

    Usage in FastAPI endpoints:
        @router.get("/city")
        async def lookup(catalog: CatalogContext = Depends(get_catalog)):
            ...
    """
    return catalog_manager.context


def init_catalog(path: Union[str, Path]) -> CatalogContext:
    """
    Initialize the city catalog.
    Called during application startup.
    """
    return catalog_manager.initialize(path)
