# City Weather Service - City Lookup Endpoint
# Prefix search over the in-memory city catalog

import logging
import time
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from cityweather.catalog import CatalogContext, get_catalog
from cityweather.kafka_logger import KafkaLogger, get_kafka_logger
from cityweather.schemas import CityResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/city", response_model=List[CityResponse])
async def lookup_city(
    q: Optional[str] = Query(None, description="Start of the city name, any case"),
    limit: Optional[int] = Query(None, ge=1, description="Max results to return; all when omitted"),
    catalog: CatalogContext = Depends(get_catalog),
    kafka: KafkaLogger = Depends(get_kafka_logger),
):
    """
    Return cities whose name starts with ``q``, in catalog order.

    Matching is case-insensitive and anchored at the start of the full name,
    so "noord" does not find "Amsterdam Noord". Missing or empty ``q``
    returns an empty list.
    """
    start_time = time.time()
    query = q or ""

    matches = catalog.lookup(query, limit=limit)

    kafka.log_request("city", query, time.time() - start_time, status_code=200, result_count=len(matches))
    return [record.to_dict() for record in matches]
