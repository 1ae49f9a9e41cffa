import logging
from typing import Any, Dict, List, Optional

from fastapi.concurrency import run_in_threadpool

from diagnostics_app.cache.factory import CacheNamespace
from diagnostics_app.cache.strategies import CacheStrategy
from diagnostics_app.config import settings
from diagnostics_app.exceptions import BatchTooLargeError, ValidationError
from diagnostics_app.geo.strategies import GeoLookupStrategy

logger = logging.getLogger(__name__)


class GeoService:
    """
    Batch IP geolocation with cache-aside.

    Only successful records are cached: a failed lookup (reserved range,
    invalid query) is cheap to repeat and may succeed later.
    """

    def __init__(self, lookup: GeoLookupStrategy, cache: Optional[CacheStrategy] = None):
        self.lookup_backend = lookup
        self.cache = cache

    @staticmethod
    def validate_queries(queries: Any) -> List[Dict[str, str]]:
        if not isinstance(queries, list):
            raise ValidationError("Invalid request body. Expected array of IP queries.")
        if not queries:
            raise ValidationError("At least one IP query is required.")
        if len(queries) > settings.geo_batch_limit:
            raise BatchTooLargeError(len(queries), settings.geo_batch_limit)

        cleaned = []
        for item in queries:
            if not isinstance(item, dict) or not isinstance(item.get("query"), str):
                raise ValidationError("Invalid request body. Expected array of IP queries.")
            query = item["query"].strip()
            if not query:
                raise ValidationError("IP query must not be blank.")
            cleaned.append({"query": query})
        return cleaned

    async def lookup(self, queries: Any) -> List[Dict]:
        """
        Geolocate up to geo_batch_limit IPs.

        Returns one record per query in request order. Raises
        ValidationError / BatchTooLargeError for bad input and
        GeoLookupError when the backend fails.
        """
        queries = self.validate_queries(queries)
        records: List[Optional[Dict]] = [None] * len(queries)
        misses: List[str] = []

        for position, item in enumerate(queries):
            ip = item["query"]
            cached = await self.cache.get_json(CacheNamespace.GEO.key(ip)) if self.cache else None
            if cached is not None:
                records[position] = cached
            elif ip not in misses:
                misses.append(ip)

        if misses:
            logger.debug("Geolocating %d uncached IPs", len(misses))
            fetched = await run_in_threadpool(
                self.lookup_backend.lookup_batch, [{"query": ip} for ip in misses]
            )
            by_ip = dict(zip(misses, fetched))

            for ip, record in by_ip.items():
                if self.cache and record.get("status") == "success":
                    await self.cache.set_json(CacheNamespace.GEO.key(ip), record, ttl=CacheNamespace.GEO.ttl)

            for position, item in enumerate(queries):
                if records[position] is None:
                    records[position] = by_ip.get(
                        item["query"], {"status": "fail", "message": "no response", "query": item["query"]}
                    )

        return records

    async def lookup_one(self, ip: str) -> Dict:
        records = await self.lookup([{"query": ip}])
        return records[0]
