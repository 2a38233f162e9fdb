import asyncio
import enum
import logging
from typing import Dict, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from ..storage import Collection, StorageGateway

logger = logging.getLogger(__name__)


# --- 1. CONFIGURATION ---
class ContentKind(enum.Enum):
    TALKS = "talks"
    NGOS = "ngos"


COLLECTIONS = {
    ContentKind.TALKS: Collection.TALKS,
    ContentKind.NGOS: Collection.NGOS,
}

DEFAULT_LIMITS = {
    ContentKind.TALKS: 20,
    ContentKind.NGOS: 50,
}

REFRESH_INTERVAL_SECONDS = 6 * 60 * 60


# --- 2. THE CACHE-AND-REFRESH SERVICE ---
class ContentCacheService:
    """Serves cached upstream content, repopulating it when the cache reads empty.

    There is no lock between a request-triggered refresh and a forced one for
    the same kind. Both replace the whole collection and the last insert wins.
    """

    def __init__(self, gateway: StorageGateway, fetchers: Dict[ContentKind, object]):
        self.gateway = gateway
        self.fetchers = fetchers

    def serve(
        self,
        kind: ContentKind,
        search: Optional[str] = None,
        limit: Optional[int] = None,
        type_: Optional[str] = None,
    ) -> List:
        limit = limit or DEFAULT_LIMITS[kind]
        filters = {"type": type_} if type_ else None

        # 1. Read the cache
        cached = self.gateway.find(COLLECTIONS[kind], filters, search=search, limit=limit)
        if cached:
            return cached

        # 2. Nothing matched. A search with no hits lands here too and refreshes
        # the whole collection, same as an empty cache.
        logger.info("Cache for %s returned nothing (search=%r), refreshing", kind.value, search)
        fresh = self._refresh(kind)
        return fresh[:limit]

    def force_refresh(self, kind: ContentKind) -> int:
        return len(self._refresh(kind))

    def refresh_all(self) -> Dict[ContentKind, Optional[int]]:
        """Refresh every kind independently. A failed kind maps to None."""
        counts = {}
        for kind in ContentKind:
            try:
                counts[kind] = self.force_refresh(kind)
            except Exception:
                logger.exception("Refresh of %s failed", kind.value)
                counts[kind] = None
        return counts

    def _refresh(self, kind):
        # Fetch failures propagate before anything is deleted
        records = self.fetchers[kind].fetch()
        return self.gateway.replace_all(COLLECTIONS[kind], records)


# --- 3. THE BACKGROUND SCHEDULER ---
class RefreshScheduler:
    """Runs ``force_refresh`` for every kind as APScheduler interval jobs.

    A failed run is logged and the job stays scheduled.
    """

    def __init__(self, service: ContentCacheService, interval_seconds: float = REFRESH_INTERVAL_SECONDS):
        self.service = service
        self.interval_seconds = interval_seconds
        self.scheduler: Optional[AsyncIOScheduler] = None

    @property
    def running(self) -> bool:
        return self.scheduler is not None and self.scheduler.running

    def start(self):
        if self.running:
            return
        self.scheduler = AsyncIOScheduler()
        for kind in ContentKind:
            self.scheduler.add_job(
                self._refresh_one,
                "interval", seconds=self.interval_seconds,
                args=[kind],
                id=f"refresh_{kind.value}",
                name=f"Refresh {kind.value}",
                max_instances=1,
                coalesce=True,
            )
        self.scheduler.start()
        logger.info("Refresh scheduler started, %d jobs every %ss",
                    len(self.scheduler.get_jobs()), self.interval_seconds)

    def stop(self):
        if self.scheduler is None:
            return
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        self.scheduler = None
        logger.info("Refresh scheduler stopped")

    async def tick(self):
        await asyncio.gather(*(self._refresh_one(kind) for kind in ContentKind))

    async def _refresh_one(self, kind):
        try:
            # Storage and HTTP calls are blocking, keep them off the event loop
            count = await asyncio.to_thread(self.service.force_refresh, kind)
            logger.info("Scheduled refresh of %s stored %d records", kind.value, count)
        except Exception:
            logger.exception("Scheduled refresh of %s failed", kind.value)
