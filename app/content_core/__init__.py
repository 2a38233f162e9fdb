from .fetchers import NgoFetcher, TedTalksFetcher, UpstreamFetcher
from .service import ContentCacheService, ContentKind, RefreshScheduler

__all__ = [
    "ContentCacheService",
    "ContentKind",
    "NgoFetcher",
    "RefreshScheduler",
    "TedTalksFetcher",
    "UpstreamFetcher",
]
