"""Static feed load pipeline."""

from transit_feed_api.services.feed.fetcher import FeedFetcher
from transit_feed_api.services.feed.loader import FeedLoader, LoadReport, LoadStatus
from transit_feed_api.services.feed.normalizer import FeedNormalizer, RowResult
from transit_feed_api.services.feed.parser import FeedParser
from transit_feed_api.services.feed.reader import FeedArchive
from transit_feed_api.services.feed.reload import ReloadCoordinator, ReloadInProgressError

__all__ = [
    "FeedArchive",
    "FeedFetcher",
    "FeedLoader",
    "FeedNormalizer",
    "FeedParser",
    "LoadReport",
    "LoadStatus",
    "ReloadCoordinator",
    "ReloadInProgressError",
    "RowResult",
]
