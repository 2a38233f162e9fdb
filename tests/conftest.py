import itertools
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from app.config import Settings
from app.content_core import ContentCacheService, ContentKind
from app.errors import StorageError
from app.main import create_app
from app.notifier import RealtimeNotifier
from app.storage import MODELS, TEXT_INDEXES, Collection


class InMemoryGateway:
    """Dict-backed stand-in for StorageGateway, same call signatures."""

    def __init__(self):
        self.rows = {collection: [] for collection in Collection}
        self.calls = []
        self.fail_on = set()
        self.indexes_ensured = False
        self.closed = False
        self._pks = itertools.count(1)

    def _check(self, op):
        self.calls.append(op)
        if op in self.fail_on:
            raise StorageError(f"{op} failed")

    def find(self, collection, filters=None, *, search=None, limit=None, newest_first=True):
        self._check("find")
        rows = list(self.rows[collection])
        for column, value in (filters or {}).items():
            rows = [row for row in rows if getattr(row, column) == value]
        if search:
            column = TEXT_INDEXES[collection][2]
            rows = [row for row in rows if search.lower() in (getattr(row, column) or "").lower()]
        rows.sort(key=lambda row: row.pk)
        rows.sort(key=lambda row: row.created_at, reverse=newest_first)
        return rows[:limit] if limit is not None else rows

    def _build(self, collection, record, created_at):
        values = dict(record)
        if values.get("created_at") is None:
            values["created_at"] = created_at
        row = MODELS[collection](**values)
        row.pk = next(self._pks)
        return row

    def insert_one(self, collection, record):
        self._check("insert_one")
        row = self._build(collection, record, datetime.now(timezone.utc))
        self.rows[collection].append(row)
        return row

    def insert_many(self, collection, records):
        self._check("insert_many")
        created_at = datetime.now(timezone.utc)
        rows = [self._build(collection, record, created_at) for record in records]
        self.rows[collection].extend(rows)
        return len(rows)

    def delete_all(self, collection):
        self._check("delete_all")
        removed = len(self.rows[collection])
        self.rows[collection] = []
        return removed

    def replace_all(self, collection, records):
        self._check("replace_all")
        self.delete_all(collection)
        created_at = datetime.now(timezone.utc)
        rows = [self._build(collection, record, created_at) for record in records]
        self.rows[collection].extend(rows)
        return rows

    def ensure_indexes(self):
        self.indexes_ensured = True

    def ping(self):
        return "ping" not in self.fail_on

    def close(self):
        self.closed = True


class StubFetcher:
    def __init__(self, records=None, error=None):
        self.records = records or []
        self.error = error
        self.calls = 0

    def fetch(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return [dict(record) for record in self.records]


def make_talks(count, prefix="Talk"):
    return [
        {
            "external_id": str(i),
            "title": f"{prefix} {i}",
            "speaker": f"Speaker {i}",
            "description": "A talk",
            "duration": "600",
            "url": f"https://ted.example/talks/{i}",
            "thumbnail": f"https://ted.example/thumbs/{i}.jpg",
            "type": "Video",
        }
        for i in range(1, count + 1)
    ]


def make_ngos(count):
    return [
        {
            "external_id": f"{i:09d}",
            "name": f"Green Org {i}",
            "type": "NGO",
            "description": "C30",
            "website": "Not available",
            "location": "Portland, OR",
            "mission": "Environment",
        }
        for i in range(1, count + 1)
    ]


@pytest.fixture
def settings():
    return Settings(database_url="sqlite://", refresh_on_startup=False, refresh_interval_seconds=0)


@pytest.fixture
def production_settings():
    return Settings(
        database_url="sqlite://",
        environment="production",
        admin_api_key="s3cret",
        refresh_on_startup=False,
        refresh_interval_seconds=0,
    )


@pytest.fixture
def gateway():
    return InMemoryGateway()


@pytest.fixture
def talk_fetcher():
    return StubFetcher(make_talks(5))


@pytest.fixture
def ngo_fetcher():
    return StubFetcher(make_ngos(5))


@pytest.fixture
def content_service(gateway, talk_fetcher, ngo_fetcher):
    return ContentCacheService(gateway, {ContentKind.TALKS: talk_fetcher, ContentKind.NGOS: ngo_fetcher})


@pytest.fixture
def pusher_client():
    return MagicMock()


@pytest.fixture
def notifier(pusher_client):
    return RealtimeNotifier(pusher_client)


@pytest.fixture
def build_app(settings, gateway, content_service, notifier):
    def _build(app_settings=None):
        return create_app(
            app_settings or settings,
            gateway=gateway,
            content_service=content_service,
            notifier=notifier,
        )

    return _build
