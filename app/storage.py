"""Storage gateway over the four collections the platform keeps.

Every route, the content pipeline and the refresh scheduler go through one
``StorageGateway`` built at startup. Each public call opens its own session,
so a call is the unit of atomicity the rest of the app can rely on.
"""
import enum
import logging
from datetime import datetime, timezone
from typing import Iterable, List, Mapping, Optional

from sqlalchemy import delete, func, select, text
from sqlalchemy.exc import SQLAlchemyError

from . import models
from .database import make_engine, make_session_factory
from .errors import StartupError, StorageError

logger = logging.getLogger(__name__)


class Collection(enum.Enum):
    CHECKINS = "map_checkins"
    TALKS = "ted_talks"
    NGOS = "ngos"
    MESSAGES = "chat_messages"


MODELS = {
    Collection.CHECKINS: models.CheckIn,
    Collection.TALKS: models.Talk,
    Collection.NGOS: models.Ngo,
    Collection.MESSAGES: models.ChatMessage,
}

# (index name, table, column) for keyword search
TEXT_INDEXES = {
    Collection.TALKS: ("title_text_index", "ted_talks", "title"),
    Collection.NGOS: ("ngo_name_text_index", "ngos", "name"),
}


def _now():
    return datetime.now(timezone.utc)


class StorageGateway:
    def __init__(self, engine):
        self.engine = engine
        self.session_factory = make_session_factory(engine)

    @classmethod
    def from_url(cls, database_url: str):
        return cls(make_engine(database_url))

    @property
    def is_postgres(self) -> bool:
        return self.engine.dialect.name == "postgresql"

    # --- READS ---
    def find(
        self,
        collection: Collection,
        filters: Optional[Mapping] = None,
        *,
        search: Optional[str] = None,
        limit: Optional[int] = None,
        newest_first: bool = True,
    ) -> List:
        model = MODELS[collection]
        stmt = select(model)
        for column, value in (filters or {}).items():
            stmt = stmt.where(getattr(model, column) == value)
        if search:
            stmt = stmt.where(self._search_clause(collection, search))

        order = model.created_at.desc() if newest_first else model.created_at.asc()
        # Ties keep insertion order, so a refreshed batch reads back in fetch order
        stmt = stmt.order_by(order, model.pk.asc())
        if limit is not None:
            stmt = stmt.limit(limit)

        try:
            with self.session_factory() as session:
                return list(session.scalars(stmt))
        except SQLAlchemyError as exc:
            raise StorageError(f"find on {collection.value} failed") from exc

    def _search_clause(self, collection, term):
        if collection not in TEXT_INDEXES:
            raise ValueError(f"{collection.value} has no text index")
        _, _, column_name = TEXT_INDEXES[collection]
        column = getattr(MODELS[collection], column_name)
        if self.is_postgres:
            # Same expression as the GIN index, so the planner can use it
            return func.to_tsvector("english", column).op("@@")(
                func.plainto_tsquery("english", term)
            )
        return column.ilike(f"%{term}%")

    # --- WRITES ---
    def insert_one(self, collection: Collection, record: Mapping):
        row = self._build(collection, record, _now())
        try:
            with self.session_factory() as session:
                session.add(row)
                session.commit()
                return row
        except SQLAlchemyError as exc:
            raise StorageError(f"insert into {collection.value} failed") from exc

    def insert_many(self, collection: Collection, records: Iterable[Mapping]) -> int:
        return len(self._insert_rows(collection, records))

    def delete_all(self, collection: Collection) -> int:
        model = MODELS[collection]
        try:
            with self.session_factory() as session:
                result = session.execute(delete(model))
                session.commit()
                return result.rowcount
        except SQLAlchemyError as exc:
            raise StorageError(f"delete on {collection.value} failed") from exc

    def replace_all(self, collection: Collection, records: Iterable[Mapping]) -> List:
        """Swap the whole collection for ``records`` and return the stored rows.

        Delete and insert commit separately: a reader in between sees an empty
        collection. Making this a single transaction only touches this method.
        """
        records = list(records)
        removed = self.delete_all(collection)
        rows = self._insert_rows(collection, records)
        logger.info("Replaced %s: %d removed, %d inserted", collection.value, removed, len(rows))
        return rows

    def _insert_rows(self, collection, records):
        # One timestamp per batch
        created_at = _now()
        rows = [self._build(collection, record, created_at) for record in records]
        if not rows:
            return rows
        try:
            with self.session_factory() as session:
                session.add_all(rows)
                session.commit()
                return rows
        except SQLAlchemyError as exc:
            raise StorageError(f"bulk insert into {collection.value} failed") from exc

    @staticmethod
    def _build(collection, record, created_at):
        values = dict(record)
        if values.get("created_at") is None:
            values["created_at"] = created_at
        return MODELS[collection](**values)

    # --- LIFECYCLE ---
    def ensure_indexes(self):
        """Create tables and indexes, safe to run on every startup."""
        try:
            if self.is_postgres:
                with self.engine.begin() as conn:
                    conn.execute(text("CREATE EXTENSION IF NOT EXISTS postgis"))
            # GiST on map_checkins.geom comes from geoalchemy2, btree recency indexes from the models
            models.Base.metadata.create_all(bind=self.engine)
            if self.is_postgres:
                with self.engine.begin() as conn:
                    for name, table, column in TEXT_INDEXES.values():
                        conn.execute(text(
                            f"CREATE INDEX IF NOT EXISTS {name} ON {table} "
                            f"USING gin (to_tsvector('english', {column}))"
                        ))
        except SQLAlchemyError as exc:
            raise StartupError("Failed to create indexes") from exc
        logger.info("Indexes ensured on %s", self.engine.url.render_as_string(hide_password=True))

    def ping(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            logger.warning("Database ping failed", exc_info=True)
            return False

    def close(self):
        self.engine.dispose()
