from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool


def make_engine(database_url: str, **kwargs):
    # 1. Create the Engine (The connection pool)
    if database_url.startswith("sqlite"):
        # One shared connection so an in-memory database survives across sessions
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        kwargs.setdefault("poolclass", StaticPool)
    else:
        kwargs.setdefault("pool_pre_ping", True)
    return create_engine(database_url, **kwargs)


def make_session_factory(engine):
    # 2. Create the Session (The 'handle' for database transactions)
    # Rows stay readable after commit, handlers serialize them after the session closes
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


# 3. Create the Base Class (All models inherit from this)
Base = declarative_base()
