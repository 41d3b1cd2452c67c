import threading
from sqlalchemy import create_engine, inspect, MetaData, URL
from sqlalchemy.exc import OperationalError, ProgrammingError
from sqlalchemy.orm import sessionmaker
from urllib.parse import quote_plus, unquote_plus
import os
from urllib.parse import urlparse, urlunparse

from loguru import logger

from schemalock.exceptions import ConfigurationError, StoreUnavailable


def get_engine(url: str | URL | None = None, **kwargs):
    """Create a SQLAlchemy engine. Defaults to in-memory SQLite when url is None."""
    url = url or "sqlite:///:memory:"
    # Normalize plain paths and credentials that need percent-encoding
    if isinstance(url, str):
        url = normalize_db_url(url)
    # Enable pool_pre_ping to reduce spurious auth/connection issues on some servers
    kwargs.setdefault("echo", False)
    kwargs.setdefault("pool_pre_ping", True)
    engine = create_engine(url, future=True, **kwargs)
    return engine


def normalize_db_url(value: str) -> str:
    """Normalize different DB connection representations into a SQLAlchemy URL.

    - If value already looks like a URL (contains '://'), return it with the
      credentials percent-encoded.
    - If value looks like a filesystem path, convert to sqlite URL.
    """
    if not value:
        return value

    # already a URL (e.g. sqlite, mysql+pymysql, etc.).
    # Only mutate it when username/password need percent-encoding; otherwise
    # return the original value unchanged.
    if "://" in value:
        try:
            parsed = urlparse(value)
        except ValueError:
            return value

        # Unquote first to avoid double-encoding when callers already pass
        # percent-encoded credentials (e.g., SqlP%40ss8).
        if parsed.username or parsed.password:
            username_raw = unquote_plus(parsed.username) if parsed.username else None
            password_raw = unquote_plus(parsed.password) if parsed.password else None
            username = quote_plus(username_raw) if username_raw is not None else None
            password = quote_plus(password_raw) if password_raw is not None else None
            hostport = parsed.hostname or ""
            if parsed.port:
                hostport = f"{hostport}:{parsed.port}"
            userinfo = ""
            if username is not None:
                userinfo = username
                if password is not None:
                    userinfo = f"{userinfo}:{password}"
                userinfo = f"{userinfo}@"
            rebuilt = parsed._replace(netloc=f"{userinfo}{hostport}")
            return urlunparse(rebuilt)

        return value

    # treat as a filesystem path -> sqlite
    v = value.replace("\\", "/")
    if os.path.exists(v) or "/" in v or "\\" in value or v.endswith(".db"):
        return f"sqlite:///{v}"

    return value


def get_sessionmaker(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


def init_db(engine):
    """Create the lock, schema version and migration tables if missing."""
    # Import models lazily to avoid circular imports at package import time
    from schemalock.models import Base

    Base.metadata.create_all(engine)


def drop_db(engine, drop_all: bool = False):
    """Drop the managed tables, or every table in the database when drop_all is set."""
    from schemalock.models import Base

    if drop_all:
        metadata = MetaData()
        metadata.reflect(bind=engine)
        logger.debug(f"Dropping all tables: {sorted(metadata.tables)}")
        metadata.drop_all(engine)
    else:
        logger.debug(f"Dropping managed tables: {sorted(Base.metadata.tables)}")
        Base.metadata.drop_all(engine)


class InMemoryAdapter:
    """Lightweight in-memory DB adapter for tests.

    Usage:
        adapter = InMemoryAdapter()
        session = adapter.session()
    """

    def __init__(self):
        self.engine = get_engine("sqlite:///:memory:")
        self.Session = get_sessionmaker(self.engine)
        init_db(self.engine)

    def session(self):
        return self.Session()


class TableStore:
    """Base for stores owning one table that is created lazily on first use.

    Creation runs at most once per store instance; concurrent first callers
    in the same process wait on the same lock instead of racing to create
    the table.
    """

    model = None

    def __init__(self, engine):
        if engine is None:
            raise ConfigurationError(f"{type(self).__name__} requires an engine")
        self.engine = engine
        self.Session = get_sessionmaker(engine)
        self._ready = False
        self._ready_lock = threading.Lock()

    def ensure_ready(self) -> None:
        if self._ready:
            return
        with self._ready_lock:
            if self._ready:
                return
            logger.debug(f"{self.model.__name__}.sync() ...")
            try:
                self._create_table()
            except (OperationalError, ProgrammingError) as e:
                # Another process may have created it between the check and the CREATE
                try:
                    exists = inspect(self.engine).has_table(self.model.__tablename__)
                except OperationalError:
                    exists = False
                if not exists:
                    raise StoreUnavailable("create_table", e) from e
            self._ready = True

    def _create_table(self) -> None:
        self.model.__table__.create(self.engine, checkfirst=True)

    def invalidate(self) -> None:
        """Forget that the table exists, e.g. after it was dropped."""
        with self._ready_lock:
            self._ready = False
