import os
from sqlalchemy import create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker, declarative_base
from dotenv import load_dotenv
import urllib.parse

# Load .env file with explicit UTF-8 encoding
load_dotenv(encoding='utf-8')

DEFAULT_DATABASE_URL = "sqlite:///./wallet.db"


def database_url_from_env(environ=None) -> str:
    environ = os.environ if environ is None else environ
    url = environ.get("DATABASE_URL") or DEFAULT_DATABASE_URL

    # urlunparse drops the empty netloc of sqlite:/// URLs
    if url.startswith("sqlite"):
        return url

    # Ensure proper encoding by parsing and reconstructing the URL
    try:
        return urllib.parse.urlunparse(urllib.parse.urlparse(url))
    except ValueError:
        return url.encode('utf-8', errors='replace').decode('utf-8')


DATABASE_URL = database_url_from_env()


def build_engine(url: str):
    """
    Build an engine whose transactions are safe for wallet units of work.

    Postgres relies on SELECT ... FOR UPDATE row locks. SQLite ignores FOR UPDATE,
    so every transaction is opened with BEGIN IMMEDIATE instead, which takes the
    database write lock up front.
    """
    if url.startswith("postgres"):
        parsed = make_url(url.replace("postgres://", "postgresql://", 1))
        # psycopg2 is the installed driver; newer SQLAlchemy defaults plain URLs to psycopg 3
        if parsed.drivername == "postgresql":
            parsed = parsed.set(drivername="postgresql+psycopg2")
        return create_engine(parsed, connect_args={"options": "-c timezone=utc"})

    if not url.startswith("sqlite"):
        return create_engine(url)

    engine = create_engine(url, connect_args={"check_same_thread": False, "timeout": 30})

    @event.listens_for(engine, "connect")
    def _sqlite_connect(dbapi_connection, connection_record):
        # let SQLAlchemy emit BEGIN itself
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _sqlite_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


engine = build_engine(DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
