from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from ..config import load_settings


def make_engine(url):
    # SQLite connections are shared with the analysis worker thread
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args, pool_pre_ping=True)


DATABASE_URL = load_settings()["DATABASE_URL"]
engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
Base = declarative_base()


def bind_engine(url):
    """Point SessionLocal at url, replacing the engine when it differs; returns the engine."""
    global engine, DATABASE_URL
    if url and url != DATABASE_URL:
        engine.dispose()
        engine = make_engine(url)
        DATABASE_URL = url
        SessionLocal.configure(bind=engine)
    return engine
