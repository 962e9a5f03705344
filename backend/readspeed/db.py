from __future__ import annotations
import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql import text
from sqlalchemy.orm import sessionmaker, declarative_base
from .settings import settings

logger = logging.getLogger(__name__)

DATABASE_URL = settings.database_url or "sqlite:///./readspeed.db"


def make_engine(url: str) -> Engine:
	# Worker threads share the engine, so SQLite must not pin connections to their creator
	connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
	return create_engine(url, connect_args=connect_args, pool_pre_ping=True, future=True)


engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
Base = declarative_base()


def init_db(bind: Engine | None = None) -> None:
	from . import models  # noqa: F401  registers tables on Base.metadata
	Base.metadata.create_all(bind=bind or engine)


def ping(bind: Engine | None = None) -> bool:
	"""Return True when the database answers a trivial query."""
	try:
		with (bind or engine).connect() as conn:
			conn.execute(text("SELECT 1"))
		return True
	except SQLAlchemyError as exc:
		logger.warning("Database ping failed: %s", exc)
		return False
