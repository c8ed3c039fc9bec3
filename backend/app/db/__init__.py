from app.db.base import Base
from app.db.session import SessionLocal, create_tables, engine, get_db, get_session_factory

__all__ = ["get_db", "get_session_factory", "create_tables", "engine", "SessionLocal", "Base"]
