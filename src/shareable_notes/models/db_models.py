"""SQLAlchemy database models for the SQLite key/value backend."""
from typing import Optional

from sqlalchemy import Column, DateTime, String, Text, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from shareable_notes.models.schema import utc_now

# Create base class for SQLAlchemy models
Base = declarative_base()


class DBBlob(Base):
    """One serialized value stored under a logical key."""
    __tablename__ = "kv_store"
    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)

    def __repr__(self) -> str:
        """Return string representation of the entry."""
        return f"<Blob(key='{self.key}', size={len(self.value or '')})>"


def init_db(engine: Optional[Engine] = None) -> Engine:
    """Create the key/value table and return the engine used."""
    if engine is None:
        from shareable_notes.config import config

        engine = create_engine(config.get_db_url())
    Base.metadata.create_all(engine)
    return engine


def get_session_factory(engine: Engine):
    """Get a session factory for the database."""
    return sessionmaker(bind=engine, expire_on_commit=False)
