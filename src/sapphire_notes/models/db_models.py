"""SQLAlchemy database models for the metadata store."""
from sqlalchemy import Boolean, Column, DateTime, Integer, String, create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker

from sapphire_notes.config import config

# Create base class for SQLAlchemy models
Base = declarative_base()


class DBNoteMetadata(Base):
    """Database model for the metadata of one note.

    Keys are plain note names for active notes and ``archive/<name>`` for
    archived ones.
    """
    __tablename__ = "note_metadata"
    key = Column(String(1024), primary_key=True)
    font_family = Column(String(255), nullable=False)
    font_size = Column(Integer, nullable=False)
    caret_position = Column(Integer, default=0, nullable=False)
    quick_note = Column(Boolean, default=False, nullable=False)
    archived = Column(DateTime, nullable=True)

    def __repr__(self) -> str:
        """Return string representation of the metadata row."""
        return (
            f"<NoteMetadata(key='{self.key}', font='{self.font_family}', "
            f"size={self.font_size}, archived={self.archived})>"
        )


def init_db(db_url=None):
    """Create the metadata engine and schema.

    Applies SQLite settings for crash resilience:
    - WAL (Write-Ahead Logging) mode for atomic writes
    - NORMAL synchronous mode (good balance of safety vs speed)
    """
    engine = create_engine(db_url or config.get_metadata_db_url())

    # Apply WAL mode and other PRAGMA settings on every connection
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.close()

    Base.metadata.create_all(engine)
    return engine


def get_session_factory(engine=None):
    """Get a session factory for the metadata database."""
    if engine is None:
        engine = create_engine(config.get_metadata_db_url())
    return sessionmaker(bind=engine)
