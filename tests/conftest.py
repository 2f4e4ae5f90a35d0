"""Common test fixtures for the notes engine."""

import tempfile
from pathlib import Path

import pytest

from sapphire_notes.config import config
from sapphire_notes.models.db_models import init_db
from sapphire_notes.observability import metrics
from sapphire_notes.services.notes_service import NotesService
from sapphire_notes.services.preferences_service import PreferencesService
from sapphire_notes.storage.metadata_repository import NotesMetadataRepository
from sapphire_notes.storage.note_repository import FileSystemNoteRepository


@pytest.fixture
def temp_dirs():
    """Create temporary directories for notes and application data."""
    with tempfile.TemporaryDirectory() as notes_dir:
        with tempfile.TemporaryDirectory() as app_dir:
            yield Path(notes_dir), Path(app_dir)


@pytest.fixture
def notes_dir(temp_dirs):
    return temp_dirs[0]


@pytest.fixture
def test_config(temp_dirs, monkeypatch):
    """Point the global config at the temporary app data directory."""
    _, app_dir = temp_dirs
    monkeypatch.setattr(config, "app_data_dir", app_dir)
    monkeypatch.setattr(config, "metadata_db_path", Path("test_metadata.db"))
    yield config


@pytest.fixture
def preferences_service(test_config, notes_dir):
    """A loaded preferences service whose notes directory is set."""
    service = PreferencesService(test_config.get_preferences_path())
    service.load()
    service.set_notes_directory(str(notes_dir))
    yield service


@pytest.fixture
def engine(test_config):
    """A metadata database engine on a temporary SQLite file."""
    engine = init_db(test_config.get_metadata_db_url())
    yield engine
    engine.dispose()


@pytest.fixture
def metadata_repository(engine):
    return NotesMetadataRepository(engine=engine)


@pytest.fixture
def note_repository(preferences_service):
    return FileSystemNoteRepository(preferences_service)


@pytest.fixture
def notes_service(note_repository, metadata_repository):
    """Create a test NotesService."""
    yield NotesService(note_repository, metadata_repository)


class EventRecorder:
    """Collects every event a NotesService emits, in order."""

    def __init__(self, service: NotesService):
        self.events = []
        for kind in ("created", "updated", "archived", "deleted", "restored"):
            hook = getattr(service, kind)
            hook.subscribe(lambda event, kind=kind: self.events.append((kind, event)))

    @property
    def kinds(self):
        return [kind for kind, _ in self.events]


@pytest.fixture
def event_recorder(notes_service):
    return EventRecorder(notes_service)


@pytest.fixture
def fresh_metrics():
    """Reset the global metrics collector around a test."""
    metrics.reset()
    yield metrics
    metrics.reset()
