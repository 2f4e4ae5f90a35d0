"""Tests for the note lifecycle service."""

import datetime
import os
from datetime import timezone

import pytest
from pydantic import ValidationError as PydanticValidationError

from sapphire_notes.exceptions import (
    ConfigurationError,
    ErrorCode,
    MetadataNotFoundError,
    NoteValidationError,
)
from sapphire_notes.models.schema import Note
from sapphire_notes.services.notes_service import NotesService
from sapphire_notes.storage.metadata_repository import NotesMetadataRepository
from sapphire_notes.storage.note_repository import FileSystemNoteRepository

FONT = "Georgia"
SIZE = 14


def set_mtime(path, timestamp):
    os.utime(path, (timestamp, timestamp))


class TestCreate:
    def test_create_then_load(self, notes_service):
        notes_service.create("Groceries", FONT, SIZE)

        notes = notes_service.load()
        assert [n.name for n in notes] == ["Groceries"]
        assert notes[0].content == ""
        assert notes[0].metadata.font_family == FONT
        assert notes[0].metadata.font_size == SIZE

    def test_create_returns_note_with_metadata(self, notes_service):
        note = notes_service.create("Groceries", FONT, SIZE)
        assert note.name == "Groceries"
        assert note.is_dirty is False
        assert note.metadata.quick_note is False
        assert note.metadata.caret_position == 0

    def test_name_is_trimmed(self, notes_service, notes_dir):
        note = notes_service.create("  Groceries  ", FONT, SIZE)
        assert note.name == "Groceries"
        assert (notes_dir / "Groceries.txt").exists()

    def test_metadata_is_persisted(self, notes_service, engine):
        notes_service.create("Groceries", FONT, SIZE)
        stored = NotesMetadataRepository(engine=engine).get("Groceries")
        assert stored.font_family == FONT

    @pytest.mark.parametrize(
        "name, code",
        [
            ("", ErrorCode.NOTE_NAME_REQUIRED),
            ("   ", ErrorCode.NOTE_NAME_REQUIRED),
            ("a/b", ErrorCode.NOTE_NAME_INVALID),
            ("what?", ErrorCode.NOTE_NAME_INVALID),
        ],
    )
    def test_invalid_names_touch_nothing(
        self, notes_service, notes_dir, event_recorder, name, code
    ):
        with pytest.raises(NoteValidationError) as exc_info:
            notes_service.create(name, FONT, SIZE)
        assert exc_info.value.code == code
        assert list(notes_dir.iterdir()) == []
        assert len(notes_service.metadata) == 0
        assert event_recorder.events == []

    def test_duplicate_name_ignores_case(self, notes_service, notes_dir):
        notes_service.create("Groceries", FONT, SIZE)
        with pytest.raises(NoteValidationError) as exc_info:
            notes_service.create("GROCERIES", FONT, SIZE)
        assert exc_info.value.code == ErrorCode.NOTE_ALREADY_EXISTS
        assert exc_info.value.message == "A note with the same name already exists."
        assert [p.name for p in notes_dir.iterdir()] == ["Groceries.txt"]

    def test_archived_name_can_be_reused(self, notes_service):
        old = notes_service.create("Groceries", FONT, SIZE)
        notes_service.archive(old)
        note = notes_service.create("Groceries", FONT, SIZE)
        assert note.name == "Groceries"

    def test_invalid_font_size_creates_nothing(self, notes_service, notes_dir):
        with pytest.raises(PydanticValidationError):
            notes_service.create("Groceries", FONT, 0)
        assert list(notes_dir.iterdir()) == []


class TestCreateQuick:
    def test_quick_note_names(self, notes_service):
        first = notes_service.create_quick("milk", FONT, SIZE)
        second = notes_service.create_quick("eggs", FONT, SIZE)
        assert first.name == "Quick note"
        assert second.name == "Quick note 1"

    def test_quick_note_metadata(self, notes_service, notes_dir):
        note = notes_service.create_quick("remember the milk", FONT, SIZE)
        assert note.content == "remember the milk"
        assert note.metadata.quick_note is True
        assert note.metadata.caret_position == len("remember the milk")
        assert (notes_dir / "Quick note.txt").read_text(encoding="utf-8") == (
            "remember the milk"
        )
        assert notes_service.metadata.get("Quick note").quick_note is True

    def test_quick_note_skips_name_taken_in_other_casing(self, notes_service, notes_dir):
        notes_service.create("quick note", FONT, SIZE)

        note = notes_service.create_quick("x", FONT, SIZE)

        assert note.name == "Quick note 1"
        assert sorted(p.name for p in notes_dir.glob("*.txt")) == [
            "Quick note 1.txt",
            "quick note.txt",
        ]

    def test_quick_note_emits_created(self, notes_service, event_recorder):
        note = notes_service.create_quick("x", FONT, SIZE)
        assert event_recorder.kinds == ["created"]
        assert event_recorder.events[0][1].note is note


class TestRename:
    def test_rename_moves_file_and_metadata(self, notes_service, notes_dir, event_recorder):
        note = notes_service.create("Old", FONT, SIZE)
        notes_service.update(note, "New")

        assert note.name == "New"
        assert (notes_dir / "New.txt").exists()
        assert not (notes_dir / "Old.txt").exists()
        assert notes_service.metadata.contains("New")
        assert not notes_service.metadata.contains("Old")

        kind, event = event_recorder.events[-1]
        assert kind == "updated"
        assert event.original_name == "Old"
        assert event.note is note

    def test_case_only_self_rename(self, notes_service, notes_dir):
        note = notes_service.create("groceries", FONT, SIZE)
        notes_service.update(note, "Groceries")
        assert note.name == "Groceries"
        assert [p.name for p in notes_dir.iterdir()] == ["Groceries.txt"]

    def test_rename_onto_other_note_ignoring_case(self, notes_service, notes_dir):
        first = notes_service.create("First", FONT, SIZE)
        notes_service.create("Second", FONT, SIZE)

        with pytest.raises(NoteValidationError) as exc_info:
            notes_service.update(first, "SECOND")
        assert exc_info.value.code == ErrorCode.NOTE_ALREADY_EXISTS
        assert first.name == "First"
        assert sorted(p.name for p in notes_dir.iterdir()) == ["First.txt", "Second.txt"]

    def test_rename_to_same_name_is_noop(self, notes_service, event_recorder):
        note = notes_service.create("Same", FONT, SIZE)
        notes_service.update(note, "  Same ")
        assert event_recorder.kinds == ["created"]

    def test_rename_to_invalid_name(self, notes_service, notes_dir):
        note = notes_service.create("Old", FONT, SIZE)
        with pytest.raises(NoteValidationError):
            notes_service.update(note, "a:b")
        assert note.name == "Old"
        assert (notes_dir / "Old.txt").exists()

    def test_metadata_follows_rename(self, notes_service):
        note = notes_service.create("Old", FONT, SIZE)
        note.metadata.caret_position = 12
        notes_service.update(note, "New")
        assert notes_service.metadata.get("New").caret_position == 12


class TestArchive:
    def test_archive_saves_content_first(self, notes_service, notes_dir):
        note = notes_service.create("Draft", FONT, SIZE)
        note.content = "unsaved edits"
        note.is_dirty = True

        notes_service.archive(note)

        assert note.is_dirty is False
        assert (notes_dir / "archive" / "Draft.txt").read_text(encoding="utf-8") == (
            "unsaved edits"
        )
        assert not (notes_dir / "Draft.txt").exists()

    def test_archive_moves_metadata_key(self, notes_service, event_recorder):
        note = notes_service.create("Draft", FONT, SIZE)
        notes_service.archive(note)

        assert not notes_service.metadata.contains("Draft")
        metadata = notes_service.metadata.get("archive/Draft")
        assert metadata.is_archived
        assert note.metadata is metadata
        assert event_recorder.kinds == ["created", "archived"]

    def test_archived_notes_leave_active_list(self, notes_service):
        notes_service.create("Keep", FONT, SIZE)
        draft = notes_service.create("Draft", FONT, SIZE)
        notes_service.archive(draft)

        assert [n.name for n in notes_service.load()] == ["Keep"]
        assert [n.name for n in notes_service.load_archived()] == ["Draft"]

    def test_archive_name_clash(self, notes_service):
        first = notes_service.create("Draft", FONT, SIZE)
        notes_service.archive(first)
        second = notes_service.create("Draft", FONT, SIZE)
        notes_service.archive(second)

        assert second.name == "Draft 1"
        assert notes_service.metadata.contains("archive/Draft")
        assert notes_service.metadata.contains("archive/Draft 1")


class TestRestore:
    def test_archive_then_restore(self, notes_service, notes_dir, event_recorder):
        note = notes_service.create("Draft", FONT, SIZE)
        note.content = "body"
        notes_service.archive(note)

        archived = notes_service.load_archived()[0]
        notes_service.restore(archived)

        assert archived.name == "Draft"
        assert archived.metadata.archived is None
        assert notes_service.metadata.contains("Draft")
        assert not notes_service.metadata.contains("archive/Draft")
        assert (notes_dir / "Draft.txt").read_text(encoding="utf-8") == "body"

        active = notes_service.load()
        assert [(n.name, n.content) for n in active] == [("Draft", "body")]
        assert event_recorder.kinds[-1] == "restored"

    def test_restore_keeps_fonts(self, notes_service):
        note = notes_service.create("Draft", "Courier", 22)
        notes_service.archive(note)
        notes_service.restore(note)
        assert notes_service.metadata.get("Draft").font_family == "Courier"
        assert notes_service.metadata.get("Draft").font_size == 22

    def test_restore_name_clash(self, notes_service):
        note = notes_service.create("Draft", FONT, SIZE)
        notes_service.archive(note)
        notes_service.create("Draft", FONT, SIZE)

        notes_service.restore(note)

        assert note.name == "Draft 1"
        assert notes_service.metadata.contains("Draft 1")
        assert notes_service.metadata.contains("Draft")

    def test_restore_clash_in_other_casing(self, notes_service):
        note = notes_service.create("todo", FONT, SIZE)
        notes_service.archive(note)
        notes_service.create("Todo", FONT, SIZE)

        notes_service.restore(note)

        assert note.name == "todo 1"
        assert sorted(n.name for n in notes_service.load()) == ["Todo", "todo 1"]


class TestDelete:
    def test_delete_active(self, notes_service, notes_dir, event_recorder):
        note = notes_service.create("Todo", FONT, SIZE)
        notes_service.delete(note)

        assert not (notes_dir / "Todo.txt").exists()
        assert not notes_service.metadata.contains("Todo")
        assert event_recorder.kinds == ["created", "deleted"]

    def test_delete_archived_removes_archive_key(self, notes_service, notes_dir):
        note = notes_service.create("Todo", FONT, SIZE)
        notes_service.archive(note)
        archived = notes_service.load_archived()[0]

        notes_service.delete(archived)

        assert not (notes_dir / "archive" / "Todo.txt").exists()
        assert not notes_service.metadata.contains("archive/Todo")
        assert notes_service.load_archived() == []

    def test_delete_does_not_touch_same_named_archive(self, notes_service, notes_dir):
        old = notes_service.create("Todo", FONT, SIZE)
        notes_service.archive(old)
        current = notes_service.create("Todo", FONT, SIZE)

        notes_service.delete(current)

        assert (notes_dir / "archive" / "Todo.txt").exists()
        assert notes_service.metadata.contains("archive/Todo")


class TestDeleteWithoutMetadata:
    def test_active_note_found_by_plain_key(self, notes_service, notes_dir):
        notes_service.create("Todo", FONT, SIZE)
        notes_service.delete(Note(name="Todo"))
        assert not (notes_dir / "Todo.txt").exists()
        assert not notes_service.metadata.contains("Todo")

    def test_archived_note_found_by_archive_key(self, notes_service, notes_dir):
        notes_service.archive(notes_service.create("Todo", FONT, SIZE))
        notes_service.delete(Note(name="Todo"))
        assert not (notes_dir / "archive" / "Todo.txt").exists()
        assert not notes_service.metadata.contains("archive/Todo")

    def test_ambiguous_name_deletes_nothing(self, notes_service, notes_dir):
        notes_service.archive(notes_service.create("Todo", FONT, SIZE))
        notes_service.create("Todo", FONT, SIZE)

        with pytest.raises(MetadataNotFoundError):
            notes_service.delete(Note(name="Todo"))

        assert (notes_dir / "Todo.txt").exists()
        assert (notes_dir / "archive" / "Todo.txt").exists()
        assert notes_service.metadata.contains("Todo")
        assert notes_service.metadata.contains("archive/Todo")

    def test_unknown_note(self, notes_service):
        with pytest.raises(MetadataNotFoundError):
            notes_service.delete(Note(name="Ghost"))


class TestLoad:
    def test_sorted_by_last_write_time(self, notes_service, notes_dir):
        for name in ("B", "A", "C"):
            notes_service.create(name, FONT, SIZE)
        set_mtime(notes_dir / "A.txt", 1_700_000_300)
        set_mtime(notes_dir / "B.txt", 1_700_000_100)
        set_mtime(notes_dir / "C.txt", 1_700_000_200)

        assert [n.name for n in notes_service.load()] == ["B", "C", "A"]

    def test_external_files_get_default_metadata(self, notes_service, notes_dir, engine):
        (notes_dir / "Dropped in.txt").write_text("hello", encoding="utf-8")

        notes = notes_service.load()

        assert notes[0].name == "Dropped in"
        assert notes[0].content == "hello"
        assert notes[0].metadata.font_family == notes_service.metadata.default_font_family
        assert NotesMetadataRepository(engine=engine).contains("Dropped in")

    def test_archived_files_get_archived_metadata(self, notes_service, notes_dir):
        (notes_dir / "archive").mkdir()
        (notes_dir / "archive" / "Old.txt").write_text("x", encoding="utf-8")

        assert notes_service.load() == []
        assert notes_service.metadata.get("archive/Old").is_archived

    def test_stale_metadata_is_purged(self, notes_service, notes_dir, engine):
        notes_service.create("Gone", FONT, SIZE)
        (notes_dir / "Gone.txt").unlink()

        assert notes_service.load() == []
        assert not NotesMetadataRepository(engine=engine).contains("Gone")

    def test_empty_directory(self, notes_service):
        assert notes_service.load() == []

    def test_unicode_names_and_content(self, notes_service):
        note = notes_service.create("Café 日本語 📝", FONT, SIZE)
        note.content = "Zürich → 東京"
        notes_service.save_all([note])

        loaded = notes_service.load()
        assert [(n.name, n.content) for n in loaded] == [
            ("Café 日本語 📝", "Zürich → 東京")
        ]


class TestLoadArchived:
    def test_most_recently_archived_first(self, notes_service):
        for name in ("First", "Second"):
            notes_service.archive(notes_service.create(name, FONT, SIZE))
        notes_service.metadata.get("archive/First").archived = datetime.datetime(
            2030, 1, 1, tzinfo=timezone.utc
        )

        assert [n.name for n in notes_service.load_archived()] == ["First", "Second"]

    def test_missing_metadata_stamped_with_file_time(
        self, notes_service, notes_dir, engine
    ):
        archive_dir = notes_dir / "archive"
        archive_dir.mkdir()
        (archive_dir / "Old.txt").write_text("old body", encoding="utf-8")
        set_mtime(archive_dir / "Old.txt", 1_600_000_000)

        notes = notes_service.load_archived()

        assert notes[0].content == "old body"
        expected = datetime.datetime.fromtimestamp(1_600_000_000, tz=timezone.utc)
        assert notes[0].metadata.archived == expected
        assert NotesMetadataRepository(engine=engine).contains("archive/Old")


class TestSaveAll:
    def test_save_all_writes_every_note(self, notes_service, notes_dir):
        a = notes_service.create("A", FONT, SIZE)
        b = notes_service.create("B", FONT, SIZE)
        a.content, b.content = "alpha", "beta"
        a.is_dirty = b.is_dirty = True

        assert notes_service.save_all([a, b]) == 2
        assert (notes_dir / "A.txt").read_text(encoding="utf-8") == "alpha"
        assert (notes_dir / "B.txt").read_text(encoding="utf-8") == "beta"
        assert not a.is_dirty and not b.is_dirty

    def test_save_all_with_metadata_writes_only_dirty(
        self, notes_service, notes_dir, engine
    ):
        a = notes_service.create("A", FONT, SIZE)
        b = notes_service.create("B", FONT, SIZE)
        a.content, a.is_dirty = "alpha", True
        b.content = "not written"
        b.metadata.caret_position = 3

        assert notes_service.save_all_with_metadata([a, b]) == 1
        assert (notes_dir / "A.txt").read_text(encoding="utf-8") == "alpha"
        assert (notes_dir / "B.txt").read_text(encoding="utf-8") == ""
        assert NotesMetadataRepository(engine=engine).get("B").caret_position == 3


class TestFonts:
    def test_default_when_no_notes(self, notes_service):
        assert notes_service.get_font_that_all_notes_use() == notes_service.default_font_family
        assert (
            notes_service.get_font_size_that_all_notes_use()
            == notes_service.default_font_size
        )

    def test_shared_font(self, notes_service):
        notes_service.create("A", FONT, SIZE)
        notes_service.create("B", FONT, SIZE)
        assert notes_service.get_font_that_all_notes_use() == FONT
        assert notes_service.get_font_size_that_all_notes_use() == SIZE

    def test_mixed_fonts(self, notes_service):
        notes_service.create("A", FONT, SIZE)
        notes_service.create("B", "Arial", SIZE + 1)
        assert notes_service.get_font_that_all_notes_use() is None
        assert notes_service.get_font_size_that_all_notes_use() is None

    def test_set_font_for_all_persists(self, notes_service, engine):
        a = notes_service.create("A", FONT, SIZE)
        notes_service.create("B", "Arial", SIZE)

        notes_service.set_font_for_all("Courier")
        notes_service.set_font_size_for_all(20)

        assert a.metadata.font_family == "Courier"
        stored = NotesMetadataRepository(engine=engine)
        assert stored.get_distinct_fonts() == ["Courier"]
        assert stored.get_distinct_font_sizes() == [20]

    def test_archived_notes_count_for_fonts(self, notes_service):
        notes_service.create("A", FONT, SIZE)
        notes_service.archive(notes_service.create("B", "Arial", SIZE))
        assert notes_service.get_font_that_all_notes_use() is None


class TestMoveAllCapability:
    def test_repository_without_bulk_move(self, notes_service, metadata_repository):
        class PlainRepository:
            pass

        service = NotesService(PlainRepository(), metadata_repository)
        with pytest.raises(ConfigurationError):
            service.move_all("/somewhere")


class TestArchivePrefix:
    def test_prefix_follows_repository(self, preferences_service, engine, notes_dir):
        repository = FileSystemNoteRepository(
            preferences_service, archive_dir_name="old"
        )
        metadata = NotesMetadataRepository(engine=engine, archive_prefix="old/")
        service = NotesService(repository, metadata)

        service.archive(service.create("Draft", FONT, SIZE))
        service.create("Keep", FONT, SIZE)

        assert service.archive_prefix == "old/"
        assert (notes_dir / "old" / "Draft.txt").exists()
        assert [n.name for n in service.load()] == ["Keep"]
        assert metadata.get("old/Draft").is_archived

    def test_mismatched_prefixes_rejected(self, preferences_service, metadata_repository):
        repository = FileSystemNoteRepository(
            preferences_service, archive_dir_name="old"
        )
        with pytest.raises(ConfigurationError) as exc_info:
            NotesService(repository, metadata_repository)
        assert exc_info.value.config_key == "archive_prefix"


class TestNoteWithoutStoredMetadata:
    def test_rename_uses_note_metadata(self, notes_service, notes_dir):
        (notes_dir / "Loose.txt").write_text("", encoding="utf-8")
        note = Note(name="Loose", metadata=notes_service.metadata.default_metadata())

        notes_service.update(note, "Tidy")

        assert notes_service.metadata.contains("Tidy")
