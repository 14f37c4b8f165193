"""Tests for the folder tree manager: names, paths, depth, and subtree copy."""

import pytest

from studydrive.core.config import settings
from studydrive.database import SessionLocal
from studydrive.exceptions import (
    FolderNotFoundError,
    NameConflictError,
    ParentNotFoundError,
    ValidationError,
)
from studydrive.repositories import FileRepository, FolderRepository
from studydrive.services.drive_service import DriveService
from studydrive.services.folder_service import FolderService
from studydrive.services.trash_service import TrashService

from tests.conftest import ALICE, BOB


def _assert_paths_consistent(db, drive_id):
    repo = FolderRepository(db)
    for folder in repo.get_deleted(drive_id) + repo.list_children(drive_id, None, limit=1000)[0]:
        for node in repo.walk_subtree(folder):
            if node.parent_id is None:
                assert node.path == node.name
            else:
                parent = repo.get_by_id_including_deleted(node.parent_id)
                assert node.path == f"{parent.path}/{node.name}"


class TestCreateFolder:

    def test_root_folder_path_is_its_name(self, db):
        folder = FolderService(db).create_folder(ALICE, "Physics")
        assert folder.path == "Physics"
        assert folder.parent_id is None

    def test_nested_path_concatenates_parent(self, db):
        service = FolderService(db)
        parent = service.create_folder(ALICE, "Physics")
        child = service.create_folder(ALICE, "Mechanics", parent_id=parent.id)
        assert child.path == "Physics/Mechanics"
        assert service.resolve_path(child.id) == "Physics/Mechanics"

    def test_sibling_name_conflict(self, db):
        service = FolderService(db)
        service.create_folder(ALICE, "A")
        with pytest.raises(NameConflictError):
            service.create_folder(ALICE, "A")

    def test_concurrent_create_with_same_name_conflicts(self, db, monkeypatch):
        """The second writer passed the name check before the first one committed."""
        DriveService(db).ensure_drive(ALICE)
        db.commit()
        other = SessionLocal()
        try:
            FolderService(other).create_folder(ALICE, "A")
        finally:
            other.close()

        service = FolderService(db)
        monkeypatch.setattr(service, "_check_name_free", lambda *args, **kwargs: None)
        with pytest.raises(NameConflictError):
            service.create_folder(ALICE, "A")
        db.rollback()

        roots, total = FolderService(db).list_folders(ALICE)
        assert total == 1
        assert [f.name for f in roots] == ["A"]

    def test_same_name_allowed_under_different_parents(self, db):
        service = FolderService(db)
        a = service.create_folder(ALICE, "A")
        b = service.create_folder(ALICE, "B")
        service.create_folder(ALICE, "Notes", parent_id=a.id)
        service.create_folder(ALICE, "Notes", parent_id=b.id)

    def test_same_name_allowed_in_other_drive(self, db):
        service = FolderService(db)
        service.create_folder(ALICE, "A")
        service.create_folder(BOB, "A")

    def test_trashed_sibling_does_not_block_name(self, db):
        service = FolderService(db)
        old = service.create_folder(ALICE, "A")
        TrashService(db).soft_delete_folder(ALICE, old.id)
        service.create_folder(ALICE, "A")

    def test_missing_parent(self, db):
        with pytest.raises(ParentNotFoundError):
            FolderService(db).create_folder(ALICE, "A", parent_id="fld-missing")

    def test_trashed_parent_counts_as_missing(self, db):
        service = FolderService(db)
        parent = service.create_folder(ALICE, "Parent")
        TrashService(db).soft_delete_folder(ALICE, parent.id)
        with pytest.raises(ParentNotFoundError):
            service.create_folder(ALICE, "Child", parent_id=parent.id)

    def test_parent_in_another_drive_is_not_found(self, db):
        service = FolderService(db)
        foreign = service.create_folder(BOB, "Bob's")
        with pytest.raises(ParentNotFoundError):
            service.create_folder(ALICE, "Mine", parent_id=foreign.id)

    def test_name_is_sanitized(self, db):
        folder = FolderService(db).create_folder(ALICE, '  My<>  "Notes" ')
        assert folder.name == "My Notes"

    def test_unusable_names_rejected(self, db):
        service = FolderService(db)
        for name in ("", "   ", "..", "CON", "nul.txt"):
            with pytest.raises(ValidationError):
                service.create_folder(ALICE, name)

    def test_subject_folder_gets_prefix(self, db):
        folder = FolderService(db).create_folder(ALICE, "Chemistry", subject_id="subj-1")
        assert folder.name == "Subjects - Chemistry"
        assert folder.subject_id == "subj-1"

    def test_depth_cap(self, db, monkeypatch):
        monkeypatch.setattr(settings, "max_folder_depth", 3)
        service = FolderService(db)
        a = service.create_folder(ALICE, "a")
        b = service.create_folder(ALICE, "b", parent_id=a.id)
        c = service.create_folder(ALICE, "c", parent_id=b.id)
        with pytest.raises(ValidationError):
            service.create_folder(ALICE, "d", parent_id=c.id)


class TestBrowse:

    def test_get_folder_breadcrumbs_root_first(self, db):
        service = FolderService(db)
        a = service.create_folder(ALICE, "a")
        b = service.create_folder(ALICE, "b", parent_id=a.id)
        c = service.create_folder(ALICE, "c", parent_id=b.id)
        folder, crumbs = service.get_folder(ALICE, c.id)
        assert folder.id == c.id
        assert [f.name for f in crumbs] == ["a", "b", "c"]

    def test_get_folder_of_other_user_is_not_found(self, db):
        folder = FolderService(db).create_folder(BOB, "private")
        with pytest.raises(FolderNotFoundError):
            FolderService(db).get_folder(ALICE, folder.id)

    def test_list_root_only_by_default(self, db):
        service = FolderService(db)
        a = service.create_folder(ALICE, "a")
        service.create_folder(ALICE, "b")
        service.create_folder(ALICE, "inner", parent_id=a.id)

        roots, total = service.list_folders(ALICE)
        assert total == 2
        assert {f.name for f in roots} == {"a", "b"}

        children, total = service.list_folders(ALICE, parent_id=a.id)
        assert total == 1
        assert children[0].name == "inner"

    def test_list_pagination(self, db):
        service = FolderService(db)
        for i in range(5):
            service.create_folder(ALICE, f"f{i}")
        page, total = service.list_folders(ALICE, page=2, limit=2)
        assert total == 5
        assert len(page) == 2


class TestRename:

    def test_rename_rewrites_subtree_paths(self, db):
        service = FolderService(db)
        a = service.create_folder(ALICE, "a")
        b = service.create_folder(ALICE, "b", parent_id=a.id)
        c = service.create_folder(ALICE, "c", parent_id=b.id)

        service.update_folder(ALICE, a.id, name="renamed")

        assert service.resolve_path(a.id) == "renamed"
        assert service.resolve_path(b.id) == "renamed/b"
        assert service.resolve_path(c.id) == "renamed/b/c"
        _assert_paths_consistent(db, a.drive_id)

    def test_rename_rewrites_trashed_descendants_too(self, db):
        service = FolderService(db)
        a = service.create_folder(ALICE, "a")
        b = service.create_folder(ALICE, "b", parent_id=a.id)
        TrashService(db).soft_delete_folder(ALICE, b.id)

        service.update_folder(ALICE, a.id, name="z")
        assert service.resolve_path(b.id) == "z/b"

    def test_rename_to_sibling_name_conflicts(self, db):
        service = FolderService(db)
        service.create_folder(ALICE, "a")
        b = service.create_folder(ALICE, "b")
        with pytest.raises(NameConflictError):
            service.update_folder(ALICE, b.id, name="a")

    def test_rename_racing_a_sibling_is_rejected_by_the_index(self, db, monkeypatch):
        service = FolderService(db)
        service.create_folder(ALICE, "a")
        b = service.create_folder(ALICE, "b")
        monkeypatch.setattr(service, "_check_name_free", lambda *args, **kwargs: None)

        with pytest.raises(NameConflictError):
            service.update_folder(ALICE, b.id, name="a")
        db.rollback()

        assert FolderRepository(db).get_by_id(b.id).name == "b"

    def test_toggle_public(self, db):
        service = FolderService(db)
        a = service.create_folder(ALICE, "a")
        assert service.update_folder(ALICE, a.id, is_public=True).is_public is True


class TestCopySubtree:

    def _tree(self, db, upload):
        service = FolderService(db)
        root = service.create_folder(ALICE, "Course")
        week = service.create_folder(ALICE, "Week 1", parent_id=root.id)
        upload(name="syllabus.txt", data=b"syllabus", folder_id=root.id)
        upload(name="lecture.txt", data=b"lecture one", folder_id=week.id)
        return root, week

    def test_copy_duplicates_structure_and_shares_bytes(self, db, upload):
        root, _ = self._tree(db, upload)
        copy = FolderService(db).copy_subtree(ALICE, root.id)

        assert copy.name == "Course (Copy)"
        assert copy.path == "Course (Copy)"
        repo = FolderRepository(db)
        subtree = repo.walk_subtree(copy)
        assert [f.path for f in subtree] == ["Course (Copy)", "Course (Copy)/Week 1"]

        files = FileRepository(db)
        originals = files.in_folders([f.id for f in repo.walk_subtree(root)])
        copies = files.in_folders([f.id for f in subtree])
        assert sorted(f.file_path for f in copies) == sorted(f.file_path for f in originals)
        assert {f.id for f in copies}.isdisjoint({f.id for f in originals})

    def test_copy_does_not_change_storage_used(self, db, upload):
        root, _ = self._tree(db, upload)
        drive = DriveService(db).ensure_drive(ALICE)
        used_before = drive.storage_used
        FolderService(db).copy_subtree(ALICE, root.id, new_name="Backup")
        db.refresh(drive)
        assert drive.storage_used == used_before

    def test_copy_into_target_parent(self, db, upload):
        root, _ = self._tree(db, upload)
        archive = FolderService(db).create_folder(ALICE, "Archive")
        copy = FolderService(db).copy_subtree(ALICE, root.id, target_parent_id=archive.id)
        assert copy.path == "Archive/Course (Copy)"

    def test_copy_skips_trashed_descendants(self, db, upload):
        root, week = self._tree(db, upload)
        TrashService(db).soft_delete_folder(ALICE, week.id)
        copy = FolderService(db).copy_subtree(ALICE, root.id)
        assert [f.name for f in FolderRepository(db).walk_subtree(copy)] == ["Course (Copy)"]

    def test_copy_name_conflict(self, db, upload):
        root, _ = self._tree(db, upload)
        FolderService(db).create_folder(ALICE, "Dup")
        with pytest.raises(NameConflictError):
            FolderService(db).copy_subtree(ALICE, root.id, new_name="Dup")

    def test_copy_into_own_subtree_rejected(self, db, upload):
        root, week = self._tree(db, upload)
        with pytest.raises(ValidationError):
            FolderService(db).copy_subtree(ALICE, root.id, target_parent_id=week.id)

    def test_copied_file_trashable_independently(self, db, upload):
        root, _ = self._tree(db, upload)
        copy = FolderService(db).copy_subtree(ALICE, root.id)
        copied = FileRepository(db).in_folders([copy.id])[0]
        TrashService(db).soft_delete_file(ALICE, copied.id)

        original = FileRepository(db).in_folders([root.id])[0]
        assert original.deleted_at is None

    def test_failed_copy_leaves_no_partial_rows(self, db, upload, monkeypatch):
        root, _ = self._tree(db, upload)
        service = FolderService(db)

        def _boom(*args, **kwargs):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(service, "copy_file_row", _boom)
        with pytest.raises(RuntimeError):
            service.copy_subtree(ALICE, root.id)

        roots, total = FolderService(db).list_folders(ALICE)
        assert [f.name for f in roots] == ["Course"]
        assert total == 1
