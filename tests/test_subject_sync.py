"""Tests for the subject folder hooks."""

from studydrive.models import Folder
from studydrive.services import subject_sync
from studydrive.services.folder_service import FolderService

from tests.conftest import ALICE


class TestSubjectSync:

    def test_provision_is_idempotent(self, db):
        first = subject_sync.provision_subject_folder(db, ALICE, "subj-1", "Chemistry")
        second = subject_sync.provision_subject_folder(db, ALICE, "subj-1", "Chemistry")
        assert first.id == second.id
        assert first.name == "Subjects - Chemistry"
        assert first.parent_id is None
        assert db.query(Folder).count() == 1

    def test_rename_follows_subject(self, db):
        folder = subject_sync.provision_subject_folder(db, ALICE, "subj-1", "Chem")
        child = FolderService(db).create_folder(ALICE, "Labs", parent_id=folder.id)

        renamed = subject_sync.rename_subject_folder(db, ALICE, "subj-1", "Chemistry")

        assert renamed.id == folder.id
        assert renamed.name == "Subjects - Chemistry"
        db.refresh(child)
        assert child.path == "Subjects - Chemistry/Labs"

    def test_rename_provisions_missing_folder(self, db):
        folder = subject_sync.rename_subject_folder(db, ALICE, "subj-2", "Biology")
        assert folder.subject_id == "subj-2"
        assert folder.name == "Subjects - Biology"

    def test_remove_moves_folder_to_trash(self, db):
        folder = subject_sync.provision_subject_folder(db, ALICE, "subj-1", "Chemistry")
        assert subject_sync.remove_subject_folder(db, ALICE, "subj-1").id == folder.id
        db.refresh(folder)
        assert folder.deleted_at is not None
        assert subject_sync.remove_subject_folder(db, ALICE, "subj-1") is None

    def test_reprovision_after_removal(self, db):
        subject_sync.provision_subject_folder(db, ALICE, "subj-1", "Chemistry")
        subject_sync.remove_subject_folder(db, ALICE, "subj-1")
        again = subject_sync.provision_subject_folder(db, ALICE, "subj-1", "Chemistry")
        assert again.deleted_at is None
        assert db.query(Folder).count() == 2
