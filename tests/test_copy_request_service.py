"""Tests for copy requests and direct cross-drive imports."""

import pytest

from studydrive.exceptions import (
    ConflictError,
    CopyRequestNotFoundError,
    DriveFileNotFoundError,
    DriveNotFoundError,
    DuplicateContentError,
    FolderNotFoundError,
    ForbiddenError,
    StorageExceededError,
    ValidationError,
)
from studydrive.models import CopyRequest, DriveActivity, DriveFile, Folder
from studydrive.services.copy_request_service import CopyRequestService
from studydrive.services.drive_service import DriveService
from studydrive.services.folder_service import FolderService
from studydrive.services.trash_service import TrashService

from tests.conftest import ALICE, BOB


def _policy(db, user_id, allow_copying):
    return DriveService(db).update_settings(user_id, allow_copying=allow_copying)


def _storage_used(db, user_id):
    db.expire_all()
    return DriveService(db).ensure_drive(user_id).storage_used


def _files_of(db, user_id):
    drive = DriveService(db).ensure_drive(user_id)
    return db.query(DriveFile).filter(DriveFile.drive_id == drive.id).all()


class TestCreateRequest:

    def test_creates_pending_request(self, db, upload):
        bob_file = upload(BOB, name="thesis.pdf", data=b"b" * 50)
        request = CopyRequestService(db).create_request(
            ALICE, BOB, "file", bob_file.id, message="  may I borrow this?  "
        )
        assert request.status == "PENDING"
        assert request.target_name == "thesis.pdf"
        assert request.message == "may I borrow this?"
        assert request.from_drive_id == DriveService(db).ensure_drive(ALICE).id

    def test_owner_without_drive(self, db):
        with pytest.raises(DriveNotFoundError):
            CopyRequestService(db).create_request(ALICE, "user-nobody", "file", "file-x")

    def test_deny_policy_is_forbidden(self, db, upload):
        bob_file = upload(BOB, data=b"b")
        _policy(db, BOB, "DENY")
        with pytest.raises(ForbiddenError):
            CopyRequestService(db).create_request(ALICE, BOB, "file", bob_file.id)

    def test_trashed_target_is_not_found(self, db, upload):
        bob_file = upload(BOB, data=b"b")
        TrashService(db).soft_delete_file(BOB, bob_file.id)
        with pytest.raises(DriveFileNotFoundError):
            CopyRequestService(db).create_request(ALICE, BOB, "file", bob_file.id)

    def test_unknown_subject_is_not_found(self, db, upload):
        upload(BOB, data=b"b")
        with pytest.raises(FolderNotFoundError):
            CopyRequestService(db).create_request(ALICE, BOB, "subject", "subj-404")

    def test_public_file_under_allow_must_be_imported(self, db, upload):
        bob_file = upload(BOB, data=b"b", is_public=True)
        _policy(db, BOB, "ALLOW")
        with pytest.raises(ValidationError):
            CopyRequestService(db).create_request(ALICE, BOB, "file", bob_file.id)

    def test_duplicate_pending_request_conflicts(self, db, upload):
        bob_file = upload(BOB, data=b"b")
        service = CopyRequestService(db)
        service.create_request(ALICE, BOB, "file", bob_file.id)
        with pytest.raises(ConflictError):
            service.create_request(ALICE, BOB, "file", bob_file.id)
        assert db.query(CopyRequest).count() == 1

    def test_self_request_and_bad_type(self, db, upload):
        own = upload(ALICE, data=b"a")
        service = CopyRequestService(db)
        with pytest.raises(ValidationError):
            service.create_request(ALICE, ALICE, "file", own.id)
        with pytest.raises(ValidationError):
            service.create_request(ALICE, BOB, "album", own.id)


class TestResolve:

    @pytest.fixture()
    def bob_folder(self, db, upload):
        folder = FolderService(db).create_folder(BOB, "Exam Prep", is_public=True)
        upload(BOB, name="q1.txt", data=b"1" * 10, folder_id=folder.id, is_public=True)
        upload(BOB, name="q2.txt", data=b"2" * 20, folder_id=folder.id)
        return folder

    def test_approve_copies_into_requester_root(self, db, store, bob_folder):
        service = CopyRequestService(db)
        request = service.create_request(ALICE, BOB, "folder", bob_folder.id)
        bob_used = _storage_used(db, BOB)

        resolved, result = service.resolve(BOB, request.id, approve=True)

        assert resolved.status == "APPROVED"
        assert resolved.resolved_at is not None
        assert result.billed_bytes == 30
        assert _storage_used(db, ALICE) == 30
        assert _storage_used(db, BOB) == bob_used

        copy = result.folder
        assert copy.parent_id is None
        assert copy.name == "Exam Prep"
        assert copy.drive_id != bob_folder.drive_id
        assert copy.is_public is False
        alice_files = _files_of(db, ALICE)
        assert sorted(f.original_name for f in alice_files) == ["q1.txt", "q2.txt"]
        assert all(not f.is_public for f in alice_files)
        assert all(store.exists(f.file_path) for f in alice_files)

        entry = db.query(DriveActivity).filter(DriveActivity.action == "import").one()
        assert entry.user_id == ALICE
        assert entry.details["from_user_id"] == BOB

    def test_approve_picks_free_name(self, db, bob_folder):
        FolderService(db).create_folder(ALICE, "Exam Prep")
        service = CopyRequestService(db)
        request = service.create_request(ALICE, BOB, "folder", bob_folder.id)
        _, result = service.resolve(BOB, request.id, approve=True)
        assert result.folder.name == "Exam Prep (Copy)"

    def test_approve_skips_content_requester_already_has(self, db, upload, bob_folder):
        upload(ALICE, name="mine.txt", data=b"1" * 10)
        service = CopyRequestService(db)
        request = service.create_request(ALICE, BOB, "folder", bob_folder.id)
        _, result = service.resolve(BOB, request.id, approve=True)
        assert [s["name"] for s in result.skipped] == ["q1.txt"]
        assert _storage_used(db, ALICE) == 30

    def test_approve_over_quota_leaves_request_pending(self, db, set_quota, bob_folder):
        set_quota(ALICE, 25)
        service = CopyRequestService(db)
        request = service.create_request(ALICE, BOB, "folder", bob_folder.id)
        with pytest.raises(StorageExceededError):
            service.resolve(BOB, request.id, approve=True)
        db.expire_all()
        assert db.get(CopyRequest, request.id).status == "PENDING"
        assert _files_of(db, ALICE) == []
        assert db.query(Folder).filter(Folder.name == "Exam Prep").count() == 1

    def test_deny(self, db, bob_folder):
        service = CopyRequestService(db)
        request = service.create_request(ALICE, BOB, "folder", bob_folder.id)
        resolved, result = service.resolve(BOB, request.id, approve=False)
        assert resolved.status == "DENIED"
        assert result is None
        assert _files_of(db, ALICE) == []

    def test_only_recipient_resolves(self, db, bob_folder):
        service = CopyRequestService(db)
        request = service.create_request(ALICE, BOB, "folder", bob_folder.id)
        with pytest.raises(ForbiddenError):
            service.resolve(ALICE, request.id, approve=True)

    def test_resolving_twice_conflicts(self, db, bob_folder):
        service = CopyRequestService(db)
        request = service.create_request(ALICE, BOB, "folder", bob_folder.id)
        service.resolve(BOB, request.id, approve=False)
        with pytest.raises(ConflictError):
            service.resolve(BOB, request.id, approve=True)

    def test_new_request_allowed_after_resolution(self, db, bob_folder):
        service = CopyRequestService(db)
        first = service.create_request(ALICE, BOB, "folder", bob_folder.id)
        service.resolve(BOB, first.id, approve=False)
        second = service.create_request(ALICE, BOB, "folder", bob_folder.id)
        assert second.id != first.id

    def test_subject_request(self, db, upload):
        subject = FolderService(db).create_folder(BOB, "Physics", subject_id="subj-phys")
        upload(BOB, name="forces.txt", data=b"f" * 8, folder_id=subject.id)
        service = CopyRequestService(db)
        request = service.create_request(ALICE, BOB, "subject", "subj-phys")
        assert request.target_name == "Subjects - Physics"
        _, result = service.resolve(BOB, request.id, approve=True)
        assert result.folder.name == "Subjects - Physics"
        assert result.folder.subject_id is None

    def test_unknown_request(self, db):
        with pytest.raises(CopyRequestNotFoundError):
            CopyRequestService(db).resolve(BOB, "req-missing", approve=True)


class TestCancelAndList:

    def test_cancel_by_sender(self, db, upload):
        bob_file = upload(BOB, data=b"b")
        service = CopyRequestService(db)
        request = service.create_request(ALICE, BOB, "file", bob_file.id)
        with pytest.raises(ForbiddenError):
            service.cancel(BOB, request.id)
        service.cancel(ALICE, request.id)
        assert db.query(CopyRequest).count() == 0

    def test_cannot_cancel_resolved(self, db, upload):
        bob_file = upload(BOB, data=b"b")
        service = CopyRequestService(db)
        request = service.create_request(ALICE, BOB, "file", bob_file.id)
        service.resolve(BOB, request.id, approve=False)
        with pytest.raises(ConflictError):
            service.cancel(ALICE, request.id)

    def test_list_filters(self, db, upload):
        bob_a = upload(BOB, name="a.txt", data=b"a")
        bob_b = upload(BOB, name="b.txt", data=b"b")
        alice_c = upload(ALICE, name="c.txt", data=b"c")
        service = CopyRequestService(db)
        first = service.create_request(ALICE, BOB, "file", bob_a.id)
        service.create_request(ALICE, BOB, "file", bob_b.id)
        service.create_request(BOB, ALICE, "file", alice_c.id)
        service.resolve(BOB, first.id, approve=False)

        assert service.list_requests(ALICE, "sent")[1] == 2
        assert service.list_requests(ALICE, "received")[1] == 1
        assert service.list_requests(ALICE)[1] == 3
        pending, total = service.list_requests(ALICE, "sent", status="PENDING")
        assert total == 1
        assert pending[0].target_name == "b.txt"

        with pytest.raises(ValidationError):
            service.list_requests(ALICE, "everywhere")
        with pytest.raises(ValidationError):
            service.list_requests(ALICE, status="EXPIRED")


class TestDirectImport:

    def test_public_file_under_request_policy(self, db, upload):
        bob_file = upload(BOB, name="open.txt", data=b"o" * 12, is_public=True)
        result = CopyRequestService(db).import_directly(ALICE, BOB, "file", bob_file.id)
        assert result.billed_bytes == 12
        assert result.files[0].is_public is False
        assert result.files[0].folder_id is None
        assert _storage_used(db, ALICE) == 12

    def test_private_file_needs_allow(self, db, upload):
        bob_file = upload(BOB, data=b"p" * 4)
        service = CopyRequestService(db)
        with pytest.raises(ForbiddenError):
            service.import_directly(ALICE, BOB, "file", bob_file.id)
        _policy(db, BOB, "ALLOW")
        assert service.import_directly(ALICE, BOB, "file", bob_file.id).billed_bytes == 4

    def test_deny_blocks_public_items(self, db, upload):
        bob_file = upload(BOB, data=b"p", is_public=True)
        _policy(db, BOB, "DENY")
        with pytest.raises(ForbiddenError):
            CopyRequestService(db).import_directly(ALICE, BOB, "file", bob_file.id)

    def test_duplicate_content(self, db, upload):
        upload(ALICE, data=b"same")
        bob_file = upload(BOB, data=b"same", is_public=True)
        service = CopyRequestService(db)

        result = service.import_directly(ALICE, BOB, "file", bob_file.id)
        assert result.files == []
        assert len(result.skipped) == 1
        assert _storage_used(db, ALICE) == 4

        with pytest.raises(DuplicateContentError):
            service.import_directly(ALICE, BOB, "file", bob_file.id, skip_duplicates=False)

    def test_folder_import_excludes_trashed_files(self, db, upload):
        folder = FolderService(db).create_folder(BOB, "Shared", is_public=True)
        upload(BOB, name="keep.txt", data=b"k" * 3, folder_id=folder.id)
        gone = upload(BOB, name="gone.txt", data=b"g" * 9, folder_id=folder.id)
        TrashService(db).soft_delete_file(BOB, gone.id)

        result = CopyRequestService(db).import_directly(ALICE, BOB, "folder", folder.id)
        assert [f.original_name for f in result.files] == ["keep.txt"]
        assert _storage_used(db, ALICE) == 3
