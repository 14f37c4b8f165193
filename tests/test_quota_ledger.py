"""Tests for the quota ledger and the quota invariant across ingest paths."""

import pytest

from studydrive.database import SessionLocal
from studydrive.exceptions import StorageExceededError
from studydrive.models import Drive
from studydrive.repositories import FileRepository
from studydrive.services.quota_ledger import QuotaLedger

from tests.conftest import ALICE


class TestCharge:

    def test_charge_within_limit(self, db, set_quota):
        drive = set_quota(ALICE, limit=1000, used=100)
        QuotaLedger(db).charge(drive.id, 400)
        db.commit()
        db.refresh(drive)
        assert drive.storage_used == 500

    def test_charge_past_limit_raises_and_leaves_usage(self, db, set_quota):
        drive = set_quota(ALICE, limit=1000, used=900)
        with pytest.raises(StorageExceededError) as exc:
            QuotaLedger(db).charge(drive.id, 150)
        assert exc.value.details["storage_used"] == "900"
        assert exc.value.details["storage_limit"] == "1000"
        db.rollback()
        db.refresh(drive)
        assert drive.storage_used == 900

    def test_charge_exactly_to_limit(self, db, set_quota):
        drive = set_quota(ALICE, limit=1000, used=900)
        QuotaLedger(db).charge(drive.id, 100)
        db.commit()
        db.refresh(drive)
        assert drive.storage_used == 1000

    def test_check_and_reserve_is_read_only(self, db, set_quota):
        drive = set_quota(ALICE, limit=1000, used=900)
        ledger = QuotaLedger(db)
        assert ledger.check_and_reserve(drive.id, 100) is True
        assert ledger.check_and_reserve(drive.id, 101) is False
        db.refresh(drive)
        assert drive.storage_used == 900


class TestRelease:

    def test_release_decrements(self, db, set_quota):
        drive = set_quota(ALICE, limit=1000, used=600)
        QuotaLedger(db).release(drive.id, 200)
        db.commit()
        db.refresh(drive)
        assert drive.storage_used == 400

    def test_release_clamps_at_zero(self, db, set_quota, caplog):
        drive = set_quota(ALICE, limit=1000, used=50)
        with caplog.at_level("WARNING"):
            QuotaLedger(db).release(drive.id, 200)
        db.commit()
        db.refresh(drive)
        assert drive.storage_used == 0
        assert "clamping" in caplog.text


class TestConcurrentWriters:

    def test_second_writer_racing_for_last_bytes_is_rejected(self, set_quota):
        """Both writers pass the pre-check; only one charge may commit."""
        drive_id = set_quota(ALICE, limit=1000, used=900).id
        first, second = SessionLocal(), SessionLocal()
        try:
            assert QuotaLedger(first).check_and_reserve(drive_id, 90)
            assert QuotaLedger(second).check_and_reserve(drive_id, 90)

            QuotaLedger(first).charge(drive_id, 90)
            first.commit()

            with pytest.raises(StorageExceededError):
                QuotaLedger(second).charge(drive_id, 90)
            second.rollback()

            assert first.get(Drive, drive_id, populate_existing=True).storage_used == 990
        finally:
            first.close()
            second.close()


class TestQuotaScenario:

    def test_upload_scenario_from_900_of_1000(self, db, set_quota, upload):
        drive = set_quota(ALICE, limit=1000, used=900)

        with pytest.raises(StorageExceededError):
            upload(name="big.txt", data=b"x" * 150)

        upload(name="small.txt", data=b"y" * 90)
        db.refresh(drive)
        assert drive.storage_used == 990

    def test_ledger_matches_billed_rows(self, db, set_quota, upload):
        drive = set_quota(ALICE, limit=10_000)
        upload(name="a.txt", data=b"a" * 10)
        upload(name="b.txt", data=b"b" * 20)
        upload(name="c.txt", data=b"c" * 30)
        db.refresh(drive)
        assert drive.storage_used == 60
        assert FileRepository(db).sum_billed(drive.id) == 60

    def test_recalculate_corrects_drift(self, db, set_quota, upload):
        drive = set_quota(ALICE, limit=10_000)
        upload(data=b"z" * 42)
        drive.storage_used = 7
        db.commit()

        assert QuotaLedger(db).recalculate(drive.id) == 42
        db.commit()
        db.refresh(drive)
        assert drive.storage_used == 42
