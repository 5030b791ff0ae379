"""
Unit tests for services.otp_ledger against a fresh in-memory database.
"""
import asyncio
import datetime as dt
import re
from types import SimpleNamespace

import pytest
from tortoise import timezone

from opti_api.models import AccountKind, OTPRecord
from opti_api.services import otp_ledger


def test_generate_otp_is_six_digits():
    for _ in range(100):
        assert re.fullmatch(r"\d{6}", otp_ledger.generate_otp())


def test_is_expired_compares_against_now():
    now = dt.datetime(2026, 1, 1, 12, 0, tzinfo=dt.timezone.utc)
    record = SimpleNamespace(expires_at=now + dt.timedelta(minutes=10))
    assert otp_ledger.is_expired(record, now=now) is False
    assert otp_ledger.is_expired(record, now=now + dt.timedelta(minutes=11)) is True


@pytest.mark.asyncio
async def test_issue_stores_only_the_hash(db):
    code = await otp_ledger.issue("a@example.com", "user")
    record = await OTPRecord.get(email="a@example.com", user_type=AccountKind.USER)
    assert record.code_hash == OTPRecord.sha256_hex(code)
    assert code not in record.code_hash
    assert record.verified is False


@pytest.mark.asyncio
async def test_reissue_replaces_previous_code(db, monkeypatch):
    monkeypatch.setattr(otp_ledger, "generate_otp", lambda: "111111")
    await otp_ledger.issue("a@example.com", AccountKind.USER)
    monkeypatch.setattr(otp_ledger, "generate_otp", lambda: "222222")
    await otp_ledger.issue("a@example.com", AccountKind.USER)

    assert await OTPRecord.filter(email="a@example.com").count() == 1
    assert await otp_ledger.verify("a@example.com", "111111", AccountKind.USER) is None
    assert await otp_ledger.verify("a@example.com", "222222", AccountKind.USER) is not None


@pytest.mark.asyncio
async def test_same_email_different_user_type_are_separate(db):
    await otp_ledger.issue("a@example.com", AccountKind.USER)
    await otp_ledger.issue("a@example.com", AccountKind.ADMIN)
    assert await OTPRecord.filter(email="a@example.com").count() == 2


@pytest.mark.asyncio
async def test_verify_then_consume(db, monkeypatch):
    monkeypatch.setattr(otp_ledger, "generate_otp", lambda: "123456")
    await otp_ledger.issue("a@example.com", AccountKind.ADMIN)

    record = await otp_ledger.verify("a@example.com", "123456", AccountKind.ADMIN)
    assert record is not None
    assert await otp_ledger.find_verified("a@example.com", AccountKind.ADMIN) is None

    await otp_ledger.mark_verified(record.id)
    verified = await otp_ledger.find_verified("a@example.com", AccountKind.ADMIN)
    assert verified is not None and verified.id == record.id

    assert await otp_ledger.consume(record.id) is True
    assert await otp_ledger.consume(record.id) is False
    assert await otp_ledger.find_verified("a@example.com", AccountKind.ADMIN) is None


@pytest.mark.asyncio
async def test_wrong_code_or_type_does_not_match(db, monkeypatch):
    monkeypatch.setattr(otp_ledger, "generate_otp", lambda: "123456")
    await otp_ledger.issue("a@example.com", AccountKind.USER)
    assert await otp_ledger.verify("a@example.com", "654321", AccountKind.USER) is None
    assert await otp_ledger.verify("a@example.com", "123456", AccountKind.ADMIN) is None


@pytest.mark.asyncio
async def test_sweep_removes_only_expired(db):
    await otp_ledger.issue("fresh@example.com", AccountKind.USER)
    await otp_ledger.issue("stale@example.com", AccountKind.USER)
    await OTPRecord.filter(email="stale@example.com").update(
        expires_at=timezone.now() - dt.timedelta(minutes=1)
    )

    assert await otp_ledger.sweep_expired() == 1
    assert await OTPRecord.filter(email="stale@example.com").exists() is False
    assert await OTPRecord.filter(email="fresh@example.com").exists() is True


@pytest.mark.asyncio
async def test_sweeper_runs_periodically_and_stops(db):
    await otp_ledger.issue("stale@example.com", AccountKind.USER)
    await OTPRecord.filter(email="stale@example.com").update(
        expires_at=timezone.now() - dt.timedelta(minutes=1)
    )

    sweeper = otp_ledger.OTPSweeper(interval_seconds=0.01)
    sweeper.start()
    assert sweeper.running
    for _ in range(100):
        if not await OTPRecord.filter(email="stale@example.com").exists():
            break
        await asyncio.sleep(0.02)
    await sweeper.stop()

    assert sweeper.running is False
    assert await OTPRecord.filter(email="stale@example.com").exists() is False
