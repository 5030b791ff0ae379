"""
OTP Ledger

Short-lived password recovery codes keyed by (email, user_type).

Lifecycle: none -> issued -> verified -> consumed (deleted).
The (email, user_type) pair is unique in the table, and `issue` is a single
transactional upsert, so only the most recently issued code is ever valid.
"""
import asyncio
import datetime as dt
import logging
import secrets
from typing import Optional

from tortoise import timezone
from tortoise.exceptions import IntegrityError

from opti_api.config import settings
from opti_api.models import AccountKind, OTPRecord

logger = logging.getLogger(__name__)

OTP_LENGTH = 6


def generate_otp() -> str:
    """6-digit numeric code from a cryptographically secure source."""
    return f"{secrets.randbelow(10 ** OTP_LENGTH):0{OTP_LENGTH}d}"


def is_expired(record: OTPRecord, now: Optional[dt.datetime] = None) -> bool:
    now = now or timezone.now()
    expires_at = record.expires_at
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=dt.timezone.utc)
    return now > expires_at


async def issue(email: str, user_type: AccountKind | str) -> str:
    """
    Create a fresh code for (email, user_type), replacing any previous one.

    Returns the plain code for out-of-band delivery; only its hash is stored.
    """
    user_type = AccountKind(user_type)
    code = generate_otp()
    defaults = {
        "code_hash": OTPRecord.sha256_hex(code),
        "expires_at": timezone.now() + dt.timedelta(minutes=settings.otp_ttl_minutes),
        "verified": False,
    }
    for attempt in range(2):
        try:
            # update_or_create runs select-for-update + write in one transaction
            await OTPRecord.update_or_create(defaults=defaults, email=email, user_type=user_type)
            break
        except IntegrityError:
            # A concurrent issue for the same key inserted first; retry as an update
            if attempt:
                raise
    logger.info("[otp] issued code for %s (%s)", email, user_type.value)
    return code


async def verify(email: str, code: str, user_type: AccountKind | str) -> Optional[OTPRecord]:
    """
    Look up the record matching all three fields.
    The caller checks expiry and verified state.
    """
    return await OTPRecord.get_or_none(
        email=email,
        user_type=AccountKind(user_type),
        code_hash=OTPRecord.sha256_hex(code or ""),
    )


async def find_verified(email: str, user_type: AccountKind | str) -> Optional[OTPRecord]:
    return await OTPRecord.get_or_none(email=email, user_type=AccountKind(user_type), verified=True)


async def mark_verified(record_id: int) -> None:
    await OTPRecord.filter(id=record_id).update(verified=True)
    logger.info("[otp] verified record id=%s", record_id)


async def consume(record_id: int) -> bool:
    """Delete a record; returns False when it was already gone."""
    deleted = await OTPRecord.filter(id=record_id).delete()
    return bool(deleted)


async def sweep_expired() -> int:
    """Delete every record past its expiry. Returns the number of rows removed."""
    removed = await OTPRecord.filter(expires_at__lt=timezone.now()).delete()
    if removed:
        logger.info("[otp] swept %d expired codes", removed)
    return removed


class OTPSweeper:
    """
    Periodic background cleanup of expired OTP records.

    Housekeeping only: verify/reset always re-check expiry themselves, so a late
    or failed sweep never makes an expired code usable.
    """

    def __init__(self, interval_seconds: int):
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="otp-sweeper")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await sweep_expired()
            except Exception:
                logger.exception("[otp] sweep failed")


otp_sweeper = OTPSweeper(settings.otp_sweep_interval_seconds)
