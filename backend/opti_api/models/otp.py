# opti_api/models/otp.py
import hashlib
from tortoise import fields, models

from .account import AccountKind


class OTPRecord(models.Model):
    """
    One-time password reset code.
    - email / user_type: the account being recovered; unique together, so at most
      one record (and therefore one valid code) exists per account at any time
    - code_hash: sha256(plain 6-digit code), 64-character hex (plain text not stored)
    - expires_at: issue time + OTP TTL
    - verified: set once the code was checked; a verified record is the proof of
      identity that reset-password consumes
    - created_at: Creation time
    """
    id = fields.IntField(pk=True)
    email = fields.CharField(max_length=255, index=True)
    user_type = fields.CharEnumField(AccountKind, max_length=16)
    code_hash = fields.CharField(max_length=64)
    expires_at = fields.DatetimeField(index=True)
    verified = fields.BooleanField(default=False)

    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "otps"
        unique_together = (("email", "user_type"),)

    @staticmethod
    def sha256_hex(raw: str) -> str:
        return hashlib.sha256(raw.encode("utf-8")).hexdigest()
