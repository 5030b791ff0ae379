# opti_api/core/password_policy.py
"""
Password strength rules and temporary password generation.
All functions here are pure: no I/O, no side effects.
"""
import re
import secrets
import string

MIN_LENGTH = 8
SPECIAL_CHARS = "!@#$%^&*()_+-=[]{}|;:,.<>?"

_RULES = (
    (lambda p: len(p) >= MIN_LENGTH, f"Password must be at least {MIN_LENGTH} characters long"),
    (lambda p: re.search(r"[A-Z]", p) is not None, "Password must contain at least one uppercase letter"),
    (lambda p: re.search(r"[a-z]", p) is not None, "Password must contain at least one lowercase letter"),
    (lambda p: re.search(r"[0-9]", p) is not None, "Password must contain at least one number"),
    (lambda p: any(c in SPECIAL_CHARS for c in p), "Password must contain at least one special character"),
)


def password_errors(password: str | None) -> list[str]:
    """
    Return one message per rule the password violates (empty list when strong).
    """
    password = password or ""
    return [message for check, message in _RULES if not check(password)]


def is_strong(password: str | None) -> bool:
    return not password_errors(password)


def generate_temp_password(length: int = 12) -> str:
    """
    Generate a random password that always satisfies the policy.
    Used when an admin provisions a user; the user must change it on first login.
    """
    length = max(length, MIN_LENGTH)
    pools = [string.ascii_uppercase, string.ascii_lowercase, string.digits, SPECIAL_CHARS]
    alphabet = "".join(pools)
    # One character from each class, the rest from the full alphabet
    chars = [secrets.choice(pool) for pool in pools]
    chars += [secrets.choice(alphabet) for _ in range(length - len(chars))]
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)
