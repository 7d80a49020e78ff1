# app/core/security.py
import re
from dataclasses import dataclass, field

from werkzeug.security import check_password_hash, generate_password_hash

from app.core.errors import ErrorCode, InvalidEmail, WeakPassword

EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")

PASSWORD_SYMBOLS = "@$!%*?&"
PASSWORD_MIN_LENGTH = 8
_PASSWORD_ALLOWED = re.compile(r"[A-Za-z0-9" + re.escape(PASSWORD_SYMBOLS) + r"]*")


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a credential predicate.

    ``problems`` lists every unmet requirement; ``message`` is the single
    user-facing sentence shown on the form.
    """

    ok: bool
    code: ErrorCode | None = None
    message: str = ""
    problems: tuple[str, ...] = field(default_factory=tuple)


def validate_email(email: str) -> ValidationResult:
    if email and EMAIL_PATTERN.fullmatch(email):
        return ValidationResult(ok=True)
    return ValidationResult(
        ok=False,
        code=ErrorCode.INVALID_EMAIL,
        message=InvalidEmail.default_message,
        problems=("format",),
    )


def validate_password(password: str) -> ValidationResult:
    password = password or ""
    problems = []
    if len(password) < PASSWORD_MIN_LENGTH:
        problems.append("length")
    if not re.search(r"[a-z]", password):
        problems.append("lowercase")
    if not re.search(r"[A-Z]", password):
        problems.append("uppercase")
    if not re.search(r"[0-9]", password):
        problems.append("digit")
    if not any(ch in PASSWORD_SYMBOLS for ch in password):
        problems.append("symbol")
    if not _PASSWORD_ALLOWED.fullmatch(password):
        problems.append("characters")

    if not problems:
        return ValidationResult(ok=True)
    return ValidationResult(
        ok=False,
        code=ErrorCode.WEAK_PASSWORD,
        message=WeakPassword.default_message,
        problems=tuple(problems),
    )


class PasswordHasher:
    """Salted one-way hashing backed by werkzeug."""

    def __init__(self, method: str = "scrypt", salt_length: int = 16):
        self.method = method
        self.salt_length = salt_length
        self._dummy_hash: str | None = None

    def hash(self, password: str) -> str:
        return generate_password_hash(password, method=self.method, salt_length=self.salt_length)

    def verify(self, password: str, password_hash: str) -> bool:
        if not password_hash:
            return False
        try:
            return check_password_hash(password_hash, password)
        except ValueError:
            # unknown method or broken parameters in the stored digest
            return False

    def dummy_verify(self, password: str) -> None:
        """Spend the same work as a real verify for an unknown account."""
        if self._dummy_hash is None:
            self._dummy_hash = self.hash("studyhub-dummy-password")
        self.verify(password, self._dummy_hash)
