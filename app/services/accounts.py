"""Registration and credential checks."""
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import EmailTaken, InvalidCredentials, InvalidEmail, InvalidName, WeakPassword
from app.core.security import PasswordHasher, validate_email, validate_password
from app.models.user import User

logger = logging.getLogger(__name__)


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(User.email == email).first()


def register_user(db: Session, hasher: PasswordHasher, name: str, email: str, password: str) -> User:
    """Create a user after validating the submitted credentials.

    Raises:
        InvalidName, InvalidEmail, WeakPassword: the form input is rejected.
        EmailTaken: an account with this email already exists.
    """
    name = (name or "").strip()
    if not name:
        raise InvalidName()

    result = validate_email(email)
    if not result.ok:
        raise InvalidEmail(result.message)

    result = validate_password(password)
    if not result.ok:
        logger.debug("Rejected password for %s: %s", email, ", ".join(result.problems))
        raise WeakPassword(result.message)

    if get_user_by_email(db, email):
        raise EmailTaken()

    user = User(name=name, email=email, password_hash=hasher.hash(password))
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # lost a race with a concurrent registration for the same email
        db.rollback()
        raise EmailTaken()
    db.refresh(user)

    logger.info("Registered user %s (id=%s)", email, user.id)
    return user


def authenticate(db: Session, hasher: PasswordHasher, email: str, password: str) -> User:
    """Return the user owning these credentials.

    Unknown emails and wrong passwords raise the same InvalidCredentials so
    the response does not reveal which accounts exist.
    """
    user = get_user_by_email(db, email)
    if user is None:
        hasher.dummy_verify(password or "")
        logger.info("Login failed for unknown email")
        raise InvalidCredentials()
    if not hasher.verify(password or "", user.password_hash):
        logger.info("Login failed for user id=%s", user.id)
        raise InvalidCredentials()
    return user
