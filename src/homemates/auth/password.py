"""Password hashing for dashboard accounts (passlib bcrypt)."""

from passlib.context import CryptContext

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def check_password(password: str, stored_hash: str) -> tuple[bool, str | None]:
    """Verify a login password.

    Returns:
        Whether it matched, and a replacement hash when the stored one uses
        outdated settings (None otherwise).
    """
    return pwd_context.verify_and_update(password, stored_hash)
