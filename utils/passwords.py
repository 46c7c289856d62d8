import hmac
from typing import Optional
import bcrypt

BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")


def hash_page_password(password: str) -> str:
    """Hash a share page password for storage."""
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')


def check_page_password(supplied: Optional[str], stored: Optional[str]) -> bool:
    """
    Compare a supplied password with the stored value in constant time.

    Rows created before hashing was introduced hold plaintext; those are
    compared with ``hmac.compare_digest``.
    """
    if not stored or supplied is None:
        return False
    if stored.startswith(BCRYPT_PREFIXES):
        try:
            return bcrypt.checkpw(supplied.encode('utf-8'), stored.encode('utf-8'))
        except ValueError:
            return False
    return hmac.compare_digest(supplied.encode('utf-8'), stored.encode('utf-8'))
