import secrets
import string
from utils.logger_factory import new_logger

SLUG_LENGTH = 10
SLUG_ALPHABET = string.ascii_lowercase + string.digits


def generate_short_id(length: int = SLUG_LENGTH) -> str:
    """
    Generate a cryptographically secure short alphanumeric ID using lowercase letters and digits.

    Example:
        generate_short_id() -> "k3m9x7q2w5"
        generate_short_id(8) -> "a4b7c9d2"
    """
    return ''.join(secrets.choice(SLUG_ALPHABET) for _ in range(length))


def generate_unique_slug(db, model_class, max_attempts: int = 5) -> str:
    """
    Generate a slug that is not yet used by any row of ``model_class``.

    Raises:
        RuntimeError: If unable to generate a unique slug after max_attempts
    """
    log = new_logger("generate_unique_slug")

    for attempt in range(max_attempts):
        slug = generate_short_id()
        existing = db.query(model_class).filter_by(slug=slug).first()
        if not existing:
            log.info(f"Generated unique slug: {slug}")
            return slug
        log.warning(f"Slug collision detected: {slug} (attempt {attempt + 1}/{max_attempts})")

    raise RuntimeError(f"Failed to generate unique slug after {max_attempts} attempts")
