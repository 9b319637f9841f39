import secrets
import string
from datetime import date

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 6


def random_code(length: int = CODE_LENGTH) -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def invoice_series(prefix: str, on: date, code: str | None = None) -> str:
    """Invoice numbers read ``<prefix>-YYYY-MM-DD-<CODE>``, prefix being the customer name."""
    return f"{prefix}-{on.isoformat()}-{code or random_code()}"
