"""ID generation utility."""

import secrets
import string

_ALPHABET = string.ascii_letters + string.digits
DEFAULT_ID_SIZE = 16


def gen_id(prefix: str, size: int = DEFAULT_ID_SIZE) -> str:
    """Generate IDs like msg-Xa81kPq0..., chat-..."""
    return f"{prefix}-" + "".join(secrets.choice(_ALPHABET) for _ in range(size))
