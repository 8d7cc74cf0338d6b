from __future__ import annotations

import logging
import secrets
import string
from pathlib import Path

logger = logging.getLogger(__name__)

USER_ID_ALPHABET = string.ascii_uppercase + string.digits
USER_ID_LENGTH = 8

_in_memory_user_id: str | None = None


def generate_user_id() -> str:
    return "".join(secrets.choice(USER_ID_ALPHABET) for _ in range(USER_ID_LENGTH))


def get_or_create_user_id(path: Path) -> str:
    """Load the pseudonymous id stored at `path`, creating it on first use.

    Falls back to a process-lifetime id when the file cannot be read or written.
    """
    global _in_memory_user_id
    try:
        if path.is_file():
            stored = path.read_text(encoding="utf-8").strip()
            if stored:
                return stored
        user_id = generate_user_id()
        path.write_text(user_id, encoding="utf-8")
        return user_id
    except OSError as exc:
        logger.warning("User id file %s unavailable, using in-memory user id: %s", path, exc)
        if _in_memory_user_id is None:
            _in_memory_user_id = generate_user_id()
        return _in_memory_user_id
