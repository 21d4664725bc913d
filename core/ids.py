"""
core/ids.py -- Opaque record identifiers.

Every stored entity gets a 24-character lowercase hex id (12 random bytes).
Routes check the shape before touching the store, so a malformed id is an
InvalidId (400) and a well-formed but unknown id is a NotFound (404).
"""

import re
import secrets

ID_PATTERN = r"^[0-9a-f]{24}$"
_ID_RE = re.compile(ID_PATTERN)


def new_id() -> str:
    return secrets.token_hex(12)


def is_valid_id(value: object) -> bool:
    return isinstance(value, str) and _ID_RE.match(value) is not None
