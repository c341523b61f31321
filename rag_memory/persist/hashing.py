"""
Stable hashing for content-addressable cache keys.
"""

import hashlib
import json
import unicodedata
from typing import Any


def stable_hash(obj: Any) -> str:
    """
    Compute a stable blake2b hash of a string, bytes, or JSON-able structure.

    - Dicts/lists: canonical JSON (sorted keys, compact separators)
    - Strings: NFC-normalised UTF-8
    - Bytes: used directly

    Returns:
        64-character hex string
    """
    if isinstance(obj, bytes):
        data = obj
    elif isinstance(obj, str):
        data = unicodedata.normalize("NFC", obj).encode("utf-8")
    elif isinstance(obj, (dict, list)):
        canonical = json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
        data = unicodedata.normalize("NFC", canonical).encode("utf-8")
    else:
        raise TypeError(f"Cannot hash type {type(obj)}: {obj}")

    return hashlib.blake2b(data, digest_size=32).hexdigest()
