"""
Deterministic hashing and canonical serialization for content addressing.

Revisions are named after a hash of their resolved content, so re-submitting
identical content always yields the same name and never a duplicate object.
Two things must hold for that to work:

- **Canonical form:** the same logical document always serializes to the
  same bytes (sorted keys, fixed indentation, no trailing whitespace)
- **Deterministic hash:** the same bytes always produce the same digest

Examples:
    >>> data = canonical_json({"spec": {"containers": [{"name": "main"}]}})
    >>> compute_content_hash(data) == compute_content_hash(data)
    True
    >>> len(compute_content_hash(data))
    10

Tags:
    hashing, content-addressing, idempotency
"""

import hashlib
import json
from typing import Any

CONTENT_HASH_LENGTH = 10


def canonical_json(document: Any) -> str:
    """Serialize a JSON-compatible document in canonical form."""
    return json.dumps(document, sort_keys=True, indent=2, ensure_ascii=False, separators=(",", ": "))


def compute_content_hash(data: str | bytes, length: int = CONTENT_HASH_LENGTH) -> str:
    """
    Compute a short deterministic hash of serialized content.

    Args:
        data: Serialized content (str is UTF-8 encoded first)
        length: Hex digest length (default 10, keeps derived names short)

    Returns:
        Lowercase hex string of the requested length
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()[:length]
