"""
TabTint Cycle IDs
Correlate the log lines of one resolution cycle without writing content keys
(which are often full URLs) into every record.
"""
import hashlib
import uuid


def key_tag(key: str) -> str:
    """Short stable digest of a content key."""
    return hashlib.blake2s(key.encode("utf-8"), digest_size=4).hexdigest()


def generate_cycle_id(key: str, cycle: int) -> str:
    """
    ID for the ``cycle``-th resolution of ``key``.

    Cycles of the same key share the ``res-<tag>`` prefix, so grepping for it
    yields that key's whole history.
    """
    return f"res-{key_tag(key)}-{cycle}-{uuid.uuid4().hex[:6]}"
