"""Content addressing for cape images and records."""

import hashlib

# Reserved image hash for "provider confirmed no cape". It is not valid hex and
# is shorter than any digest, so it can never equal a real content hash.
NO_CAPE = "hasN0Cape"


def content_hash(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw image bytes."""
    return hashlib.sha256(data).hexdigest()


def record_hash(image_hash: str, player: str, cape_type: str, time: int) -> str:
    """Return the deterministic id of a single cape observation.

    Identical content seen for the same player and type at different times
    yields different ids, so each confirmation is individually addressable.
    """
    hash_input = f"{image_hash}:{player}:{cape_type}:{time}"
    return hashlib.sha256(hash_input.encode()).hexdigest()


def transform_key(image_hash: str, transform: str) -> str:
    """Content store key for a named variant of an image."""
    return f"{image_hash}_{transform}"
