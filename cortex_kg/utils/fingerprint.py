"""
Text Fingerprints

A fingerprint is a fixed-length vector derived deterministically from text by
feature hashing: each lowercase word token is hashed (md5, so the result is
stable across processes) into one of `dimensions` buckets with a +/-1 sign,
and the vector is L2-normalised.

It is a cheap similarity signal, not a semantic embedding. Anything that maps
text to a vector of the same length can replace it.
"""

from __future__ import annotations

import hashlib
import re

import numpy as np

DEFAULT_DIMENSIONS = 384

_TOKEN_RE = re.compile(r"[a-z0-9]+")


def _bucket(token: str, dimensions: int) -> tuple[int, float]:
    digest = hashlib.md5(token.encode("utf-8")).digest()
    index = int.from_bytes(digest[:4], "little") % dimensions
    sign = 1.0 if digest[4] & 1 else -1.0
    return index, sign


def fingerprint(text: str, dimensions: int = DEFAULT_DIMENSIONS) -> list[float]:
    """
    Compute the fingerprint of text.

    Args:
        text: Any text
        dimensions: Vector length

    Returns:
        Unit-length vector (all zeros for text without word tokens)
    """
    vector = np.zeros(dimensions, dtype=np.float64)
    for token in _TOKEN_RE.findall(text.lower()):
        index, sign = _bucket(token, dimensions)
        vector[index] += sign

    norm = np.linalg.norm(vector)
    if norm > 0:
        vector /= norm
    return vector.tolist()


def cosine_similarity(a: list[float] | None, b: list[float] | None) -> float:
    """Cosine similarity; 0.0 for missing, empty, mismatched, or zero vectors."""
    if not a or not b or len(a) != len(b):
        return 0.0
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    denom = np.linalg.norm(va) * np.linalg.norm(vb)
    if denom == 0:
        return 0.0
    return float(np.dot(va, vb) / denom)
