"""
Vector similarity - cosine scoring, threshold filtering, top-k.

Embeddings are stored as float32 BLOBs and scored in float64. Scoring runs
in numpy over the candidate rows a store pre-selected with SQL, so only
rows that already passed the tenant/room filters are ever compared.
"""

import logging
from typing import Iterable, List, Optional, Sequence, Tuple, TypeVar

import numpy as np

from ..errors import InvalidInput

logger = logging.getLogger(__name__)

T = TypeVar("T")

_UNIT_TOLERANCE = 1e-9


def encode_embedding(embedding: Optional[Sequence[float]]) -> Optional[bytes]:
    """float32 bytes for storage (None stays None)."""
    if embedding is None:
        return None
    vec = np.asarray(embedding, dtype=np.float32)
    if vec.size == 0:
        return None
    return vec.tobytes()


def decode_embedding(blob: Optional[bytes]) -> Optional[List[float]]:
    if not blob:
        return None
    return np.frombuffer(blob, dtype=np.float32).tolist()


def check_dimension(embedding: Sequence[float], dimension: Optional[int]) -> np.ndarray:
    """Validate an embedding and return it as a float32 vector."""
    vec = np.asarray(embedding, dtype=np.float32)
    if vec.ndim != 1 or vec.size == 0:
        raise InvalidInput("Embedding must be a non-empty 1-D sequence of numbers")
    if dimension is not None and vec.size != dimension:
        raise InvalidInput(
            f"Embedding has {vec.size} dimensions, expected {dimension}"
        )
    if not np.all(np.isfinite(vec)):
        raise InvalidInput("Embedding contains NaN or infinite values")
    return vec


def normalize(vec: np.ndarray) -> np.ndarray:
    """Normalize for cosine similarity (zero vectors stay zero)."""
    if vec.ndim == 1:
        norm = np.linalg.norm(vec)
        return vec / norm if norm > 0 else vec
    norms = np.linalg.norm(vec, axis=1, keepdims=True)
    norms[norms == 0] = 1.0
    return vec / norms


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    va = normalize(np.asarray(a, dtype=np.float64))
    vb = normalize(np.asarray(b, dtype=np.float64))
    return float(np.dot(va, vb))


def cosine_distance(a: Sequence[float], b: Sequence[float]) -> float:
    return 1.0 - cosine_similarity(a, b)


def embeddings_match(a: Sequence[float], b: Sequence[float], tolerance: float) -> bool:
    """Exact-match test for duplicate suppression (same length, elementwise close)."""
    va = np.asarray(a, dtype=np.float32)
    vb = np.asarray(b, dtype=np.float32)
    return va.shape == vb.shape and bool(np.allclose(va, vb, rtol=0.0, atol=tolerance))


def rank_by_similarity(
    query: np.ndarray,
    candidates: Iterable[Tuple[T, Optional[bytes]]],
    threshold: float,
    count: Optional[int],
) -> List[Tuple[T, float]]:
    """
    Score candidates against the query and keep the best ones.

    Args:
        query: Query vector (validated)
        candidates: (item, embedding blob) pairs, already in tie-break order
        threshold: Minimum cosine similarity (distance <= 1 - threshold)
        count: Maximum results (None for all)

    Returns:
        (item, similarity) pairs by descending similarity. Candidates with
        no embedding or a different dimensionality are skipped. Equal
        scores keep their input order.
    """
    items: List[T] = []
    vectors: List[np.ndarray] = []
    skipped = 0

    for item, blob in candidates:
        if not blob:
            continue
        vec = np.frombuffer(blob, dtype=np.float32)
        if vec.size != query.size:
            skipped += 1
            continue
        items.append(item)
        vectors.append(vec)

    if skipped:
        logger.warning(f"Skipped {skipped} rows with mismatched embedding dimensions")

    if not items:
        return []

    matrix = normalize(np.vstack(vectors).astype(np.float64))
    scores = matrix @ normalize(np.asarray(query, dtype=np.float64))

    # Identical directions land within a few ulps of 1.0 on either side
    scores[np.abs(scores - 1.0) < _UNIT_TOLERANCE] = 1.0
    scores = np.clip(scores, -1.0, 1.0)

    keep = np.flatnonzero(scores >= threshold)
    # Stable sort preserves the caller's tie-break order
    order = keep[np.argsort(-scores[keep], kind="stable")]
    if count is not None:
        order = order[:count]

    return [(items[i], float(scores[i])) for i in order]
