"""
Similarity engine shared by the memory and knowledge stores.

- vectors: cosine scoring, threshold filtering, top-k
- text: normalized Levenshtein
- embedding_cache: text-assisted embedding reuse
"""

from .embedding_cache import EmbeddingCache
from .text import levenshtein_distance, levenshtein_similarity
from .vectors import (
    check_dimension,
    cosine_distance,
    cosine_similarity,
    decode_embedding,
    encode_embedding,
    rank_by_similarity,
)

__all__ = [
    "EmbeddingCache",
    "levenshtein_distance",
    "levenshtein_similarity",
    "check_dimension",
    "cosine_distance",
    "cosine_similarity",
    "decode_embedding",
    "encode_embedding",
    "rank_by_similarity",
]
