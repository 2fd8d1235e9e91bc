"""
Embedding Cache - reuse embeddings of textually similar content.

Before paying for a call to the embedding generator, the runtime asks for
stored embeddings whose source text is close to the new input. The cheap
textual score narrows the candidates, and is returned alongside each
embedding so the caller decides whether to reuse it or regenerate.
"""

import logging
import re
from typing import List

from ..core.connection import ConnectionManager
from ..core.models import CachedEmbedding
from ..errors import InvalidInput
from .text import levenshtein_similarity
from .vectors import decode_embedding

logger = logging.getLogger(__name__)

_FIELD_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _json_path(field_name: str, field_sub_name: str) -> str:
    """
    JSON path of the source text inside the content column.

    ("content", "text") addresses the content column itself; any other
    field name is a nested object inside content.
    """
    for part in (field_name, field_sub_name):
        if not part or not _FIELD_NAME.match(part):
            raise InvalidInput(f"Invalid content field name: {part!r}")
    if field_name == "content":
        return f"$.{field_sub_name}"
    return f"$.{field_name}.{field_sub_name}"


class EmbeddingCache:
    """Levenshtein-assisted lookup over the memories table."""

    def __init__(self, connections: ConnectionManager):
        self.connections = connections

    def get_cached_embeddings(
        self,
        query_table_name: str,
        query_threshold: float,
        query_input: str,
        query_field_name: str,
        query_field_sub_name: str,
        query_match_count: int,
    ) -> List[CachedEmbedding]:
        """
        Find stored embeddings whose source text resembles query_input.

        Args:
            query_table_name: Memory partition to search ("messages", ...)
            query_threshold: Minimum normalized Levenshtein similarity
            query_input: Text about to be embedded
            query_field_name: First key of the text path inside content
            query_field_sub_name: Second key of the text path
            query_match_count: Maximum results

        Returns:
            CachedEmbedding list by descending levenshtein_score
        """
        if not query_table_name:
            raise InvalidInput("query_table_name is required")
        if query_match_count is None or query_match_count <= 0:
            return []

        path = _json_path(query_field_name, query_field_sub_name)
        needle = (query_input or "").lower()

        with self.connections.connection() as conn:
            rows = conn.execute(
                """SELECT embedding, json_extract(content, ?) AS content_text
                   FROM memories
                   WHERE type = ?
                   AND embedding IS NOT NULL
                   AND json_extract(content, ?) IS NOT NULL
                   ORDER BY createdAt DESC""",
                (path, query_table_name, path),
            ).fetchall()

        scored = []
        for row in rows:
            text = row["content_text"]
            if not isinstance(text, str):
                continue
            score = levenshtein_similarity(needle, text.lower(), query_threshold)
            if score >= query_threshold:
                scored.append((score, row["embedding"]))

        # Stable: equal scores stay newest-first
        scored.sort(key=lambda x: x[0], reverse=True)

        results = [
            CachedEmbedding(embedding=decode_embedding(blob), levenshtein_score=score)
            for score, blob in scored[:query_match_count]
        ]
        logger.debug(
            f"Embedding cache: {len(results)}/{len(rows)} candidates "
            f"for '{needle[:40]}' in {query_table_name}"
        )
        return results
