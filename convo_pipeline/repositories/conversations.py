"""Repository for the conversation fields the pipeline reads and writes.

The conversations table belongs to the wider platform; only content reads
and the sentiment/normalization columns are touched here.
"""

from dataclasses import dataclass, field
from typing import Any, Optional
from uuid import UUID

import structlog

from convo_pipeline.repositories.utils import ensure_json, to_jsonb, translate_db_errors

logger = structlog.get_logger(__name__)


@dataclass
class Conversation:
    """Conversation content as seen by the pipeline."""

    id: str
    content: Optional[str]
    platform: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)
    tenant_id: Optional[UUID] = None


@dataclass
class ConversationSentiment:
    """Sentiment columns written back onto one conversation."""

    conversation_id: str
    sentiment: str
    score: float
    keywords: list[str] = field(default_factory=list)
    emotions: dict[str, float] = field(default_factory=dict)


class ConversationRepository:
    """Reads conversation content, writes pipeline-owned columns."""

    def __init__(self, pool):
        self._pool = pool

    async def fetch_by_ids(self, conversation_ids: list[str]) -> list[Conversation]:
        """Fetch conversations by id. Missing ids are simply absent from the result.

        The id parameter takes the key column's own type (uuid or text), so the
        primary key index is used.
        """
        if not conversation_ids:
            return []

        query = """
            SELECT id::text AS id, content, platform, metadata, tenant_id
            FROM conversations
            WHERE id = ANY($1)
        """
        async with translate_db_errors("fetch conversations"):
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(query, conversation_ids)
        return [
            Conversation(
                id=row["id"],
                content=row["content"],
                platform=row["platform"],
                metadata=ensure_json(row["metadata"]) or {},
                tenant_id=row["tenant_id"],
            )
            for row in rows
        ]

    async def update_sentiment(self, updates: list[ConversationSentiment]) -> int:
        """Write sentiment columns for one group of conversations in a single transaction."""
        if not updates:
            return 0

        query = """
            UPDATE conversations SET
                sentiment = $2,
                sentiment_score = $3,
                sentiment_keywords = $4::text[],
                sentiment_emotions = $5::jsonb,
                sentiment_analyzed_at = now()
            WHERE id = $1
        """
        args = [
            (
                u.conversation_id,
                u.sentiment,
                u.score,
                u.keywords,
                to_jsonb(u.emotions),
            )
            for u in updates
        ]
        async with translate_db_errors("update conversation sentiment"):
            async with self._pool.acquire() as conn:
                async with conn.transaction():
                    await conn.executemany(query, args)

        logger.debug("conversation_sentiment_written", count=len(updates))
        return len(updates)

    async def update_normalization(
        self,
        conversation_id: str,
        normalized_content: str,
        keywords: list[str],
        metadata_patch: Optional[dict[str, Any]] = None,
    ) -> None:
        """Store normalized content and extracted keywords for one conversation."""
        query = """
            UPDATE conversations SET
                normalized_content = $2,
                extracted_keywords = $3::text[],
                metadata = COALESCE(metadata, '{}'::jsonb) || $4::jsonb
            WHERE id = $1
        """
        async with translate_db_errors("update normalized conversation"):
            async with self._pool.acquire() as conn:
                await conn.execute(
                    query,
                    conversation_id,
                    normalized_content,
                    keywords,
                    to_jsonb(metadata_patch or {}),
                )

    async def list_unanalyzed_ids(
        self, tenant_id: Optional[UUID] = None, limit: int = 100
    ) -> list[str]:
        """Ids of conversations that have no sentiment yet."""
        query = """
            SELECT id::text AS id FROM conversations
            WHERE sentiment_score IS NULL
              AND ($1::uuid IS NULL OR tenant_id = $1)
            ORDER BY created_at ASC
            LIMIT $2
        """
        async with translate_db_errors("fetch unanalyzed conversations"):
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(query, tenant_id, limit)
        return [row["id"] for row in rows]
