"""CONTENT_NORMALIZATION handler - cleans conversation text and extracts keywords."""

import re
from dataclasses import dataclass
from typing import Any, Optional

import structlog

from convo_pipeline.errors import HandlerError
from convo_pipeline.jobs.models import ProcessingJob
from convo_pipeline.jobs.payloads import ContentNormalizationPayload, parse_payload
from convo_pipeline.jobs.registry import default_registry
from convo_pipeline.jobs.types import JobType
from convo_pipeline.repositories.conversations import ConversationRepository

logger = structlog.get_logger(__name__)

MAX_KEYWORDS = 10
MIN_KEYWORD_LENGTH = 4
_WHITESPACE = re.compile(r"\s+")
_WORD = re.compile(r"\w+")


@dataclass
class NormalizedContent:
    content: str
    keywords: list[str]
    word_count: int
    platform: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": self.content,
            "keywords": self.keywords,
            "word_count": self.word_count,
            "platform": self.platform,
        }


def extract_keywords(text: str, limit: int = MAX_KEYWORDS) -> list[str]:
    """First ``limit`` distinct case-folded tokens longer than three characters."""
    keywords: list[str] = []
    seen: set[str] = set()
    for match in _WORD.finditer(text):
        token = match.group().casefold()
        if len(token) < MIN_KEYWORD_LENGTH or token in seen:
            continue
        seen.add(token)
        keywords.append(token)
        if len(keywords) == limit:
            break
    return keywords


def normalize_content(content: Optional[str], platform: Optional[str] = None) -> NormalizedContent:
    """Collapse whitespace runs to single spaces, trim, and extract keywords."""
    normalized = _WHITESPACE.sub(" ", content or "").strip()
    return NormalizedContent(
        content=normalized,
        keywords=extract_keywords(normalized),
        word_count=len(normalized.split()),
        platform=platform,
    )


@default_registry.handler(JobType.CONTENT_NORMALIZATION)
async def handle_content_normalization(
    job: ProcessingJob, ctx: dict[str, Any]
) -> dict[str, Any]:
    """Handle a CONTENT_NORMALIZATION job.

    Job Payload:
        conversation_ids: list[str] - Conversations to normalize

    Context:
        conversations: ConversationRepository

    Returns:
        dict with per-conversation normalized output and any ids not found.
    """
    payload: ContentNormalizationPayload = parse_payload(job.type, job.data)
    conversations_repo: ConversationRepository = ctx["conversations"]

    log = logger.bind(job_id=str(job.id))

    conversations = await conversations_repo.fetch_by_ids(payload.conversation_ids)
    if not conversations:
        raise HandlerError("No conversations found for the provided IDs")

    found = {c.id for c in conversations}
    missing = [cid for cid in payload.conversation_ids if cid not in found]

    results = []
    for conversation in conversations:
        normalized = normalize_content(conversation.content, conversation.platform)
        await conversations_repo.update_normalization(
            conversation.id,
            normalized.content,
            normalized.keywords,
            metadata_patch={"normalized": True},
        )
        results.append(
            {"conversation_id": conversation.id, "normalized": normalized.to_dict()}
        )

    log.info("content_normalization_completed", normalized=len(results), missing=len(missing))

    return {"results": results, "missing_ids": missing}
