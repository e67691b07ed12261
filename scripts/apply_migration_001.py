#!/usr/bin/env python3
"""Apply migration 001: processing_jobs, scheduled_tasks, processing_metrics and conversation pipeline columns."""
import asyncio
import os

import asyncpg

MIGRATION = """
CREATE TABLE IF NOT EXISTS processing_jobs (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    type TEXT NOT NULL CHECK (type IN ('sentiment_analysis', 'content_normalization', 'trend_analysis')),
    data JSONB NOT NULL DEFAULT '{}',
    priority TEXT NOT NULL DEFAULT 'medium' CHECK (priority IN ('low', 'medium', 'high')),
    status TEXT NOT NULL DEFAULT 'pending' CHECK (status IN ('pending', 'processing', 'completed', 'failed')),
    result JSONB,
    error TEXT,
    processing_time_ms INTEGER,
    tenant_id UUID,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    started_at TIMESTAMPTZ,
    completed_at TIMESTAMPTZ,
    CHECK (result IS NULL OR error IS NULL)
);

CREATE INDEX IF NOT EXISTS idx_processing_jobs_claim
    ON processing_jobs(status, priority, created_at);
CREATE INDEX IF NOT EXISTS idx_processing_jobs_tenant ON processing_jobs(tenant_id);
CREATE INDEX IF NOT EXISTS idx_processing_jobs_type ON processing_jobs(type);
CREATE INDEX IF NOT EXISTS idx_processing_jobs_created ON processing_jobs(created_at DESC);
CREATE INDEX IF NOT EXISTS idx_processing_jobs_conversations
    ON processing_jobs USING GIN ((data->'conversation_ids'));

CREATE TABLE IF NOT EXISTS scheduled_tasks (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    name TEXT NOT NULL,
    type TEXT NOT NULL CHECK (type IN ('sentiment_batch', 'trend_analysis', 'data_cleanup')),
    schedule TEXT NOT NULL CHECK (schedule IN ('hourly', 'daily', 'weekly')),
    enabled BOOLEAN NOT NULL DEFAULT TRUE,
    config JSONB NOT NULL DEFAULT '{}',
    last_run TIMESTAMPTZ,
    next_run TIMESTAMPTZ,
    last_status TEXT,
    last_error TEXT,
    tenant_id UUID,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_scheduled_tasks_due
    ON scheduled_tasks(next_run) WHERE enabled;

CREATE TABLE IF NOT EXISTS processing_metrics (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    type TEXT NOT NULL,
    metrics JSONB NOT NULL DEFAULT '{}',
    tenant_id UUID,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_processing_metrics_created
    ON processing_metrics(created_at DESC);

ALTER TABLE conversations
    ADD COLUMN IF NOT EXISTS sentiment TEXT,
    ADD COLUMN IF NOT EXISTS sentiment_score REAL,
    ADD COLUMN IF NOT EXISTS sentiment_keywords TEXT[],
    ADD COLUMN IF NOT EXISTS sentiment_emotions JSONB,
    ADD COLUMN IF NOT EXISTS sentiment_analyzed_at TIMESTAMPTZ,
    ADD COLUMN IF NOT EXISTS normalized_content TEXT,
    ADD COLUMN IF NOT EXISTS extracted_keywords TEXT[];

CREATE INDEX IF NOT EXISTS idx_conversations_unanalyzed
    ON conversations(created_at) WHERE sentiment_score IS NULL;
"""


async def main():
    conn = await asyncpg.connect(os.environ["DATABASE_URL"])
    try:
        await conn.execute(MIGRATION)
        print("Migration 001 applied: processing pipeline tables created")

        # Verify
        count = await conn.fetchval(
            """
            SELECT COUNT(*) FROM information_schema.tables
            WHERE table_name IN ('processing_jobs', 'scheduled_tasks', 'processing_metrics')
            """
        )
        print(f"{count} of 3 pipeline tables present")
    finally:
        await conn.close()


if __name__ == "__main__":
    asyncio.run(main())
