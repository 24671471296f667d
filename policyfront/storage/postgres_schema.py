"""Postgres schema management for the mention pipeline.

Creation is idempotent (CREATE IF NOT EXISTS / ADD COLUMN IF NOT EXISTS) so
workers can call `ensure_postgres_schema` on every start.
"""

from __future__ import annotations

from typing import Iterable, Optional

import psycopg


SCHEMA_STATEMENTS: list[str] = [
    # Topics (owned by the dashboard; the monitor only reads them and writes scan status)
    """
    CREATE TABLE IF NOT EXISTS topics (
      id BIGSERIAL PRIMARY KEY,
      user_id TEXT,
      name TEXT NOT NULL,
      state TEXT,
      keywords TEXT[] NOT NULL DEFAULT '{}',
      bill_ids TEXT[] NOT NULL DEFAULT '{}',
      active BOOLEAN NOT NULL DEFAULT TRUE,
      last_scan_at TIMESTAMPTZ,
      last_scan_status TEXT,
      last_scan_error TEXT,
      created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    );
    """,
    "ALTER TABLE topics ADD COLUMN IF NOT EXISTS bill_ids TEXT[] NOT NULL DEFAULT '{}';",
    "ALTER TABLE topics ADD COLUMN IF NOT EXISTS last_scan_at TIMESTAMPTZ;",
    "ALTER TABLE topics ADD COLUMN IF NOT EXISTS last_scan_status TEXT;",
    "ALTER TABLE topics ADD COLUMN IF NOT EXISTS last_scan_error TEXT;",
    "CREATE INDEX IF NOT EXISTS idx_topics_active ON topics (active) WHERE active;",
    # Journalists (cross-topic, keyed by name + outlet)
    """
    CREATE TABLE IF NOT EXISTS journalists (
      id BIGSERIAL PRIMARY KEY,
      name TEXT NOT NULL,
      outlet TEXT NOT NULL DEFAULT '',
      email TEXT,
      phone TEXT,
      twitter TEXT,
      linkedin TEXT,
      website TEXT,
      beat TEXT[] NOT NULL DEFAULT '{}',
      article_count INTEGER NOT NULL DEFAULT 0,
      avg_sentiment REAL,
      last_article_date TIMESTAMPTZ,
      created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
      updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
      UNIQUE (name, outlet)
    );
    """,
    # Mentions (unique per topic + url)
    """
    CREATE TABLE IF NOT EXISTS mentions (
      id BIGSERIAL PRIMARY KEY,
      topic_id BIGINT NOT NULL REFERENCES topics(id) ON DELETE CASCADE,
      url TEXT NOT NULL,
      title TEXT NOT NULL DEFAULT '',
      outlet TEXT NOT NULL DEFAULT '',
      outlet_type TEXT NOT NULL DEFAULT 'news',
      excerpt TEXT,
      content TEXT,
      sentiment TEXT NOT NULL DEFAULT 'unscored',
      source_type TEXT NOT NULL DEFAULT 'web',
      event_id TEXT,
      discovered_at TIMESTAMPTZ NOT NULL DEFAULT now(),
      published_at TIMESTAMPTZ,
      story_cluster BIGINT,
      first_seen_for_story BOOLEAN NOT NULL DEFAULT FALSE,
      journalist_id BIGINT REFERENCES journalists(id) ON DELETE SET NULL,
      UNIQUE (topic_id, url)
    );
    """,
    "ALTER TABLE mentions ADD COLUMN IF NOT EXISTS event_id TEXT;",
    "ALTER TABLE mentions ADD COLUMN IF NOT EXISTS outlet_type TEXT NOT NULL DEFAULT 'news';",
    "ALTER TABLE mentions ADD COLUMN IF NOT EXISTS story_cluster BIGINT;",
    "ALTER TABLE mentions ADD COLUMN IF NOT EXISTS first_seen_for_story BOOLEAN NOT NULL DEFAULT FALSE;",
    "CREATE INDEX IF NOT EXISTS idx_mentions_topic_discovered ON mentions (topic_id, discovered_at);",
    "CREATE INDEX IF NOT EXISTS idx_mentions_topic_event ON mentions (topic_id, event_id) WHERE event_id IS NOT NULL;",
    "CREATE INDEX IF NOT EXISTS idx_mentions_story ON mentions (story_cluster);",
    "CREATE INDEX IF NOT EXISTS idx_mentions_unscored ON mentions (discovered_at) WHERE sentiment = 'unscored';",
    # Journalist <-> mention coverage links
    """
    CREATE TABLE IF NOT EXISTS journalist_coverage (
      journalist_id BIGINT NOT NULL REFERENCES journalists(id) ON DELETE CASCADE,
      mention_id BIGINT NOT NULL REFERENCES mentions(id) ON DELETE CASCADE,
      topic_id BIGINT NOT NULL REFERENCES topics(id) ON DELETE CASCADE,
      created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
      PRIMARY KEY (journalist_id, mention_id)
    );
    """,
    # Sweep tracking
    """
    CREATE TABLE IF NOT EXISTS scan_status (
      id BIGSERIAL PRIMARY KEY,
      scan_type TEXT NOT NULL DEFAULT 'mentions',
      status TEXT NOT NULL DEFAULT 'running',
      started_at TIMESTAMPTZ NOT NULL DEFAULT now(),
      completed_at TIMESTAMPTZ,
      topics_scanned INTEGER,
      mentions_found INTEGER,
      error_message TEXT
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_scan_status_started ON scan_status (scan_type, started_at DESC);",
]


def ensure_postgres_schema(pg_dsn: str, *, statements: Optional[Iterable[str]] = None) -> None:
    """Ensure Postgres schema exists."""
    stmts = list(statements) if statements is not None else SCHEMA_STATEMENTS
    with psycopg.connect(pg_dsn, autocommit=True) as conn:
        with conn.cursor() as cur:
            for s in stmts:
                cur.execute(s)
