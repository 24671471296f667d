"""Postgres-backed MentionStore.

Plain psycopg + SQL. Each call opens its own connection so topic workers on
different threads never share one.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable, List, Optional, Sequence, Set, Tuple

import psycopg

from policyfront.attribution.journalists import merge_journalist
from policyfront.extraction.byline import Byline
from policyfront.ingestion.article_types import Journalist, Mention, Sentiment, Topic
from policyfront.storage.mention_store import MentionStore


logger = logging.getLogger(__name__)

MENTION_COLUMNS = """
    id, topic_id, url, title, outlet, outlet_type, excerpt, content, sentiment, source_type,
    event_id, discovered_at, published_at, story_cluster, first_seen_for_story, journalist_id
"""

JOURNALIST_COLUMNS = """
    id, name, outlet, email, phone, twitter, linkedin, website, article_count, avg_sentiment,
    beat, last_article_date
"""


def _row_to_mention(row: Sequence[Any]) -> Mention:
    (
        mid,
        topic_id,
        url,
        title,
        outlet,
        outlet_type,
        excerpt,
        content,
        sentiment,
        source_type,
        event_id,
        discovered_at,
        published_at,
        story_cluster,
        first_seen,
        journalist_id,
    ) = row
    return Mention(
        id=int(mid),
        topic_id=int(topic_id),
        url=url,
        title=title or "",
        outlet=outlet or "",
        outlet_type=outlet_type or "news",
        excerpt=excerpt,
        content=content,
        sentiment=Sentiment.parse(sentiment),
        source_type=source_type or "web",
        event_id=event_id,
        discovered_at=discovered_at,
        published_at=published_at,
        story_cluster=int(story_cluster) if story_cluster is not None else None,
        first_seen_for_story=bool(first_seen),
        journalist_id=int(journalist_id) if journalist_id is not None else None,
    )


def _row_to_journalist(row: Sequence[Any]) -> Journalist:
    (jid, name, outlet, email, phone, twitter, linkedin, website, count, avg, beat, last_date) = row
    return Journalist(
        id=int(jid),
        name=name,
        outlet=outlet or "",
        email=email,
        phone=phone,
        twitter=twitter,
        linkedin=linkedin,
        website=website,
        article_count=int(count or 0),
        avg_sentiment=float(avg) if avg is not None else None,
        beats=list(beat or []),
        last_article_at=last_date,
    )


class PostgresMentionStore(MentionStore):
    def __init__(self, pg_dsn: str):
        self.pg_dsn = pg_dsn

    def _connect(self, *, autocommit: bool = True):
        return psycopg.connect(self.pg_dsn, autocommit=autocommit)

    # -----------------------------
    # Topics / scan tracking
    # -----------------------------
    def active_topics(self) -> List[Topic]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT id, name, keywords, bill_ids, state, active
                    FROM topics
                    WHERE active
                    ORDER BY id
                    """
                )
                rows = cur.fetchall()
        return [
            Topic(
                id=int(tid),
                name=name or "",
                keywords=list(keywords or []),
                bill_ids=list(bill_ids or []),
                state=state,
                active=bool(active),
            )
            for tid, name, keywords, bill_ids, state, active in rows
        ]

    def mark_topic_scan(self, topic_id: int, status: str, error: Optional[str] = None) -> None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE topics
                    SET last_scan_status=%s,
                        last_scan_error=%s,
                        last_scan_at=CASE WHEN %s::text = 'scanning' THEN now() ELSE last_scan_at END
                    WHERE id=%s
                    """,
                    (status, error, status, int(topic_id)),
                )

    def start_scan(self) -> Optional[int]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO scan_status (scan_type, status, started_at)
                    VALUES ('mentions', 'running', now())
                    RETURNING id
                    """
                )
                row = cur.fetchone()
        return int(row[0]) if row else None

    def finish_scan(
        self,
        scan_id: Optional[int],
        *,
        status: str,
        topics_scanned: int = 0,
        mentions_found: int = 0,
        error: Optional[str] = None,
    ) -> None:
        if scan_id is None:
            return
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE scan_status
                    SET status=%s, completed_at=now(), topics_scanned=%s, mentions_found=%s, error_message=%s
                    WHERE id=%s
                    """,
                    (status, int(topics_scanned), int(mentions_found), error, int(scan_id)),
                )

    # -----------------------------
    # Mentions
    # -----------------------------
    def known_urls(self, topic_id: int) -> Set[str]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT url FROM mentions WHERE topic_id=%s", (int(topic_id),))
                return {r[0] for r in cur.fetchall() if r and r[0]}

    def insert_mention(self, mention: Mention) -> Optional[int]:
        try:
            with self._connect() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        """
                        INSERT INTO mentions (
                          topic_id, url, title, outlet, outlet_type, excerpt, content, sentiment,
                          source_type, event_id, discovered_at, published_at
                        )
                        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                        ON CONFLICT (topic_id, url) DO NOTHING
                        RETURNING id
                        """,
                        (
                            int(mention.topic_id),
                            mention.url,
                            mention.title,
                            mention.outlet,
                            mention.outlet_type,
                            mention.excerpt,
                            mention.content,
                            mention.sentiment.value,
                            mention.source_type,
                            mention.event_id,
                            mention.discovered_at,
                            mention.published_at,
                        ),
                    )
                    row = cur.fetchone()
        except psycopg.errors.UniqueViolation:
            logger.debug(f"Duplicate mention skipped: {mention.url}")
            return None
        if not row:
            logger.debug(f"Duplicate mention skipped: {mention.url}")
            return None
        mention.id = int(row[0])
        return mention.id

    def recent_mentions(self, topic_id: int, since: datetime) -> List[Mention]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    SELECT {MENTION_COLUMNS}
                    FROM mentions
                    WHERE topic_id=%s AND discovered_at >= %s
                    ORDER BY discovered_at ASC, id ASC
                    """,
                    (int(topic_id), since),
                )
                rows = cur.fetchall()
        return [_row_to_mention(r) for r in rows]

    def find_event_story(self, topic_id: int, event_id: str, *, exclude_id: Optional[int] = None) -> Optional[int]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT story_cluster
                    FROM mentions
                    WHERE topic_id=%s AND event_id=%s AND story_cluster IS NOT NULL AND id <> %s
                    ORDER BY discovered_at ASC, id ASC
                    LIMIT 1
                    """,
                    (int(topic_id), event_id, int(exclude_id) if exclude_id is not None else -1),
                )
                row = cur.fetchone()
        return int(row[0]) if row else None

    def set_story(self, mention_id: int, story_cluster: int, first_seen: bool) -> None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "UPDATE mentions SET story_cluster=%s, first_seen_for_story=%s WHERE id=%s",
                    (int(story_cluster), bool(first_seen), int(mention_id)),
                )

    def set_sentiment(self, mention_id: int, sentiment: Sentiment) -> None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("UPDATE mentions SET sentiment=%s WHERE id=%s", (sentiment.value, int(mention_id)))

    def set_journalist(self, mention_id: int, journalist_id: int) -> None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "UPDATE mentions SET journalist_id=%s WHERE id=%s", (int(journalist_id), int(mention_id))
                )

    def unscored_mentions(self, *, limit: int = 100, exclude_ids: Iterable[int] = ()) -> List[Tuple[Mention, str]]:
        cols = ", ".join(f"m.{c.strip()}" for c in MENTION_COLUMNS.split(","))
        excluded = [int(i) for i in exclude_ids]
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    SELECT {cols}, t.name
                    FROM mentions m
                    JOIN topics t ON t.id = m.topic_id
                    WHERE m.sentiment = 'unscored'
                      AND NOT (m.id = ANY(%s::bigint[]))
                    ORDER BY m.discovered_at DESC, m.id DESC
                    LIMIT %s
                    """,
                    (excluded, max(1, int(limit))),
                )
                rows = cur.fetchall()
        return [(_row_to_mention(r[:-1]), r[-1] or "") for r in rows]

    # -----------------------------
    # Journalists
    # -----------------------------
    def _select_journalist(self, cur, name: str, outlet: str) -> Optional[Journalist]:
        cur.execute(
            f"SELECT {JOURNALIST_COLUMNS} FROM journalists WHERE name=%s AND outlet=%s FOR UPDATE",
            (name, outlet),
        )
        row = cur.fetchone()
        return _row_to_journalist(row) if row else None

    def upsert_journalist(
        self,
        byline: Byline,
        *,
        outlet: str,
        beat: Optional[str],
        sentiment: Optional[float],
        seen_at: datetime,
    ) -> Journalist:
        outlet = outlet or ""
        with self._connect(autocommit=False) as conn:
            with conn.cursor() as cur:
                existing = self._select_journalist(cur, byline.name, outlet)
                if existing is None:
                    merged = merge_journalist(None, byline, outlet=outlet, beat=beat, sentiment=sentiment, seen_at=seen_at)
                    cur.execute(
                        """
                        INSERT INTO journalists (
                          name, outlet, email, phone, twitter, linkedin, website, beat,
                          article_count, avg_sentiment, last_article_date
                        )
                        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                        ON CONFLICT (name, outlet) DO NOTHING
                        RETURNING id
                        """,
                        (
                            merged.name,
                            merged.outlet,
                            merged.email,
                            merged.phone,
                            merged.twitter,
                            merged.linkedin,
                            merged.website,
                            merged.beats,
                            merged.article_count,
                            merged.avg_sentiment,
                            merged.last_article_at,
                        ),
                    )
                    row = cur.fetchone()
                    if row:
                        merged.id = int(row[0])
                        return merged
                    # Lost an insert race with another worker; fall through to update.
                    existing = self._select_journalist(cur, byline.name, outlet)
                    if existing is None:
                        raise RuntimeError(f"journalist {byline.name!r} vanished during upsert")

                merged = merge_journalist(existing, byline, outlet=outlet, beat=beat, sentiment=sentiment, seen_at=seen_at)
                cur.execute(
                    """
                    UPDATE journalists
                    SET email=%s, phone=%s, twitter=%s, linkedin=%s, website=%s, beat=%s,
                        article_count=%s, avg_sentiment=%s, last_article_date=%s, updated_at=now()
                    WHERE id=%s
                    """,
                    (
                        merged.email,
                        merged.phone,
                        merged.twitter,
                        merged.linkedin,
                        merged.website,
                        merged.beats,
                        merged.article_count,
                        merged.avg_sentiment,
                        merged.last_article_at,
                        int(existing.id),
                    ),
                )
        return merged

    def link_coverage(self, journalist_id: int, mention_id: int, topic_id: int) -> None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO journalist_coverage (journalist_id, mention_id, topic_id)
                    VALUES (%s, %s, %s)
                    ON CONFLICT (journalist_id, mention_id) DO NOTHING
                    """,
                    (int(journalist_id), int(mention_id), int(topic_id)),
                )
