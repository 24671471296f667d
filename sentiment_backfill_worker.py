#!/usr/bin/env python3
"""Sentiment backfill worker.

Scores mentions still marked `unscored` (classifier when configured, keyword
lexicon otherwise) in batches until none are left or the batch cap is hit.
"""

from __future__ import annotations

import logging
import os
from typing import Set

from policyfront.config import MonitorConfig
from policyfront.scoring.classifier import OpenAIClassifier
from policyfront.scoring.sentiment import SentimentClassifier, backfill_unscored
from policyfront.storage.postgres_repo import PostgresMentionStore
from policyfront.storage.postgres_schema import ensure_postgres_schema


logger = logging.getLogger("sentiment_backfill")


def run_backfill(store, scorer: SentimentClassifier, *, batch_size: int = 50, max_batches: int = 20) -> int:
    """Returns the number of mentions scored."""
    seen: Set[int] = set()
    scored = 0
    for n in range(max(1, max_batches)):
        stats = backfill_unscored(store, scorer, limit=batch_size, seen=seen)
        scored += stats["scored"]
        logger.info(f"[backfill] batch={n + 1} {stats}")
        if stats["found"] < batch_size:
            break
    return scored


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    try:
        config = MonitorConfig.from_env(require_discovery=False)
    except ValueError as e:
        logger.error(str(e))
        return 2

    batch_size = int(os.environ.get("BACKFILL_BATCH", "50"))
    max_batches = int(os.environ.get("BACKFILL_MAX_BATCHES", "20"))

    ensure_postgres_schema(config.pg_dsn)
    store = PostgresMentionStore(config.pg_dsn)
    classifier = None
    if config.classifier_enabled:
        classifier = OpenAIClassifier(
            config.openai_api_key,
            model=config.classifier_model,
            base_url=config.classifier_base_url or None,
            timeout=config.request_timeout,
        )

    scored = run_backfill(store, SentimentClassifier(classifier), batch_size=batch_size, max_batches=max_batches)
    logger.info(f"[backfill] completed scored={scored}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
