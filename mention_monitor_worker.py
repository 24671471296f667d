#!/usr/bin/env python3
"""Mention monitor worker.

Runs one sweep over every active topic (or keeps sweeping on a schedule):
- NewsAPI.ai (structured articles with sentiment, authors, event ids)
- Firecrawl search + scrape (web results; direct fetch as scrape fallback)

New mentions are clustered into stories, attributed to journalists and
sentiment-scored in Postgres.
"""

from __future__ import annotations

import json
import logging
import time

import schedule

from policyfront.config import MonitorConfig
from policyfront.ingestion.ingestors import ProviderDiscovery
from policyfront.pipeline.monitor import MentionMonitor, SweepReport
from policyfront.scoring.classifier import OpenAIClassifier
from policyfront.storage.postgres_repo import PostgresMentionStore
from policyfront.storage.postgres_schema import ensure_postgres_schema


logger = logging.getLogger("mention_monitor")


def build_monitor(config: MonitorConfig) -> MentionMonitor:
    ensure_postgres_schema(config.pg_dsn)
    store = PostgresMentionStore(config.pg_dsn)
    discovery = ProviderDiscovery.from_config(config)
    classifier = None
    if config.classifier_enabled:
        classifier = OpenAIClassifier(
            config.openai_api_key,
            model=config.classifier_model,
            base_url=config.classifier_base_url or None,
            timeout=config.request_timeout,
        )
    return MentionMonitor.from_config(config, store, discovery, classifier)


def run_once(config: MonitorConfig = None) -> SweepReport:
    config = config or MonitorConfig.from_env()
    report = build_monitor(config).run_sweep()
    logger.info(f"[monitor] {json.dumps(report.totals())}")
    for t in report.topics:
        if t.error:
            logger.warning(f"[monitor] topic={t.topic_name!r} state={t.state.value} error={t.error}")
    return report


def run_scheduled(config: MonitorConfig = None) -> None:
    config = config or MonitorConfig.from_env()
    monitor = build_monitor(config)

    def sweep() -> None:
        report = monitor.run_sweep()
        logger.info(f"[monitor] {json.dumps(report.totals())}")

    sweep()
    schedule.every(config.interval_minutes).minutes.do(sweep)
    logger.info(f"[monitor] scheduled every {config.interval_minutes} minute(s)")
    while True:
        schedule.run_pending()
        time.sleep(5)


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    try:
        config = MonitorConfig.from_env()
    except ValueError as e:
        logger.error(str(e))
        return 2
    if config.mode == "scheduled":
        run_scheduled(config)
        return 0
    report = run_once(config)
    return 1 if report.status == "failed" else 0


if __name__ == "__main__":
    raise SystemExit(main())
