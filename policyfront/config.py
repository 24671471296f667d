"""Monitor configuration loaded from the environment (and .env)."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


logger = logging.getLogger(__name__)

DEFAULT_PG_DSN = "dbname=policyfront user=policyfront password=policyfront host=localhost port=5432"


@dataclass
class MonitorConfig:
    """Settings for the mention monitor and its workers."""

    pg_dsn: str = DEFAULT_PG_DSN

    # Discovery providers (each one is optional)
    newsapi_ai_key: str = ""
    firecrawl_api_key: str = ""

    # Text classifier; when no key is set the keyword/fail-open fallbacks apply
    openai_api_key: str = ""
    classifier_model: str = "gpt-4o-mini"
    classifier_base_url: str = ""

    # Discovery limits
    structured_lookback_days: int = 7
    structured_max_articles: int = 20
    web_results_limit: int = 10
    scrape_min_interval: float = 1.0  # seconds between scrape calls
    request_timeout: int = 30  # seconds

    relevance_min_chars: int = 200

    cluster_window_hours: float = 48.0
    cluster_similarity_threshold: float = 0.4

    topic_workers: int = 1
    sweep_deadline_seconds: float = 0.0  # 0 = no deadline

    # Worker
    mode: str = "once"
    interval_minutes: int = 60

    @property
    def classifier_enabled(self) -> bool:
        return bool(self.openai_api_key)

    @property
    def sweep_deadline(self) -> Optional[float]:
        return self.sweep_deadline_seconds if self.sweep_deadline_seconds > 0 else None

    @classmethod
    def from_env(cls, *, require_discovery: bool = True) -> "MonitorConfig":
        """Load and validate configuration from environment variables"""
        load_dotenv()
        config = cls(
            pg_dsn=os.getenv("PG_DSN", DEFAULT_PG_DSN),
            newsapi_ai_key=os.getenv("NEWSAPI_AI_KEY", "").strip(),
            firecrawl_api_key=os.getenv("FIRECRAWL_API_KEY", "").strip(),
            openai_api_key=os.getenv("OPENAI_API_KEY", "").strip(),
            classifier_model=os.getenv("CLASSIFIER_MODEL", "gpt-4o-mini").strip(),
            classifier_base_url=os.getenv("CLASSIFIER_BASE_URL", "").strip(),
            structured_lookback_days=int(os.getenv("STRUCTURED_LOOKBACK_DAYS", "7")),
            structured_max_articles=int(os.getenv("STRUCTURED_MAX_ARTICLES", "20")),
            web_results_limit=int(os.getenv("WEB_RESULTS_LIMIT", "10")),
            scrape_min_interval=float(os.getenv("SCRAPE_MIN_INTERVAL", "1.0")),
            request_timeout=int(os.getenv("REQUEST_TIMEOUT", "30")),
            relevance_min_chars=int(os.getenv("RELEVANCE_MIN_CHARS", "200")),
            cluster_window_hours=float(os.getenv("CLUSTER_WINDOW_HOURS", "48")),
            cluster_similarity_threshold=float(os.getenv("CLUSTER_SIMILARITY_THRESHOLD", "0.4")),
            topic_workers=int(os.getenv("MONITOR_TOPIC_WORKERS", "1")),
            sweep_deadline_seconds=float(os.getenv("SWEEP_DEADLINE_SECONDS", "0")),
            mode=(os.getenv("MONITOR_MODE") or "once").lower().strip(),
            interval_minutes=int(os.getenv("MONITOR_INTERVAL_MINUTES", "60")),
        )
        config._validate(require_discovery=require_discovery)
        return config

    def _validate(self, *, require_discovery: bool = True):
        """Validate configuration values"""
        errors = []

        if not self.pg_dsn:
            errors.append("PG_DSN is required")

        if require_discovery and not (self.newsapi_ai_key or self.firecrawl_api_key):
            errors.append("At least one discovery provider is required (NEWSAPI_AI_KEY or FIRECRAWL_API_KEY)")

        if self.classifier_base_url and not self.classifier_base_url.startswith(("http://", "https://")):
            errors.append("CLASSIFIER_BASE_URL must be an http(s) URL")

        if self.structured_lookback_days < 1:
            errors.append("STRUCTURED_LOOKBACK_DAYS must be at least 1")
        if not 1 <= self.structured_max_articles <= 100:
            errors.append("STRUCTURED_MAX_ARTICLES must be between 1 and 100")
        if not 1 <= self.web_results_limit <= 50:
            errors.append("WEB_RESULTS_LIMIT must be between 1 and 50")
        if self.scrape_min_interval < 0:
            errors.append("SCRAPE_MIN_INTERVAL cannot be negative")
        if self.request_timeout < 1:
            errors.append("REQUEST_TIMEOUT must be at least 1 second")
        if self.relevance_min_chars < 0:
            errors.append("RELEVANCE_MIN_CHARS cannot be negative")

        if self.cluster_window_hours <= 0:
            errors.append("CLUSTER_WINDOW_HOURS must be positive")
        if not 0 <= self.cluster_similarity_threshold < 1:
            errors.append("CLUSTER_SIMILARITY_THRESHOLD must be in [0, 1)")

        if self.topic_workers < 1:
            errors.append("MONITOR_TOPIC_WORKERS must be at least 1")
        if self.sweep_deadline_seconds < 0:
            errors.append("SWEEP_DEADLINE_SECONDS cannot be negative")

        if self.mode not in ("once", "scheduled"):
            errors.append(f"MONITOR_MODE must be 'once' or 'scheduled' (got {self.mode!r})")
        if self.interval_minutes < 1:
            errors.append("MONITOR_INTERVAL_MINUTES must be at least 1")

        if errors:
            raise ValueError("Configuration validation failed:\n" + "\n".join(f"- {e}" for e in errors))

        if not self.classifier_enabled:
            logger.warning("OPENAI_API_KEY not set: relevance gate disabled, sentiment uses keyword scoring")
