"""Discovery providers for topic mentions.

Two sources, tried in priority order per topic:
- NewsAPI.ai (structured): parsed articles with sentiment, authors, eventUri
- Firecrawl (web): search returns bare URLs; each new URL is scraped separately

Search calls raise on transport/HTTP errors so the monitor can record a
per-topic error. Scrape calls never raise; failures come back as a
ScrapeResult with a non-ok status.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

import requests

from policyfront.extraction.fulltext import DirectScraper
from policyfront.ingestion.article_types import Candidate, ClusterHint, ScrapeResult
from policyfront.ingestion.throttle import ScrapeThrottle


logger = logging.getLogger(__name__)

EXCERPT_CHARS = 300


def parse_dt(dt: Any) -> Optional[datetime]:
    """Best-effort timestamp parsing; None when unparseable."""
    if not dt:
        return None
    if isinstance(dt, datetime):
        parsed = dt
    else:
        s = str(dt).strip()
        if not s:
            return None
        s = s.replace("Z", "+00:00")
        if " " in s and "T" not in s:
            s = s.replace(" ", "T", 1)
        try:
            parsed = datetime.fromisoformat(s)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _float_or_none(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class ContentDiscovery:
    """Interface the monitor uses to find and fetch content."""

    structured_enabled: bool = False
    web_enabled: bool = False

    def search_structured(self, keywords: Sequence[str], *, limit: int = 20) -> List[Candidate]:
        raise NotImplementedError

    def search_web(self, query: str, *, limit: int = 10) -> List[Candidate]:
        raise NotImplementedError

    def scrape(self, url: str) -> ScrapeResult:
        raise NotImplementedError


@dataclass(frozen=True)
class NewsAPIAIIngestor:
    api_key: str
    endpoint: str = "https://newsapi.ai/api/v1/article/getArticles"
    lookback_days: int = 7
    timeout: int = 30

    name: str = "newsapi_ai"

    def fetch(self, keywords: Sequence[str], *, limit: int = 20) -> List[Candidate]:
        kws = [k for k in keywords if k and k.strip()]
        if not kws:
            return []
        date_start = (datetime.now(timezone.utc) - timedelta(days=self.lookback_days)).date().isoformat()
        body = {
            "action": "getArticles",
            "keyword": kws,
            "keywordOper": "or",
            "lang": "eng",
            "articlesCount": min(max(limit, 1), 100),
            "articlesSortBy": "date",
            "includeArticleAuthors": True,
            "includeArticleEventUri": True,
            "includeArticleSocialScore": False,
            "isDuplicateFilter": "keepAll",
            "dateStart": date_start,
            "resultType": "articles",
            "apiKey": self.api_key,
        }
        resp = requests.post(self.endpoint, json=body, timeout=self.timeout)
        resp.raise_for_status()
        data = resp.json() or {}
        results = (data.get("articles") or {}).get("results") or []
        out: List[Candidate] = []
        for a in results:
            if not isinstance(a, dict):
                continue
            url = (a.get("url") or "").strip()
            if not url:
                continue
            text = (a.get("body") or "").strip()
            source = a.get("source") if isinstance(a.get("source"), dict) else {}
            authors = [au for au in (a.get("authors") or []) if isinstance(au, dict)]
            out.append(
                Candidate(
                    url=url,
                    title=str(a.get("title") or "").strip(),
                    excerpt=text[:EXCERPT_CHARS] or None,
                    body=text or None,
                    sentiment_score=_float_or_none(a.get("sentiment")),
                    cluster_hint=ClusterHint(
                        event_id=a.get("eventUri") or None,
                        is_duplicate=bool(a.get("isDuplicate")),
                    ),
                    published_at=parse_dt(a.get("dateTimePub") or a.get("dateTime") or a.get("date")),
                    authors=authors,
                    metadata={"source_title": source.get("title"), "source_uri": source.get("uri")},
                    source_type="structured",
                )
            )
        return out


@dataclass(frozen=True)
class FirecrawlIngestor:
    api_key: str
    base_url: str = "https://api.firecrawl.dev/v1"
    timeout: int = 30
    throttle: ScrapeThrottle = field(default_factory=lambda: ScrapeThrottle(1.0), compare=False)

    name: str = "firecrawl"

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}

    def search(self, query: str, *, limit: int = 10) -> List[Candidate]:
        if not (query or "").strip():
            return []
        resp = requests.post(
            f"{self.base_url}/search",
            headers=self._headers(),
            json={"query": query, "limit": min(max(limit, 1), 50), "lang": "en", "country": "us"},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        data = resp.json() or {}
        out: List[Candidate] = []
        for item in data.get("data") or []:
            if not isinstance(item, dict):
                continue
            url = (item.get("url") or "").strip()
            if not url:
                continue
            meta = item.get("metadata") if isinstance(item.get("metadata"), dict) else {}
            description = item.get("description") or meta.get("description") or None
            out.append(
                Candidate(
                    url=url,
                    title=str(item.get("title") or meta.get("title") or "").strip(),
                    excerpt=description,
                    source_type="web",
                )
            )
        return out

    def scrape(self, url: str) -> ScrapeResult:
        self.throttle.wait()
        try:
            resp = requests.post(
                f"{self.base_url}/scrape",
                headers=self._headers(),
                json={"url": url, "formats": ["markdown", "html"], "onlyMainContent": True},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            return ScrapeResult(html=None, markdown=None, status="error", error=str(e))
        if resp.status_code >= 400:
            return ScrapeResult(
                html=None, markdown=None, status=f"http_{resp.status_code}", error=f"http_{resp.status_code}"
            )
        try:
            payload = resp.json() or {}
        except ValueError:
            return ScrapeResult(html=None, markdown=None, status="error", error="invalid_json")
        if not payload.get("success", True):
            return ScrapeResult(html=None, markdown=None, status="error", error=str(payload.get("error") or "failed"))
        data = payload.get("data") or {}
        meta = data.get("metadata") if isinstance(data.get("metadata"), dict) else {}
        return ScrapeResult(html=data.get("html"), markdown=data.get("markdown"), metadata=meta)


class ProviderDiscovery(ContentDiscovery):
    """ContentDiscovery backed by the configured providers."""

    def __init__(
        self,
        *,
        structured: Optional[NewsAPIAIIngestor] = None,
        web: Optional[FirecrawlIngestor] = None,
        scraper: Optional[DirectScraper] = None,
    ):
        self.structured = structured
        self.web = web
        self.scraper = scraper

    @property
    def structured_enabled(self) -> bool:
        return self.structured is not None

    @property
    def web_enabled(self) -> bool:
        return self.web is not None

    @classmethod
    def from_config(cls, config) -> "ProviderDiscovery":
        structured = None
        if config.newsapi_ai_key:
            structured = NewsAPIAIIngestor(
                api_key=config.newsapi_ai_key,
                lookback_days=config.structured_lookback_days,
                timeout=config.request_timeout,
            )
        web = None
        if config.firecrawl_api_key:
            web = FirecrawlIngestor(
                api_key=config.firecrawl_api_key,
                timeout=config.request_timeout,
                throttle=ScrapeThrottle(config.scrape_min_interval),
            )
        scraper = DirectScraper(timeout=config.request_timeout, throttle=ScrapeThrottle(config.scrape_min_interval))
        return cls(structured=structured, web=web, scraper=scraper)

    def search_structured(self, keywords: Sequence[str], *, limit: int = 20) -> List[Candidate]:
        if self.structured is None:
            return []
        return self.structured.fetch(keywords, limit=limit)

    def search_web(self, query: str, *, limit: int = 10) -> List[Candidate]:
        if self.web is None:
            return []
        return self.web.search(query, limit=limit)

    def scrape(self, url: str) -> ScrapeResult:
        result = None
        if self.web is not None:
            result = self.web.scrape(url)
            if result.ok:
                return result
            logger.info(f"Firecrawl scrape failed for {url} ({result.status}); trying direct fetch")
        if self.scraper is not None:
            return self.scraper.scrape(url)
        return result or ScrapeResult(html=None, markdown=None, status="error", error="no_scraper")
