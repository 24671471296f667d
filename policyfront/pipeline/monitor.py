"""Mention monitor: one sweep over every active topic.

Per topic the sweep walks

    Idle -> QueryBuilt -> Discovering -> Filtering -> Persisting
         -> Attributing -> Scoring -> Done | Failed

Topics are independent: a failed topic is recorded in the report and the
sweep moves on. Inside a topic, only discovery can fail the topic; every step
after a mention is stored (clustering, byline, sentiment, journalist upsert,
coverage link) is best-effort and reported as a StepResult.

Dedup runs before any scrape. The SweepUrlSet is seeded from the store and
claimed atomically, so a URL returned by both adapters (or twice by one) is
scraped and inserted at most once per sweep.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from policyfront.attribution.journalists import infer_beat
from policyfront.clustering.stories import DEFAULT_THRESHOLD, DEFAULT_WINDOW_HOURS, StoryClusterer
from policyfront.extraction.byline import Byline, extract_author_info, extract_journalist
from policyfront.ingestion.article_types import Candidate, Mention, Sentiment, Topic
from policyfront.ingestion.ingestors import EXCERPT_CHARS, ContentDiscovery, parse_dt
from policyfront.ingestion.outlet_filter import is_news_outlet, outlet_type
from policyfront.ingestion.query_builder import build_structured_keywords, build_web_queries, structured_query_text
from policyfront.ingestion.url_utils import canonicalize_url, outlet_domain
from policyfront.scoring.classifier import TextClassification
from policyfront.scoring.relevance import DEFAULT_MIN_CHARS, RelevanceGate
from policyfront.scoring.sentiment import SentimentClassifier, score_to_sentiment, sentiment_value
from policyfront.storage.mention_store import MentionStore


logger = logging.getLogger(__name__)


class TopicState(str, Enum):
    IDLE = "idle"
    QUERY_BUILT = "query_built"
    DISCOVERING = "discovering"
    FILTERING = "filtering"
    PERSISTING = "persisting"
    ATTRIBUTING = "attributing"
    SCORING = "scoring"
    DONE = "done"
    FAILED = "failed"


class SweepUrlSet:
    """Per-sweep, per-topic set of URLs already seen or claimed."""

    def __init__(self):
        self._lock = threading.Lock()
        self._urls: Dict[int, Set[str]] = {}

    def seed(self, topic_id: int, urls: Iterable[str]) -> None:
        with self._lock:
            self._urls.setdefault(topic_id, set()).update(u for u in urls if u)

    def claim(self, topic_id: int, url: str) -> bool:
        """Atomically mark `url` as taken; False when it was already known."""
        with self._lock:
            seen = self._urls.setdefault(topic_id, set())
            if url in seen:
                return False
            seen.add(url)
            return True

    def __contains__(self, key) -> bool:
        topic_id, url = key
        with self._lock:
            return url in self._urls.get(topic_id, set())


@dataclass
class StepResult:
    name: str
    ok: bool = True
    error: Optional[str] = None
    value: Any = None


def run_step(name: str, fn: Callable[..., Any], *args, **kwargs) -> StepResult:
    """Run a best-effort step; failures are logged and returned, never raised."""
    try:
        return StepResult(name, True, None, fn(*args, **kwargs))
    except Exception as e:
        logger.warning(f"Step {name} failed: {e}")
        return StepResult(name, False, str(e))


@dataclass
class TopicResult:
    topic_id: int
    topic_name: str
    state: TopicState = TopicState.IDLE
    searched: int = 0
    skipped: int = 0
    new_mentions: int = 0
    scraped: int = 0
    blocked_outlets: int = 0
    duplicates: int = 0
    irrelevant: int = 0
    errors: List[str] = field(default_factory=list)
    step_failures: Dict[str, int] = field(default_factory=dict)

    @property
    def error(self) -> Optional[str]:
        return "; ".join(self.errors) if self.errors else None

    @property
    def failed(self) -> bool:
        return self.state is TopicState.FAILED

    def record(self, step: StepResult) -> StepResult:
        if not step.ok:
            self.step_failures[step.name] = self.step_failures.get(step.name, 0) + 1
        return step

    def to_dict(self) -> Dict[str, Any]:
        out = {
            "topic_id": self.topic_id,
            "topic": self.topic_name,
            "state": self.state.value,
            "searched": self.searched,
            "skipped": self.skipped,
            "new_mentions": self.new_mentions,
            "scraped": self.scraped,
            "blocked_outlets": self.blocked_outlets,
            "duplicates": self.duplicates,
            "irrelevant": self.irrelevant,
        }
        if self.error:
            out["error"] = self.error
        if self.step_failures:
            out["step_failures"] = dict(self.step_failures)
        return out


@dataclass
class SweepReport:
    started_at: datetime
    finished_at: Optional[datetime] = None
    scan_id: Optional[int] = None
    topics: List[TopicResult] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def status(self) -> str:
        return "failed" if self.error else "success"

    @property
    def new_mentions(self) -> int:
        return sum(t.new_mentions for t in self.topics)

    @property
    def failed_topics(self) -> List[TopicResult]:
        return [t for t in self.topics if t.failed or (t.state is TopicState.IDLE and t.error)]

    def totals(self) -> Dict[str, int]:
        return {
            "topics": len(self.topics),
            "searched": sum(t.searched for t in self.topics),
            "skipped": sum(t.skipped for t in self.topics),
            "new_mentions": self.new_mentions,
            "scraped": sum(t.scraped for t in self.topics),
            "failed_topics": len(self.failed_topics),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scan_id": self.scan_id,
            "status": self.status,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "error": self.error,
            "totals": self.totals(),
            "topics": [t.to_dict() for t in self.topics],
        }


@dataclass
class _Accepted:
    """A candidate that passed the outlet filter, dedup and the relevance gate."""

    candidate: Candidate
    url: str
    outlet: str
    title: str
    text: Optional[str]
    excerpt: Optional[str]
    html: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    published_at: Optional[datetime] = None
    mention: Optional[Mention] = None
    byline: Optional[Byline] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MentionMonitor:
    def __init__(
        self,
        store: MentionStore,
        discovery: ContentDiscovery,
        classifier: Optional[TextClassification] = None,
        *,
        structured_limit: int = 20,
        web_limit: int = 10,
        relevance_min_chars: int = DEFAULT_MIN_CHARS,
        cluster_window_hours: float = DEFAULT_WINDOW_HOURS,
        cluster_threshold: float = DEFAULT_THRESHOLD,
        topic_workers: int = 1,
        deadline_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.discovery = discovery
        self.relevance = RelevanceGate(classifier, min_chars=relevance_min_chars)
        self.sentiment = SentimentClassifier(classifier)
        self.clusterer = StoryClusterer(store, window_hours=cluster_window_hours, threshold=cluster_threshold)
        self.structured_limit = structured_limit
        self.web_limit = web_limit
        self.topic_workers = max(1, int(topic_workers))
        self.deadline_seconds = deadline_seconds
        self._clock = clock
        self._now = now

    @classmethod
    def from_config(
        cls,
        config,
        store: MentionStore,
        discovery: ContentDiscovery,
        classifier: Optional[TextClassification] = None,
    ) -> "MentionMonitor":
        return cls(
            store,
            discovery,
            classifier,
            structured_limit=config.structured_max_articles,
            web_limit=config.web_results_limit,
            relevance_min_chars=config.relevance_min_chars,
            cluster_window_hours=config.cluster_window_hours,
            cluster_threshold=config.cluster_similarity_threshold,
            topic_workers=config.topic_workers,
            deadline_seconds=config.sweep_deadline,
        )

    # -----------------------------
    # Sweep
    # -----------------------------
    def run_sweep(self) -> SweepReport:
        report = SweepReport(started_at=self._now())
        report.scan_id = run_step("start_scan", self.store.start_scan).value
        started = self._clock()

        try:
            topics = self.store.active_topics()
        except Exception as e:
            logger.error(f"Could not load active topics: {e}")
            report.error = f"load_topics: {e}"
            report.finished_at = self._now()
            run_step("finish_scan", self.store.finish_scan, report.scan_id, status="failed", error=report.error)
            return report

        logger.info(f"Sweep started: {len(topics)} active topic(s), workers={self.topic_workers}")
        urls = SweepUrlSet()

        if self.topic_workers == 1 or len(topics) <= 1:
            results = [self._run_topic(t, urls, started) for t in topics]
        else:
            by_id: Dict[int, TopicResult] = {}
            with ThreadPoolExecutor(max_workers=self.topic_workers) as executor:
                futures = {executor.submit(self._run_topic, t, urls, started): t for t in topics}
                for future in as_completed(futures):
                    topic = futures[future]
                    by_id[topic.id] = future.result()
            results = [by_id[t.id] for t in topics]

        report.topics = results
        report.finished_at = self._now()
        failed = report.failed_topics
        summary = "; ".join(f"{t.topic_name}: {t.error}" for t in failed) or None
        run_step(
            "finish_scan",
            self.store.finish_scan,
            report.scan_id,
            status=report.status,
            topics_scanned=sum(1 for t in results if t.state is not TopicState.IDLE),
            mentions_found=report.new_mentions,
            error=summary,
        )
        totals = report.totals()
        logger.info(
            f"Sweep finished: topics={totals['topics']} searched={totals['searched']} "
            f"new_mentions={totals['new_mentions']} scraped={totals['scraped']} failed={totals['failed_topics']}"
        )
        return report

    def _deadline_passed(self, started: float) -> bool:
        if not self.deadline_seconds:
            return False
        return (self._clock() - started) >= self.deadline_seconds

    def _run_topic(self, topic: Topic, urls: SweepUrlSet, started: float) -> TopicResult:
        if self._deadline_passed(started):
            result = TopicResult(topic.id, topic.name)
            result.errors.append("sweep deadline exceeded before topic started")
            logger.warning(f"Topic {topic.name!r} skipped: sweep deadline exceeded")
            return result
        try:
            return self.monitor_topic(topic, urls)
        except Exception as e:
            # Anything not handled inside the topic still must not stop the sweep.
            logger.exception(f"Topic {topic.name!r} crashed: {e}")
            result = TopicResult(topic.id, topic.name, state=TopicState.FAILED)
            result.errors.append(str(e))
            run_step("mark_topic_scan", self.store.mark_topic_scan, topic.id, "failed", str(e))
            return result

    # -----------------------------
    # One topic
    # -----------------------------
    def monitor_topic(self, topic: Topic, urls: Optional[SweepUrlSet] = None) -> TopicResult:
        urls = urls if urls is not None else SweepUrlSet()
        result = TopicResult(topic.id, topic.name)
        now = self._now()

        if not topic.searchable:
            result.state = TopicState.FAILED
            result.errors.append("topic has no keywords or bill ids")
            logger.warning(f"Topic {topic.name!r} skipped: nothing to search for")
            result.record(run_step("mark_topic_scan", self.store.mark_topic_scan, topic.id, "failed", result.error))
            return result

        result.record(run_step("mark_topic_scan", self.store.mark_topic_scan, topic.id, "scanning"))

        try:
            urls.seed(topic.id, self.store.known_urls(topic.id))
        except Exception as e:
            return self._fail(result, f"known_urls: {e}")

        structured_keywords = build_structured_keywords(topic)
        web_queries = build_web_queries(topic)
        result.state = TopicState.QUERY_BUILT

        result.state = TopicState.DISCOVERING
        candidates, attempted, succeeded = self._discover(topic, structured_keywords, web_queries, result)
        result.searched = len(candidates)
        if attempted and not succeeded:
            return self._fail(result, result.error or "all discovery providers failed")

        result.state = TopicState.FILTERING
        accepted = self._filter(topic, candidates, urls, result)

        result.state = TopicState.PERSISTING
        stored = self._persist(topic, accepted, result, now)

        result.state = TopicState.ATTRIBUTING
        for item in stored:
            item.byline = self._attribute(item, result)

        result.state = TopicState.SCORING
        for item in stored:
            self._score(topic, item, result, now)

        result.state = TopicState.DONE
        result.record(run_step("mark_topic_scan", self.store.mark_topic_scan, topic.id, "success", result.error))
        logger.info(
            f"Topic {topic.name!r}: searched={result.searched} new={result.new_mentions} "
            f"skipped={result.skipped} scraped={result.scraped}"
        )
        return result

    def _fail(self, result: TopicResult, error: str) -> TopicResult:
        if error not in result.errors:
            result.errors.append(error)
        result.state = TopicState.FAILED
        logger.error(f"Topic {result.topic_name!r} failed: {result.error}")
        result.record(run_step("mark_topic_scan", self.store.mark_topic_scan, result.topic_id, "failed", result.error))
        return result

    def _discover(self, topic: Topic, keywords: List[str], queries: List[str], result: TopicResult):
        """Structured provider first, then web search. Returns (candidates, attempted, succeeded)."""
        candidates: List[Candidate] = []
        attempted = succeeded = 0

        if self.discovery.structured_enabled and keywords:
            attempted += 1
            try:
                found = self.discovery.search_structured(keywords, limit=self.structured_limit)
                candidates.extend(found)
                succeeded += 1
                logger.info(
                    f"Topic {topic.name!r}: structured search ({structured_query_text(keywords)}) "
                    f"returned {len(found)} article(s)"
                )
            except Exception as e:
                result.errors.append(f"structured: {e}")
                logger.warning(f"Structured search failed for topic {topic.name!r}: {e}")

        if self.discovery.web_enabled:
            for query in queries:
                attempted += 1
                try:
                    found = self.discovery.search_web(query, limit=self.web_limit)
                    candidates.extend(found)
                    succeeded += 1
                    logger.info(f"Topic {topic.name!r}: web search returned {len(found)} result(s)")
                except Exception as e:
                    result.errors.append(f"web: {e}")
                    logger.warning(f"Web search failed for topic {topic.name!r} (query={query!r}): {e}")

        return candidates, attempted, succeeded

    def _filter(self, topic: Topic, candidates: List[Candidate], urls: SweepUrlSet, result: TopicResult) -> List[_Accepted]:
        accepted: List[_Accepted] = []
        for c in candidates:
            url = canonicalize_url(c.url)
            domain = outlet_domain(url)
            if not url or not is_news_outlet(domain):
                result.skipped += 1
                result.blocked_outlets += 1
                continue
            # Cheap checks are done; claim before paying for a scrape.
            if not urls.claim(topic.id, url):
                result.skipped += 1
                result.duplicates += 1
                continue

            if c.source_type == "structured":
                text = c.body or c.excerpt
                accepted.append(
                    _Accepted(
                        candidate=c,
                        url=url,
                        outlet=domain,
                        title=c.title,
                        text=text,
                        excerpt=c.excerpt or ((text or "")[:EXCERPT_CHARS] or None),
                        metadata=dict(c.metadata),
                        published_at=c.published_at,
                    )
                )
                continue

            item = self._scrape(c, url, domain, result)
            if not (item.title or item.text):
                result.skipped += 1
                continue
            if not self.relevance.is_relevant(topic, item.title, item.text, excerpt=item.excerpt):
                result.skipped += 1
                result.irrelevant += 1
                logger.info(f"Topic {topic.name!r}: not relevant, skipping {url}")
                continue
            accepted.append(item)
        return accepted

    def _scrape(self, c: Candidate, url: str, domain: str, result: TopicResult) -> _Accepted:
        step = result.record(run_step("scrape", self.discovery.scrape, url))
        result.scraped += 1
        scraped = step.value
        html = c.raw_html
        text = None
        metadata: Dict[str, Any] = dict(c.metadata)
        if scraped is not None and scraped.ok:
            html = scraped.html or html
            text = scraped.markdown
            metadata.update(scraped.metadata or {})
        else:
            reason = step.error or (scraped.error if scraped is not None else None)
            if step.ok:
                result.record(StepResult("scrape", False, reason))
            logger.info(f"Scrape failed for {url} ({reason}); keeping search excerpt")
        text = text or c.excerpt
        title = c.title or str(metadata.get("title") or "").strip()
        return _Accepted(
            candidate=c,
            url=url,
            outlet=domain,
            title=title,
            text=text,
            excerpt=c.excerpt or ((text or "")[:EXCERPT_CHARS] or None),
            html=html,
            metadata=metadata,
            published_at=c.published_at or parse_dt(metadata.get("publishedTime")),
        )

    def _persist(self, topic: Topic, accepted: List[_Accepted], result: TopicResult, now: datetime) -> List[_Accepted]:
        stored: List[_Accepted] = []
        for item in accepted:
            hint = item.candidate.cluster_hint
            mention = Mention(
                topic_id=topic.id,
                url=item.url,
                title=item.title,
                outlet=item.outlet,
                discovered_at=now,
                excerpt=item.excerpt,
                content=item.text,
                published_at=item.published_at,
                event_id=hint.event_id,
                outlet_type=outlet_type(item.outlet),
                source_type=item.candidate.source_type,
            )
            try:
                mention_id = self.store.insert_mention(mention)
            except Exception as e:
                result.errors.append(f"insert {item.url}: {e}")
                result.skipped += 1
                logger.warning(f"Could not store mention {item.url}: {e}")
                continue
            if mention_id is None:
                result.skipped += 1
                result.duplicates += 1
                continue
            mention.id = mention_id
            item.mention = mention
            result.new_mentions += 1
            result.record(run_step("cluster", self.clusterer.cluster, mention, hint, now=now))
            stored.append(item)
        return stored

    def _attribute(self, item: _Accepted, result: TopicResult) -> Optional[Byline]:
        c = item.candidate
        if c.source_type == "structured":
            step = result.record(run_step("byline", extract_author_info, c.authors))
            info = step.value or {}
            if not info.get("name"):
                return None
            return Byline(name=info["name"], outlet=item.outlet, email=info.get("email"))
        step = result.record(run_step("byline", extract_journalist, item.html, item.text, item.outlet, item.metadata))
        return step.value

    def _score(self, topic: Topic, item: _Accepted, result: TopicResult, now: datetime) -> None:
        mention = item.mention
        score = item.candidate.sentiment_score
        if score is not None:
            sentiment = score_to_sentiment(score)
        else:
            snippet = item.excerpt or (item.text or "")[:EXCERPT_CHARS]
            sentiment, _method = self.sentiment.classify(topic.name, item.title, snippet)

        if sentiment is not Sentiment.UNSCORED:
            step = result.record(run_step("sentiment", self.store.set_sentiment, mention.id, sentiment))
            if step.ok:
                mention.sentiment = sentiment

        if item.byline is None:
            return
        step = result.record(
            run_step(
                "journalist",
                self.store.upsert_journalist,
                item.byline,
                outlet=item.outlet,
                beat=infer_beat(topic.name),
                sentiment=sentiment_value(sentiment, score),
                seen_at=mention.published_at or now,
            )
        )
        journalist = step.value
        if journalist is None or journalist.id is None:
            return
        if result.record(run_step("set_journalist", self.store.set_journalist, mention.id, journalist.id)).ok:
            mention.journalist_id = journalist.id
        result.record(run_step("coverage", self.store.link_coverage, journalist.id, mention.id, topic.id))
