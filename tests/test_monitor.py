import unittest
from datetime import datetime, timezone

from policyfront.ingestion.article_types import Candidate, ClusterHint, Mention, ScrapeResult, Sentiment, Topic
from policyfront.pipeline.monitor import MentionMonitor, SweepUrlSet, TopicState, run_step
from tests.fakes import FakeClassifier, FakeDiscovery, InMemoryMentionStore


NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
SOLAR = Topic(id=1, name="Solar checkoff", keywords=["solar checkoff"], state="CA")
URL = "https://calmatters.org/energy/solar-checkoff-bill"
BODY = (
    "The bipartisan solar checkoff bill passed the Assembly with broad support from growers, "
    "who expect new jobs and savings for farms across the Central Valley. "
) * 3
EXCERPT = BODY[:300]
PAGE = ScrapeResult(
    html='<html><head><meta name="author" content="Jane Doe"></head><body><p>' + BODY + "</p></body></html>",
    markdown=BODY,
    metadata={"title": "California passes solar checkoff bill"},
)


def web_hit(url=URL, title="California passes solar checkoff bill", excerpt=EXCERPT):
    return Candidate(url=url, title=title, excerpt=excerpt, source_type="web")


def monitor(store, discovery, classifier=None, **kwargs):
    return MentionMonitor(store, discovery, classifier, now=lambda: NOW, **kwargs)


class TestSweepUrlSet(unittest.TestCase):
    def test_claim_is_check_and_insert(self):
        urls = SweepUrlSet()
        urls.seed(1, ["https://a.com/known"])
        self.assertFalse(urls.claim(1, "https://a.com/known"))
        self.assertTrue(urls.claim(1, "https://a.com/new"))
        self.assertFalse(urls.claim(1, "https://a.com/new"))
        # scoped per topic
        self.assertTrue(urls.claim(2, "https://a.com/new"))
        self.assertIn((1, "https://a.com/new"), urls)

    def test_run_step_captures_failures(self):
        ok = run_step("ok", lambda: 5)
        self.assertTrue(ok.ok)
        self.assertEqual(ok.value, 5)
        failed = run_step("boom", lambda: 1 / 0)
        self.assertFalse(failed.ok)
        self.assertIn("division", failed.error)


class TestMonitorScenario(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryMentionStore([SOLAR])
        self.discovery = FakeDiscovery(web=[web_hit()], pages={URL: PAGE})
        self.classifier = FakeClassifier(relevant=True, sentiment_error=RuntimeError("model unavailable"))

    def test_first_sweep_creates_positive_first_seen_mention(self):
        report = monitor(self.store, self.discovery, self.classifier).run_sweep()

        result = report.topics[0]
        self.assertEqual(result.state, TopicState.DONE)
        self.assertEqual(result.new_mentions, 1)
        self.assertEqual(result.searched, 1)
        self.assertEqual(self.discovery.web_calls, ['"solar checkoff" OR ("solar checkoff" California)'])
        self.assertEqual(self.discovery.scrape_calls, [URL])
        self.assertEqual(len(self.classifier.relevance_calls), 1)

        (mention,) = self.store.mentions_for(1)
        self.assertEqual(mention.sentiment, Sentiment.POSITIVE)
        self.assertTrue(mention.first_seen_for_story)
        self.assertEqual(mention.story_cluster, mention.id)
        self.assertEqual(mention.outlet, "calmatters.org")
        self.assertEqual(mention.published_at, NOW)

        journalist = self.store.journalists[("Jane Doe", "calmatters.org")]
        self.assertEqual(mention.journalist_id, journalist.id)
        self.assertEqual(journalist.article_count, 1)
        self.assertEqual(journalist.avg_sentiment, 1.0)
        self.assertEqual(journalist.beats, ["Energy"])
        self.assertEqual(self.store.coverage, {(journalist.id, mention.id, 1)})

        self.assertEqual(self.store.scans[report.scan_id]["status"], "success")
        self.assertEqual(self.store.scans[report.scan_id]["mentions_found"], 1)
        self.assertEqual(self.store.topic_status[1], [("scanning", None), ("success", None)])

    def test_second_sweep_is_a_no_op(self):
        monitor(self.store, self.discovery, self.classifier).run_sweep()
        report = monitor(self.store, self.discovery, self.classifier).run_sweep()

        result = report.topics[0]
        self.assertEqual(result.new_mentions, 0)
        self.assertEqual(result.skipped, 1)
        self.assertEqual(result.duplicates, 1)
        self.assertEqual(self.discovery.scrape_calls, [URL])
        self.assertEqual(len(self.store.mentions_for(1)), 1)
        self.assertEqual(report.to_dict()["totals"]["new_mentions"], 0)


class TestMonitorFiltering(unittest.TestCase):
    def test_known_url_is_never_scraped(self):
        store = InMemoryMentionStore([SOLAR])
        store.insert_mention(Mention(topic_id=1, url=URL, title="old", outlet="calmatters.org", discovered_at=NOW))
        discovery = FakeDiscovery(web=[web_hit(URL + "?utm_source=feed")], pages={URL: PAGE})

        result = monitor(store, discovery).run_sweep().topics[0]

        self.assertEqual(discovery.scrape_calls, [])
        self.assertEqual(result.new_mentions, 0)
        self.assertEqual(result.duplicates, 1)

    def test_same_url_from_both_adapters_is_processed_once(self):
        store = InMemoryMentionStore([SOLAR])
        structured = Candidate(
            url=URL,
            title="California passes solar checkoff bill",
            excerpt=EXCERPT,
            body=BODY,
            sentiment_score=0.6,
            source_type="structured",
        )
        discovery = FakeDiscovery(structured=[structured], web=[web_hit(), web_hit(URL + "#comments")], pages={URL: PAGE})

        result = monitor(store, discovery).run_sweep().topics[0]

        self.assertEqual(result.searched, 3)
        self.assertEqual(result.new_mentions, 1)
        self.assertEqual(result.duplicates, 2)
        self.assertEqual(discovery.scrape_calls, [])
        (mention,) = store.mentions_for(1)
        self.assertEqual(mention.source_type, "structured")

    def test_blocked_outlets_are_dropped_before_scrape(self):
        store = InMemoryMentionStore([SOLAR])
        discovery = FakeDiscovery(
            web=[
                web_hit("https://leginfo.legislature.ca.gov/faces/billNavClient.xhtml"),
                web_hit("https://x.com/someone/status/1"),
            ]
        )
        result = monitor(store, discovery).run_sweep().topics[0]
        self.assertEqual(result.blocked_outlets, 2)
        self.assertEqual(discovery.scrape_calls, [])
        self.assertEqual(store.mentions, {})

    def test_irrelevant_article_is_not_stored(self):
        store = InMemoryMentionStore([SOLAR])
        discovery = FakeDiscovery(web=[web_hit()], pages={URL: PAGE})
        result = monitor(store, discovery, FakeClassifier(relevant=False)).run_sweep().topics[0]
        self.assertEqual(result.irrelevant, 1)
        self.assertEqual(result.new_mentions, 0)
        self.assertEqual(store.mentions, {})

    def test_classifier_sees_title_and_excerpt(self):
        store = InMemoryMentionStore([SOLAR])
        discovery = FakeDiscovery(web=[web_hit()], pages={URL: PAGE})
        classifier = FakeClassifier(relevant=True, sentiment=Sentiment.NEUTRAL)
        monitor(store, discovery, classifier).run_sweep()

        ((_desc, relevance_text),) = classifier.relevance_calls
        self.assertEqual(relevance_text, "California passes solar checkoff bill\n\n" + EXCERPT)
        ((_name, title, sentiment_text),) = classifier.sentiment_calls
        self.assertEqual(title, "California passes solar checkoff bill")
        self.assertEqual(sentiment_text, EXCERPT)
        self.assertLess(len(EXCERPT), len(BODY))

    def test_relevance_outage_keeps_article(self):
        store = InMemoryMentionStore([SOLAR])
        discovery = FakeDiscovery(web=[web_hit()], pages={URL: PAGE})
        classifier = FakeClassifier(relevance_error=TimeoutError("slow"), sentiment=Sentiment.NEUTRAL)
        result = monitor(store, discovery, classifier).run_sweep().topics[0]
        self.assertEqual(result.new_mentions, 1)
        (mention,) = store.mentions_for(1)
        self.assertEqual(mention.sentiment, Sentiment.NEUTRAL)

    def test_failed_scrape_keeps_search_excerpt(self):
        store = InMemoryMentionStore([SOLAR])
        discovery = FakeDiscovery(web=[web_hit()])
        result = monitor(store, discovery).run_sweep().topics[0]
        self.assertEqual(result.new_mentions, 1)
        self.assertEqual(result.step_failures.get("scrape"), 1)
        (mention,) = store.mentions_for(1)
        self.assertEqual(mention.content, EXCERPT)
        self.assertIsNone(mention.journalist_id)


class TestMonitorStructured(unittest.TestCase):
    def test_provider_sentiment_and_authors(self):
        store = InMemoryMentionStore([SOLAR])
        candidate = Candidate(
            url="https://www.sacbee.com/news/article1.html",
            title="Solar checkoff clears Senate",
            excerpt=EXCERPT,
            body=BODY,
            sentiment_score=-0.4,
            cluster_hint=ClusterHint("eng-1"),
            authors=[{"name": "Reuters", "isAgency": True}, {"name": "Jane Doe", "uri": "jane_doe@sacbee.com"}],
            source_type="structured",
        )
        classifier = FakeClassifier(sentiment=Sentiment.POSITIVE)
        discovery = FakeDiscovery(structured=[candidate])

        monitor(store, discovery, classifier).run_sweep()

        (mention,) = store.mentions_for(1)
        self.assertEqual(mention.sentiment, Sentiment.NEGATIVE)
        self.assertEqual(mention.event_id, "eng-1")
        self.assertEqual(mention.outlet, "sacbee.com")
        self.assertEqual(classifier.sentiment_calls, [])
        self.assertEqual(classifier.relevance_calls, [])
        journalist = store.journalists[("Jane Doe", "sacbee.com")]
        self.assertEqual(journalist.email, "jane.doe@sacbee.com")
        self.assertAlmostEqual(journalist.avg_sentiment, -0.4)


class TestMonitorFailures(unittest.TestCase):
    def test_one_adapter_failing_does_not_stop_the_other(self):
        store = InMemoryMentionStore([SOLAR])
        discovery = FakeDiscovery(structured_error=ConnectionError("newsapi down"), web=[web_hit()], pages={URL: PAGE})

        result = monitor(store, discovery).run_sweep().topics[0]

        self.assertEqual(result.state, TopicState.DONE)
        self.assertEqual(result.new_mentions, 1)
        self.assertIn("structured: newsapi down", result.error)

    def test_failed_topic_does_not_stop_other_topics(self):
        other = Topic(id=2, name="Demand charges", keywords=["demand charge"], state="NV")
        store = InMemoryMentionStore([SOLAR, other])

        class PickyDiscovery(FakeDiscovery):
            def search_web(self, query, *, limit=10):
                if "solar" in query:
                    raise ConnectionError("firecrawl 502")
                return super().search_web(query, limit=limit)

        discovery = PickyDiscovery(web=[web_hit("https://thenevadaindependent.com/demand-charges", "Demand charge fight")])
        report = monitor(store, discovery).run_sweep()

        solar, demand = report.topics
        self.assertEqual(solar.state, TopicState.FAILED)
        self.assertIn("firecrawl 502", solar.error)
        self.assertEqual(store.topic_status[1][-1][0], "failed")
        self.assertEqual(demand.state, TopicState.DONE)
        self.assertEqual(demand.new_mentions, 1)
        self.assertEqual(report.status, "success")
        self.assertIn("Solar checkoff", store.scans[report.scan_id]["error"])

    def test_unsearchable_topic_is_reported_and_skipped(self):
        empty = Topic(id=3, name="Empty", keywords=[], bill_ids=[])
        store = InMemoryMentionStore([empty, SOLAR])
        discovery = FakeDiscovery(web=[web_hit()], pages={URL: PAGE})

        report = monitor(store, discovery).run_sweep()

        self.assertEqual(report.topics[0].state, TopicState.FAILED)
        self.assertIn("no keywords", report.topics[0].error)
        self.assertEqual(report.topics[1].new_mentions, 1)
        self.assertEqual(len(discovery.web_calls), 1)

    def test_side_step_failure_keeps_mention(self):
        class BrokenJournalists(InMemoryMentionStore):
            def upsert_journalist(self, *args, **kwargs):
                raise RuntimeError("deadlock detected")

        store = BrokenJournalists([SOLAR])
        discovery = FakeDiscovery(web=[web_hit()], pages={URL: PAGE})

        result = monitor(store, discovery).run_sweep().topics[0]

        self.assertEqual(result.state, TopicState.DONE)
        self.assertEqual(result.new_mentions, 1)
        self.assertEqual(result.step_failures, {"journalist": 1})
        (mention,) = store.mentions_for(1)
        self.assertEqual(mention.sentiment, Sentiment.POSITIVE)
        self.assertIsNone(mention.journalist_id)

    def test_topic_load_failure_is_reported(self):
        class NoTopics(InMemoryMentionStore):
            def active_topics(self):
                raise ConnectionError("db down")

        store = NoTopics()
        report = monitor(store, FakeDiscovery(web=[])).run_sweep()
        self.assertEqual(report.status, "failed")
        self.assertEqual(report.topics, [])
        self.assertEqual(store.scans[report.scan_id]["status"], "failed")

    def test_deadline_skips_topics_not_yet_started(self):
        other = Topic(id=2, name="Demand charges", keywords=["demand charge"])
        store = InMemoryMentionStore([SOLAR, other])
        discovery = FakeDiscovery(web=[web_hit()], pages={URL: PAGE})
        ticks = iter([0.0, 0.0, 30.0])

        report = monitor(store, discovery, deadline_seconds=10, clock=lambda: next(ticks)).run_sweep()

        solar, demand = report.topics
        self.assertEqual(solar.state, TopicState.DONE)
        self.assertEqual(demand.state, TopicState.IDLE)
        self.assertIn("deadline", demand.error)
        self.assertEqual(len(report.failed_topics), 1)
        self.assertEqual(store.scans[report.scan_id]["topics_scanned"], 1)


class TestMonitorParallel(unittest.TestCase):
    def test_topics_run_in_parallel_and_report_in_order(self):
        topics = [Topic(id=i, name=f"Topic {i}", keywords=[f"keyword {i}"]) for i in range(1, 5)]
        store = InMemoryMentionStore(topics)
        discovery = FakeDiscovery(web=[web_hit()], pages={URL: PAGE})

        report = monitor(store, discovery, topic_workers=3).run_sweep()

        self.assertEqual([t.topic_id for t in report.topics], [1, 2, 3, 4])
        self.assertEqual(report.new_mentions, 4)
        # dedup is per topic: each topic stores its own row for the URL
        self.assertEqual(len(store.mentions), 4)


if __name__ == "__main__":
    unittest.main()
