import unittest
from datetime import datetime, timezone

from policyfront.ingestion.article_types import Mention, Sentiment, Topic
from policyfront.scoring.classifier import is_affirmative, parse_sentiment_answer
from policyfront.scoring.sentiment import (
    BACKFILL_TEXT_CHARS,
    SentimentClassifier,
    backfill_unscored,
    keyword_sentiment,
    lexicon_counts,
    score_to_sentiment,
    sentiment_value,
)
from sentiment_backfill_worker import run_backfill
from tests.fakes import FakeClassifier, InMemoryMentionStore


class TestKeywordFallback(unittest.TestCase):
    def test_two_positive_hits_is_positive(self):
        self.assertEqual(keyword_sentiment("The bill has bipartisan support."), Sentiment.POSITIVE)

    def test_equal_counts_is_neutral(self):
        self.assertEqual(keyword_sentiment("Growth and savings, critics say, are a burden."), Sentiment.NEUTRAL)
        self.assertEqual(keyword_sentiment(""), Sentiment.NEUTRAL)

    def test_one_hit_margin_is_neutral(self):
        self.assertEqual(keyword_sentiment("Lawmakers approved the measure."), Sentiment.NEUTRAL)

    def test_negative(self):
        text = "Critics warn the costly surcharge is a burden and plan a lawsuit."
        self.assertEqual(keyword_sentiment(text), Sentiment.NEGATIVE)

    def test_terms_match_whole_words(self):
        self.assertEqual(lexicon_counts("taxation feedback anti-taxi"), (0, 0))
        self.assertEqual(lexicon_counts("a new tax credit"), (1, 1))

    def test_deterministic(self):
        text = "Bipartisan support grows for the clean energy incentive."
        self.assertEqual({keyword_sentiment(text) for _ in range(5)}, {Sentiment.POSITIVE})


class TestDeadBand(unittest.TestCase):
    def test_score_mapping(self):
        self.assertEqual(score_to_sentiment(0.4), Sentiment.POSITIVE)
        self.assertEqual(score_to_sentiment(-0.3), Sentiment.NEGATIVE)
        self.assertEqual(score_to_sentiment(0.15), Sentiment.NEUTRAL)
        self.assertEqual(score_to_sentiment(-0.15), Sentiment.NEUTRAL)
        self.assertEqual(score_to_sentiment(0.0), Sentiment.NEUTRAL)
        self.assertEqual(score_to_sentiment(None), Sentiment.UNSCORED)

    def test_sentiment_value(self):
        self.assertEqual(sentiment_value(Sentiment.POSITIVE), 1.0)
        self.assertEqual(sentiment_value(Sentiment.NEUTRAL), 0.0)
        self.assertIsNone(sentiment_value(Sentiment.UNSCORED))
        self.assertEqual(sentiment_value(Sentiment.POSITIVE, 0.62), 0.62)
        self.assertEqual(sentiment_value(Sentiment.NEGATIVE, -3.0), -1.0)


class TestClassifierAnswers(unittest.TestCase):
    def test_sentiment_answer_parsing(self):
        self.assertEqual(parse_sentiment_answer("Positive: praises the bill"), Sentiment.POSITIVE)
        self.assertEqual(parse_sentiment_answer("**negative** - opposition"), Sentiment.NEGATIVE)
        self.assertEqual(parse_sentiment_answer("mixed"), Sentiment.NEUTRAL)
        self.assertEqual(parse_sentiment_answer(""), Sentiment.NEUTRAL)
        self.assertEqual(parse_sentiment_answer(None), Sentiment.NEUTRAL)

    def test_only_explicit_yes_is_affirmative(self):
        self.assertTrue(is_affirmative("Yes."))
        self.assertTrue(is_affirmative(" yes"))
        self.assertFalse(is_affirmative("No"))
        self.assertFalse(is_affirmative("Possibly"))
        self.assertFalse(is_affirmative("yesterday"))
        self.assertFalse(is_affirmative(""))


class TestSentimentClassifier(unittest.TestCase):
    def test_uses_classifier_when_available(self):
        scorer = SentimentClassifier(FakeClassifier(sentiment=Sentiment.NEGATIVE))
        self.assertEqual(scorer.classify("Solar", "t", "bipartisan support"), (Sentiment.NEGATIVE, "classifier"))

    def test_falls_back_on_error(self):
        scorer = SentimentClassifier(FakeClassifier(sentiment_error=RuntimeError("503")))
        self.assertEqual(scorer.classify("Solar", "Bill passed", "bipartisan support"), (Sentiment.POSITIVE, "keywords"))

    def test_falls_back_without_classifier(self):
        self.assertEqual(SentimentClassifier().classify("Solar", "", ""), (Sentiment.NEUTRAL, "keywords"))


class TestBackfill(unittest.TestCase):
    def test_scores_unscored_and_skips_short_text(self):
        store = InMemoryMentionStore([Topic(id=1, name="Solar checkoff", keywords=["solar checkoff"])])
        now = datetime(2025, 3, 1, tzinfo=timezone.utc)
        long_one = Mention(
            topic_id=1,
            url="https://a.com/1",
            title="Checkoff bill passed",
            outlet="a.com",
            discovered_at=now,
            excerpt="Bipartisan support for the program brings new jobs.",
        )
        short_one = Mention(topic_id=1, url="https://a.com/2", title="Brief", outlet="a.com", discovered_at=now)
        store.insert_mention(long_one)
        store.insert_mention(short_one)

        stats = backfill_unscored(store, SentimentClassifier(), limit=10)

        self.assertEqual(stats, {"found": 2, "scored": 1, "skipped": 1, "failed": 0})
        self.assertEqual(store.mentions[long_one.id].sentiment, Sentiment.POSITIVE)
        self.assertEqual(store.mentions[short_one.id].sentiment, Sentiment.UNSCORED)

    def test_skipped_rows_do_not_block_older_mentions(self):
        store = InMemoryMentionStore([Topic(id=1, name="Solar checkoff", keywords=["solar checkoff"])])
        older = Mention(
            topic_id=1,
            url="https://a.com/old",
            title="Checkoff bill passed",
            outlet="a.com",
            discovered_at=datetime(2025, 2, 1, tzinfo=timezone.utc),
            excerpt="Bipartisan support for the program brings new jobs.",
        )
        store.insert_mention(older)
        for i in range(3):
            store.insert_mention(
                Mention(
                    topic_id=1,
                    url=f"https://a.com/short-{i}",
                    title="Brief",
                    outlet="a.com",
                    discovered_at=datetime(2025, 3, 1, i, tzinfo=timezone.utc),
                )
            )

        scored = run_backfill(store, SentimentClassifier(), batch_size=3, max_batches=5)

        self.assertEqual(scored, 1)
        self.assertEqual(store.mentions[older.id].sentiment, Sentiment.POSITIVE)

    def test_seen_rows_are_excluded_from_the_next_read(self):
        store = InMemoryMentionStore([Topic(id=1, name="Solar", keywords=["solar"])])
        now = datetime(2025, 3, 1, tzinfo=timezone.utc)
        store.insert_mention(Mention(topic_id=1, url="https://a.com/1", title="Brief", outlet="a.com", discovered_at=now))
        seen = set()
        first = backfill_unscored(store, SentimentClassifier(), limit=5, seen=seen)
        second = backfill_unscored(store, SentimentClassifier(), limit=5, seen=seen)
        self.assertEqual((first["found"], first["skipped"]), (1, 1))
        self.assertEqual(second["found"], 0)

    def test_classifier_gets_truncated_text(self):
        store = InMemoryMentionStore([Topic(id=1, name="Solar checkoff", keywords=["solar checkoff"])])
        title = "Checkoff bill passed"
        store.insert_mention(
            Mention(
                topic_id=1,
                url="https://a.com/long",
                title=title,
                outlet="a.com",
                discovered_at=datetime(2025, 3, 1, tzinfo=timezone.utc),
                content="word " * 1000,
            )
        )
        classifier = FakeClassifier(sentiment=Sentiment.NEGATIVE)

        backfill_unscored(store, SentimentClassifier(classifier), limit=5)

        ((_topic, sent_title, sent_text),) = classifier.sentiment_calls
        self.assertEqual(sent_title, title)
        self.assertLessEqual(len(sent_title) + 1 + len(sent_text), BACKFILL_TEXT_CHARS)
        self.assertTrue(sent_text.startswith("word word"))


if __name__ == "__main__":
    unittest.main()
