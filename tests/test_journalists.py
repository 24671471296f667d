import unittest
from datetime import datetime, timedelta, timezone

from policyfront.attribution.journalists import infer_beat, merge_journalist, running_average
from policyfront.extraction.byline import Byline
from policyfront.ingestion.article_types import Journalist


T0 = datetime(2025, 3, 1, tzinfo=timezone.utc)


class TestJournalistMerge(unittest.TestCase):
    def test_running_average(self):
        self.assertAlmostEqual(running_average(0.5, 3, -1.0), (0.5 * 3 - 1.0) / 4)
        self.assertEqual(running_average(None, 0, 1.0), 1.0)
        self.assertEqual(running_average(None, 5, -1.0), -1.0)

    def test_infer_beat(self):
        self.assertEqual(infer_beat("Solar checkoff"), "Energy")
        self.assertEqual(infer_beat("Medicaid expansion"), "Healthcare")
        self.assertEqual(infer_beat("Charter school funding"), "Education")
        self.assertEqual(infer_beat("Dog park hours"), "Policy")
        self.assertIsNone(infer_beat(""))
        # "ai" must be a whole word
        self.assertEqual(infer_beat("Dairy pricing"), "Policy")

    def test_first_sighting(self):
        j = merge_journalist(None, Byline("Jane Doe", email="jane@sacbee.com"), outlet="sacbee.com",
                             beat="Energy", sentiment=1.0, seen_at=T0)
        self.assertEqual(j.article_count, 1)
        self.assertEqual(j.avg_sentiment, 1.0)
        self.assertEqual(j.beats, ["Energy"])
        self.assertEqual(j.email, "jane@sacbee.com")
        self.assertEqual(j.last_article_at, T0)

    def test_update_backfills_without_overwriting(self):
        existing = Journalist(name="Jane Doe", outlet="sacbee.com", email="jane@sacbee.com", article_count=3,
                              avg_sentiment=0.5, beats=["Energy"], last_article_at=T0, id=7)
        byline = Byline("Jane Doe", email="other@sacbee.com", twitter="@janedoe")
        j = merge_journalist(existing, byline, outlet="sacbee.com", beat="Healthcare", sentiment=-1.0,
                             seen_at=T0 - timedelta(days=1))
        self.assertEqual(j.id, 7)
        self.assertEqual(j.email, "jane@sacbee.com")
        self.assertEqual(j.twitter, "@janedoe")
        self.assertEqual(j.article_count, 4)
        self.assertAlmostEqual(j.avg_sentiment, (0.5 * 3 - 1.0) / 4)
        self.assertEqual(j.beats, ["Energy", "Healthcare"])
        self.assertEqual(j.last_article_at, T0)
        # the input record is not mutated
        self.assertEqual(existing.article_count, 3)
        self.assertIsNone(existing.twitter)

    def test_unscored_mention_keeps_average(self):
        existing = Journalist(name="Jane Doe", outlet="", article_count=2, avg_sentiment=0.25, beats=["Energy"])
        j = merge_journalist(existing, Byline("Jane Doe"), outlet="", beat="Energy", sentiment=None, seen_at=T0)
        self.assertEqual(j.avg_sentiment, 0.25)
        self.assertEqual(j.article_count, 3)
        self.assertEqual(j.beats, ["Energy"])


if __name__ == "__main__":
    unittest.main()
