from django.test import SimpleTestCase

from email_tracking import scoring


class RateTest(SimpleTestCase):
    """Test cases for percentage rates."""

    def test_zero_denominator_is_zero(self):
        """Test that nothing sent yields 0, not an error."""
        self.assertEqual(scoring.rate(0, 0), 0)
        self.assertEqual(scoring.rate(5, 0), 0)

    def test_compute_rates(self):
        """Test delivery, bounce and spam use sent; open and click use delivered."""
        rates = scoring.compute_rates(
            total_sent=1000,
            total_delivered=950,
            total_bounced=60,
            total_opened=190,
            total_clicked=19,
            spam_complaints=2,
        )
        self.assertEqual(rates["delivery_rate"], 95.0)
        self.assertEqual(rates["bounce_rate"], 6.0)
        self.assertEqual(rates["spam_rate"], 0.2)
        self.assertEqual(rates["open_rate"], 20.0)
        self.assertEqual(rates["click_rate"], 2.0)

    def test_compute_rates_with_nothing_sent(self):
        """Test that every rate is 0 for an empty day."""
        rates = scoring.compute_rates(0, 0, 0, 0, 0, 0)
        self.assertEqual(set(rates.values()), {0})


class SenderScoreTest(SimpleTestCase):
    """Test cases for per-sender reputation."""

    def test_perfect_sender(self):
        """Test that a clean sender scores 100."""
        self.assertEqual(scoring.sender_reputation_score(0, 0, 40), 100)

    def test_bounce_penalty_is_monotonic(self):
        """Test that more bounces strictly lower the score past 2%."""
        scores = [scoring.sender_reputation_score(bounce, 0, 40) for bounce in (3, 4, 6, 9)]
        self.assertEqual(scores, sorted(scores, reverse=True))
        self.assertEqual(len(set(scores)), len(scores))

    def test_open_penalty_is_monotonic(self):
        """Test that fewer opens strictly lower the score below 20%."""
        scores = [scoring.sender_reputation_score(0, 0, open_rate) for open_rate in (19, 15, 10, 5)]
        self.assertEqual(scores, sorted(scores, reverse=True))
        self.assertEqual(len(set(scores)), len(scores))

    def test_score_clamped(self):
        """Test that the score never leaves [0, 100]."""
        self.assertEqual(scoring.sender_reputation_score(60, 5, 0), 0)

    def test_suspension_overrides_score(self):
        """Test that an 11% bounce rate suspends even with a passing score."""
        score = scoring.sender_reputation_score(11, 0, 100)
        self.assertGreaterEqual(score, 50)

        status, warnings = scoring.sender_status(11, 0, score)
        self.assertEqual(status, "suspended")
        self.assertEqual([w["type"] for w in warnings], ["high_bounce"])

    def test_spam_suspension_overrides_warning(self):
        """Test that a low score does not downgrade a spam suspension to warning."""
        status, warnings = scoring.sender_status(0, 0.3, 20)
        self.assertEqual(status, "suspended")
        self.assertEqual([w["type"] for w in warnings], ["spam_complaints", "low_engagement"])

    def test_warning_thresholds_are_exclusive(self):
        """Test that rates exactly on a threshold do not warn."""
        self.assertEqual(scoring.sender_status(5, 0.1, 50), ("active", []))

        status, warnings = scoring.sender_status(5.5, 0, 80)
        self.assertEqual(status, "warning")
        self.assertEqual(warnings[0]["message"], "Bounce rate 5.5% exceeds 5% threshold")


class DomainScoreTest(SimpleTestCase):
    """Test cases for domain reputation."""

    def test_healthy_domain(self):
        """Test that rates within thresholds keep a perfect score."""
        self.assertEqual(scoring.domain_reputation_score(2, 0.01, 20, 95), 100)

    def test_penalties_are_capped(self):
        """Test that each penalty stops at its cap."""
        # 40 + 50 + 20 + 30 = 140, clamped to 0
        self.assertEqual(scoring.domain_reputation_score(100, 100, 0, 0), 0)
        self.assertEqual(scoring.domain_reputation_score(50, 0, 50, 100), 60)

    def test_score_rounds_half_up(self):
        """Test that x.5 scores round up."""
        # 95 - 94.5 = 0.5 -> 1.5 point penalty -> 98.5
        self.assertEqual(scoring.domain_reputation_score(0, 0, 50, 94.5), 99)

    def test_example_domain_day(self):
        """Test the 6% bounce, 0.2% spam day."""
        self.assertEqual(scoring.domain_reputation_score(6.0, 0.2, 20.0, 95.0), 30)

    def test_reputation_bands(self):
        """Test the status band boundaries."""
        expected = {
            100: "excellent", 90: "excellent", 89: "good", 70: "good", 69: "fair",
            50: "fair", 49: "poor", 30: "poor", 29: "critical", 0: "critical",
        }
        for score, status in expected.items():
            with self.subTest(score=score):
                self.assertEqual(scoring.reputation_status(score), status)
