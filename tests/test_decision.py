import unittest

from Fruit_Grading.decision import Decision, DecisionConfig, decide, tally_defects
from Fruit_Grading.labels import RipenessLabel
from vision_kit.types import Box, Detection


def _spot(label: str) -> Detection:
    return Detection(label=label, confidence=0.9, box=Box(0, 0, 5, 5))


class TestDecisionRules(unittest.TestCase):
    def test_pathogen_beats_everything(self) -> None:
        d = decide("ripe", {"scab": 1})
        self.assertEqual(d.decision, Decision.REJECT)
        self.assertEqual(d.reason, "pathogen detected")
        self.assertEqual(d.rule, "pathogen")

    def test_unhealthy_with_spot_is_decaying(self) -> None:
        d = decide("un-healthy", {"black-spot": 1})
        self.assertEqual((d.decision, d.reason), (Decision.REJECT, "overripe and decaying"))
        d = decide(RipenessLabel.UNHEALTHY, {"brown-spot": 2})
        self.assertEqual((d.decision, d.reason), (Decision.REJECT, "overripe and decaying"))

    def test_black_spot_is_processing_grade(self) -> None:
        d = decide("ripe", {"black-spot": 1})
        self.assertEqual((d.decision, d.reason), (Decision.CONDITIONAL, "processing-grade only"))

    def test_brown_spot_limit(self) -> None:
        self.assertEqual(decide("ripe", {"brown-spot": 9}).decision, Decision.ACCEPT)
        d = decide("ripe", {"brown-spot": 10})
        self.assertEqual((d.decision, d.reason), (Decision.CONDITIONAL, "excess surface spotting"))
        self.assertEqual(decide("ripe", {"brown-spot": 3}, DecisionConfig(brown_spot_limit=3)).rule, "brown_spot_excess")

    def test_needs_ripening(self) -> None:
        for label in ("unripe", "breaking-stage"):
            d = decide(label, {})
            self.assertEqual((d.decision, d.reason), (Decision.CONDITIONAL, "needs further ripening"))

    def test_sellable_stages(self) -> None:
        for label in ("half-ripe-stage", "ripe", "ripe_with_consumable_disease"):
            self.assertEqual(decide(label, {}).decision, Decision.ACCEPT)

    def test_unhealthy_without_spots_is_overripe(self) -> None:
        d = decide("un-healthy", {})
        self.assertEqual((d.decision, d.reason, d.rule), (Decision.REJECT, "overripe", "overripe"))

    def test_unknown_ripeness_is_held(self) -> None:
        d = decide("mystery-stage", {"unknown-defect": 4})
        self.assertEqual((d.decision, d.reason), (Decision.HOLD, "undetermined"))

    def test_custom_pathogen_labels(self) -> None:
        cfg = DecisionConfig(pathogen_labels=frozenset({"anthracnose"}))
        self.assertEqual(decide("ripe", {"anthracnose": 1}, cfg).rule, "pathogen")
        self.assertEqual(decide("ripe", {"scab": 1}, cfg).decision, Decision.ACCEPT)

    def test_invalid_limit(self) -> None:
        with self.assertRaises(ValueError):
            DecisionConfig(brown_spot_limit=0)

    def test_tally(self) -> None:
        counts = tally_defects([_spot("brown-spot"), _spot("scab"), _spot("brown-spot")])
        self.assertEqual(counts, {"brown-spot": 2, "scab": 1})
        self.assertEqual(tally_defects([]), {})


if __name__ == "__main__":
    unittest.main()
