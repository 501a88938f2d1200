import unittest

from template_factory import make_workbook

from achievement_report.entries import Entry
from achievement_report.matcher import MATCH_THRESHOLD, resolve_entry_row, resolve_item_row
from achievement_report.schema import build_sheet_context


def context_for(*labels: str):
    rows = [["SR", "Item Description", "Colombo"]]
    rows.extend([index, label, None] for index, label in enumerate(labels, start=1))
    return build_sheet_context(make_workbook({"Sheet": rows}), "Sheet")


class ItemMatcherTests(unittest.TestCase):
    def test_exact_key_is_the_fast_path(self):
        context = context_for("Sugar 1kg", "Salt 400g")
        self.assertEqual(resolve_item_row(context, "salt400g", "Salt 400g"), 3)
        self.assertEqual(context.item_match_cache, {})

    def test_fuzzy_match_uses_synonyms_and_units(self):
        context = context_for("Sugar 1kg", "Salt 400g")
        self.assertEqual(resolve_item_row(context, "suger1kgpack", "Suger 1 Kg Pack"), 2)

    def test_size_mismatch_disqualifies_candidate(self):
        context = context_for("Astra Margarine Tub 250g")
        self.assertIsNone(resolve_item_row(context, None, "Astra Margarine Tub 500g"))

        context = context_for("Astra Margarine Tub 250g", "Astra Margarine Tub 500g")
        self.assertEqual(resolve_item_row(context, None, "Astra Margarine 500 grams"), 3)

    def test_candidates_without_sizes_stay_eligible(self):
        context = context_for("Astra Margarine Tub")
        self.assertEqual(resolve_item_row(context, None, "Astra Margarine Tub 500g"), 2)

    def test_threshold_is_inclusive(self):
        self.assertEqual(MATCH_THRESHOLD, 0.5)
        exactly_half = context_for("Chocolate Biscuit Cream Wafer")
        self.assertEqual(resolve_item_row(exactly_half, None, "Chocolate Biscuit"), 2)

        below_half = context_for("Chocolate Biscuit Cream Wafer Roll")
        self.assertIsNone(resolve_item_row(below_half, None, "Chocolate Biscuit"))

    def test_best_score_wins_and_ties_keep_first_row(self):
        context = context_for("Cream Cracker Family", "Cream Cracker", "Cream Cracker")
        self.assertEqual(resolve_item_row(context, None, "Cream Crackers Family"), 2)
        context = context_for("Lemon Puff Biscuit", "Lemon Puff Wafer")
        self.assertEqual(resolve_item_row(context, None, "Lemon Puff"), 2)

    def test_outcomes_are_cached_per_context(self):
        context = context_for("Sugar 1kg")
        self.assertEqual(resolve_item_row(context, None, "Suger 1kg"), 2)
        self.assertIsNone(resolve_item_row(context, None, "Chocolate Spread"))
        self.assertEqual(context.item_match_cache, {"suger1kg": 2, "chocolatespread": None})

        context.item_match_cache["chocolatespread"] = 2
        self.assertEqual(resolve_item_row(context, None, "Chocolate Spread"), 2)

        fresh = context_for("Sugar 1kg")
        self.assertEqual(fresh.item_match_cache, {})

    def test_label_without_tokens_never_matches(self):
        context = context_for("Sugar 1kg")
        self.assertIsNone(resolve_item_row(context, None, "Pack Box"))
        self.assertIsNone(resolve_item_row(context, None, None))

    def test_entry_row_falls_back_to_serial(self):
        context = context_for("Sugar 1kg", "Salt 400g")
        self.assertEqual(resolve_entry_row(context, Entry("colombo", 1, sr_key="2")), 3)
        self.assertEqual(resolve_entry_row(context, Entry("colombo", 1, "unknown", "Unknown Item", "1")), 2)
        self.assertIsNone(resolve_entry_row(context, Entry("colombo", 1, sr_key="9")))


if __name__ == "__main__":
    unittest.main()
