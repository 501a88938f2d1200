import unittest

from achievement_report.tokens import (
    has_numeric_token,
    numeric_token_overlap,
    token_similarity,
    tokenize_item_name,
)


class TokenizerTests(unittest.TestCase):
    def test_synonym_unit_and_stop_word_normalisation(self):
        self.assertEqual(set(tokenize_item_name("Suger 1Kg Pack")), set(tokenize_item_name("Sugar 1kg")))
        self.assertEqual(tokenize_item_name("Suger 1Kg Pack"), ["sugar", "1kg"])

    def test_numeral_followed_by_unit_word_is_merged(self):
        self.assertEqual(tokenize_item_name("Margarine 500 gr"), ["margarine", "500g"])
        self.assertEqual(tokenize_item_name("Oil 2 Litre Bottle"), ["oil", "2l"])
        self.assertEqual(tokenize_item_name("Flour 5 kgs"), ["flour", "5kg"])

    def test_bare_g_is_not_a_unit_word(self):
        self.assertEqual(tokenize_item_name("Margarine 500 g"), ["margarine", "500", "g"])

    def test_attached_unit_suffix_is_canonicalised(self):
        self.assertEqual(tokenize_item_name("Yest 100grams"), ["yeast", "100g"])
        self.assertEqual(tokenize_item_name("Milk 200ML"), ["milk", "200ml"])
        self.assertEqual(tokenize_item_name("Cable 10m"), ["cable", "10m"])

    def test_bare_numeral_without_unit_is_kept(self):
        self.assertEqual(tokenize_item_name("Pack of 12"), ["of", "12"])

    def test_tokenization_is_deterministic_and_order_independent(self):
        for label in ["Angle Yeast 500g", "Margerine Tub 250 gr", "", "Welcom Lable Bucket"]:
            with self.subTest(label=label):
                self.assertEqual(tokenize_item_name(label), tokenize_item_name(label))
        self.assertEqual(
            set(tokenize_item_name("Margarine Tub 500g")),
            set(tokenize_item_name("500g Tub Margarine")),
        )

    def test_duplicates_are_removed(self):
        self.assertEqual(tokenize_item_name("Sugar sugar SUGAR"), ["sugar"])

    def test_empty_inputs_have_no_tokens(self):
        self.assertEqual(tokenize_item_name(None), [])
        self.assertEqual(tokenize_item_name("  --  "), [])
        self.assertEqual(tokenize_item_name("Box Pack Bag"), [])

    def test_similarity_is_jaccard(self):
        self.assertEqual(token_similarity(["a", "b"], ["a", "b", "c", "d"]), 0.5)
        self.assertEqual(token_similarity(["a"], ["b"]), 0.0)
        self.assertEqual(token_similarity([], ["a"]), 0.0)
        self.assertEqual(token_similarity(["a", "b"], ["b", "a"]), 1.0)

    def test_numeric_helpers(self):
        self.assertTrue(has_numeric_token(["margarine", "500g"]))
        self.assertFalse(has_numeric_token(["margarine"]))
        self.assertEqual(numeric_token_overlap(["x", "500g"], ["500g", "y"]), 1)
        self.assertEqual(numeric_token_overlap(["x", "500g"], ["250g"]), 0)
        self.assertEqual(numeric_token_overlap(["x"], ["x"]), 0)


if __name__ == "__main__":
    unittest.main()
