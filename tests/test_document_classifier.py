"""Tests for filename-based document classification."""
import random

import pytest

from taxportal.services.document_classifier import (
    CONFIDENCE_RANGE,
    build_ai_classification,
    classify,
    get_document_keywords,
)


class TestClassify:

    @pytest.mark.parametrize(
        "filename,expected",
        [
            ("2025_W2_Acme.pdf", "w2"),
            ("acme-w-2.png", "w2"),
            ("1099-NEC client.pdf", "1099_nec"),
            ("stripe_1099k.pdf", "1099_k"),
            ("bank 1099-INT.pdf", "1099_int"),
            ("vanguard_1099div.pdf", "1099_div"),
            ("schwab-1099-b.pdf", "1099_b"),
            ("partnership K-1.pdf", "k1"),
            ("brokerage_statement_dec.pdf", "brokerage"),
            ("Form 1098.pdf", "mortgage_interest"),
            ("mortgage-statement.pdf", "mortgage_interest"),
            ("county_property_tax_bill.pdf", "property_tax"),
            ("donation receipt.jpg", "charitable_donation"),
            ("Charitable giving.pdf", "charitable_donation"),
            ("medical_bills.xlsx", "medical_expense"),
            ("signed 8879.pdf", "form_8879"),
            ("Engagement Letter.pdf", "engagement_letter"),
            ("passport.jpg", "other"),
        ],
    )
    def test_keyword_table(self, filename, expected):
        assert classify(filename) == expected

    def test_first_match_wins(self):
        # Contains both a W-2 and a 1099-NEC keyword
        assert classify("w2_and_1099-nec.pdf") == "w2"
        # 1098 rule comes after every 1099 variant
        assert classify("1099-int_1098.pdf") == "1099_int"

    def test_property_requires_both_words(self):
        assert classify("property_photo.jpg") == "other"
        assert classify("tax_summary.pdf") == "other"

    @pytest.mark.parametrize("filename", ["", None])
    def test_missing_name_falls_back_to_other(self, filename):
        assert classify(filename) == "other"


class TestAiClassification:

    def test_payload_shape(self):
        payload = build_ai_classification("my_w2.pdf", "w2", rng=random.Random(7))

        assert payload["suggestedType"] == "w2"
        assert CONFIDENCE_RANGE[0] <= payload["confidence"] <= CONFIDENCE_RANGE[1]
        assert payload["taxYear"] == 2025
        assert payload["extractedFields"]["filename"] == "my_w2.pdf"
        assert payload["extractedFields"]["source"] == "ai_classification_v1"
        assert payload["keywords"] == get_document_keywords("w2")

    def test_injected_rng_is_reproducible(self):
        first = build_ai_classification("a.pdf", "other", rng=random.Random(42))
        second = build_ai_classification("a.pdf", "other", rng=random.Random(42))
        assert first["confidence"] == second["confidence"]

    def test_unknown_type_uses_generic_keywords(self):
        assert get_document_keywords("k1") == get_document_keywords("other")
