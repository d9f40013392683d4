"""Tests for response enrichment."""

import pytest

from limesurvey_webhook.catalog import QuestionCatalog
from limesurvey_webhook.enrichment import EXCLUDED_FIELDS, enrich_response
from limesurvey_webhook.models import Question


class TestEnrichResponse:
    def test_enriches_answered_fields_in_column_order(self, raw_response, catalog):
        answers = enrich_response(raw_response, catalog)

        assert [a.to_dict() for a in answers] == [
            {"question": "How satisfied are you?", "answer": "Support quality"},
            {"question": "Would you recommend us?", "answer": "Yes"},
            {"question": "Any comments?", "answer": "Great service"},
            {"question": "Favourite colour", "answer": "Blue"},
            {"question": "Rank the channels [1]", "answer": "Phone"},
            {"question": "Rank the channels [2]", "answer": "Email"},
        ]

    def test_token_never_enriched(self, catalog):
        response = {"token": "Y", "G2Q00002": "N"}
        answers = enrich_response(response, catalog)
        assert [a.field_code for a in answers] == ["G2Q00002"]

    @pytest.mark.parametrize("field", sorted(EXCLUDED_FIELDS))
    def test_metadata_fields_excluded_even_when_they_look_like_codes(self, field):
        catalog = QuestionCatalog(42, [Question(99, 42, 0, "T", field, "Meta?", "en")])
        assert enrich_response({field: "Y"}, catalog) == []

    def test_metadata_only_response_is_empty(self, catalog):
        response = {"id": 1, "submitdate": None, "startlanguage": "en", "token": "t"}
        assert enrich_response(response, catalog) == []

    def test_empty_and_null_values_never_appear(self, catalog):
        response = {"G2Q00002": "", "G3Q00003": None, "G4Q00004": "A1"}
        answers = enrich_response(response, catalog)
        assert [a.field_code for a in answers] == ["G4Q00004"]

    def test_unparseable_and_unknown_fields_skipped(self, catalog):
        response = {"G3Q00003_other": "x", "UNKNOWN1": "Y", "G2Q00002": "Y"}
        answers = enrich_response(response, catalog)
        assert [a.field_code for a in answers] == ["G2Q00002"]

    def test_idempotent(self, raw_response, catalog):
        snapshot = dict(raw_response)

        first = enrich_response(raw_response, catalog)
        second = enrich_response(raw_response, catalog)

        assert first == second
        assert raw_response == snapshot
