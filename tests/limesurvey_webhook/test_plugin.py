"""Tests for SurveyWebhookPlugin."""

import json
import logging
from dataclasses import replace

import pytest
from aiohttp import web

from core.errors.exceptions import DeliveryError, StoreError
from core.logging.context import get_log_context
from core.logging.formatters import ConsoleFormatter
from limesurvey_webhook.config import parse_survey_ids
from limesurvey_webhook.dispatcher import WebhookDispatcher
from limesurvey_webhook.events import SurveyCompleteEvent
from limesurvey_webhook.models import DispatchResult, Richness
from limesurvey_webhook.plugin import PluginResult, SurveyWebhookPlugin

SURVEY_ID = 42


def make_event(survey_id=SURVEY_ID, response_id=7, event=None):
    return SurveyCompleteEvent(survey_id=survey_id, response_id=response_id, event=event)


@pytest.fixture
def plugin(webhook_config, fake_store, mock_dispatcher):
    return SurveyWebhookPlugin(webhook_config, fake_store, mock_dispatcher)


def sent_payload(dispatcher):
    dispatcher.dispatch.assert_awaited_once()
    return dispatcher.dispatch.await_args.args[0]


# =============================================================================
# Survey filter
# =============================================================================


class TestSurveyFilter:
    async def test_listed_survey_dispatches_once(self, webhook_config, fake_store, mock_dispatcher, raw_response):
        config = replace(webhook_config, survey_ids=parse_survey_ids("10, 20,30"))
        fake_store.responses[(20, 5)] = raw_response
        plugin = SurveyWebhookPlugin(config, fake_store, mock_dispatcher)

        result = await plugin.handle(make_event(survey_id=20, response_id=5))

        assert result.handled is True
        assert result.success is True
        assert sent_payload(mock_dispatcher)["survey"] == 20

    async def test_unlisted_survey_skipped(self, plugin, fake_store, mock_dispatcher):
        result = await plugin.handle(make_event(survey_id=99))

        assert result.handled is False
        assert result.success is True
        mock_dispatcher.dispatch.assert_not_awaited()
        assert fake_store.calls == []

    async def test_empty_filter_never_fires(self, webhook_config, fake_store, mock_dispatcher):
        config = replace(webhook_config, survey_ids=frozenset())
        plugin = SurveyWebhookPlugin(config, fake_store, mock_dispatcher)

        result = await plugin.handle(make_event())

        assert result.handled is False
        mock_dispatcher.dispatch.assert_not_awaited()


# =============================================================================
# Pipeline
# =============================================================================


class TestHandle:
    async def test_labeled_payload_sent(self, plugin, mock_dispatcher):
        result = await plugin.handle(make_event())

        assert result.success is True
        assert result.message == "HTTP 200"
        payload = sent_payload(mock_dispatcher)
        assert payload["api_token"] == "secret-token"
        assert payload["survey"] == SURVEY_ID
        assert payload["respondId"] == 7
        assert payload["event"] == "afterSurveyComplete"
        assert payload["token"] == "tok123"
        assert payload["participant"]["email"] == "ada@example.com"
        assert {"question": "Would you recommend us?", "answer": "Yes"} in payload["answers"]
        assert {"question": "Any comments?", "answer": "Great service"} in payload["answers"]
        assert "response" not in payload

    async def test_event_name_from_trigger(self, plugin, mock_dispatcher):
        await plugin.handle(make_event(event="manualResend"))
        assert sent_payload(mock_dispatcher)["event"] == "manualResend"

    async def test_response_language_used_for_catalog(self, plugin, fake_store):
        await plugin.handle(make_event())
        assert ("query_questions", SURVEY_ID, "en") in fake_store.calls

    async def test_configured_language_wins(self, webhook_config, fake_store, mock_dispatcher):
        plugin = SurveyWebhookPlugin(webhook_config, fake_store, mock_dispatcher, language="de")
        await plugin.handle(make_event())
        assert ("query_questions", SURVEY_ID, "de") in fake_store.calls

    async def test_raw_richness_skips_catalog(self, webhook_config, fake_store, mock_dispatcher, raw_response):
        config = replace(webhook_config, richness=Richness.RAW)
        plugin = SurveyWebhookPlugin(config, fake_store, mock_dispatcher)

        await plugin.handle(make_event())

        payload = sent_payload(mock_dispatcher)
        assert payload["response"] == raw_response
        assert not any(call[0] == "query_questions" for call in fake_store.calls)

    async def test_coded_richness_sends_rows(self, webhook_config, fake_store, mock_dispatcher):
        config = replace(webhook_config, richness=Richness.CODED)
        plugin = SurveyWebhookPlugin(config, fake_store, mock_dispatcher)

        await plugin.handle(make_event())

        payload = sent_payload(mock_dispatcher)
        assert [q["question_code"] for q in payload["questions"]][:2] == ["G1Q00001", "G2Q00002"]
        assert [c["answer_code"] for c in payload["choices"]] == ["SQ001", "SQ003"]
        assert "answers" not in payload

    async def test_no_token_no_participant_lookup(self, plugin, fake_store, mock_dispatcher, raw_response):
        raw_response["token"] = ""

        await plugin.handle(make_event())

        payload = sent_payload(mock_dispatcher)
        assert payload["token"] is None
        assert payload["participant"] is None
        assert not any(call[0] == "query_participant" for call in fake_store.calls)

    async def test_unknown_participant_is_null(self, plugin, mock_dispatcher, raw_response):
        raw_response["token"] = "unknown"
        await plugin.handle(make_event())
        assert sent_payload(mock_dispatcher)["participant"] is None

    async def test_sentinel_submit_date_replaced(self, plugin, mock_dispatcher, raw_response):
        raw_response["submitdate"] = "1980-01-01 00:00:00"
        await plugin.handle(make_event())
        assert sent_payload(mock_dispatcher)["submitDate"] != "1980-01-01 00:00:00"

    async def test_log_context_reset_after_event(self, plugin):
        await plugin.handle(make_event())

        context = get_log_context()
        assert not context["survey_id"]
        assert not context["response_id"]


# =============================================================================
# Failures
# =============================================================================


class TestFailures:
    async def test_response_not_found(self, plugin, mock_dispatcher, caplog):
        with caplog.at_level(logging.WARNING, logger="limesurvey_webhook.plugin"):
            result = await plugin.handle(make_event(response_id=999))

        assert result == PluginResult.failed("Response not found")
        mock_dispatcher.dispatch.assert_not_awaited()
        assert "Survey response not found" in caplog.text

    async def test_response_lookup_error(self, plugin, fake_store, mock_dispatcher):
        async def broken(survey_id, response_id):
            raise StoreError("database down")

        fake_store.get_response = broken

        result = await plugin.handle(make_event())

        assert result.success is False
        assert result.message == "Response lookup failed"
        mock_dispatcher.dispatch.assert_not_awaited()

    async def test_catalog_error_sends_without_labels(self, plugin, fake_store, mock_dispatcher):
        async def broken(survey_id, language=None):
            raise StoreError("questions table missing")

        fake_store.query_questions = broken

        result = await plugin.handle(make_event())

        assert result.success is True
        assert sent_payload(mock_dispatcher)["answers"] == []

    async def test_participant_error_sends_without_participant(self, plugin, fake_store, mock_dispatcher):
        async def broken(survey_id, token):
            raise StoreError("tokens table missing")

        fake_store.query_participant = broken

        await plugin.handle(make_event())

        assert sent_payload(mock_dispatcher)["participant"] is None

    async def test_unexpected_error_contained(self, plugin, fake_store):
        async def broken(survey_id, response_id):
            raise KeyError("boom")

        fake_store.get_response = broken

        result = await plugin.handle(make_event())

        assert result.success is False
        assert result.message == "Unexpected error: KeyError"

    async def test_delivery_failure_logged(self, plugin, mock_dispatcher, caplog):
        error = DeliveryError("Webhook endpoint returned HTTP 500", status_code=500)
        mock_dispatcher.dispatch.return_value = DispatchResult(
            success=False, status=500, body="oops", error=error, elapsed_seconds=0.2
        )

        with caplog.at_level(logging.INFO, logger="limesurvey_webhook.plugin"):
            result = await plugin.handle(make_event())

        assert result.success is False
        assert result.message == "HTTP 500"
        messages = [r.getMessage() for r in caplog.records]
        assert "afterSurveyComplete | webhook failed | Response: oops" in messages
        assert "Webhook delivery failed" in messages


# =============================================================================
# Logging
# =============================================================================


class TestDispatchLogging:
    async def test_outcome_record(self, plugin, caplog):
        with caplog.at_level(logging.INFO, logger="limesurvey_webhook.plugin"):
            await plugin.handle(make_event())

        record = next(
            r for r in caplog.records
            if r.getMessage() == "afterSurveyComplete | webhook delivered | Response: ok"
        )
        assert record.event == "afterSurveyComplete"
        assert record.remote_response == "ok"
        assert record.http_status == 200
        assert record.target_url == "https://hooks.example.com/survey"
        assert record.answers_count == 6
        assert "secret-token" not in record.payload
        assert "[REDACTED]" in record.payload
        assert "| Response: ok" in ConsoleFormatter().format(record)

    async def test_undecodable_reply_logged_as_delivered(
        self, aiohttp_server, webhook_config, fake_store, caplog
    ):
        async def reply(request: web.Request) -> web.Response:
            return web.Response(body=b"ok caf\xe9", content_type="text/plain")

        app = web.Application()
        app.router.add_post("/hook", reply)
        server = await aiohttp_server(app)
        config = replace(webhook_config, target_url=str(server.make_url("/hook")))

        async with WebhookDispatcher.from_config(config) as dispatcher:
            plugin = SurveyWebhookPlugin(config, fake_store, dispatcher)
            with caplog.at_level(logging.INFO, logger="limesurvey_webhook.plugin"):
                result = await plugin.handle(make_event())

        assert result.success is True
        assert result.dispatch.status == 200
        record = next(r for r in caplog.records if hasattr(r, "remote_response"))
        assert record.getMessage().startswith("afterSurveyComplete | webhook delivered")
        assert record.remote_response.startswith("ok caf")

    async def test_debug_trace_only_in_debug_mode(self, plugin, caplog):
        with caplog.at_level(logging.DEBUG, logger="limesurvey_webhook.plugin"):
            await plugin.handle(make_event())

        assert "debug trace" not in caplog.text

    async def test_debug_trace(self, webhook_config, fake_store, mock_dispatcher, caplog):
        config = replace(webhook_config, debug_mode=True)
        plugin = SurveyWebhookPlugin(config, fake_store, mock_dispatcher)

        with caplog.at_level(logging.DEBUG, logger="limesurvey_webhook.plugin"):
            await plugin.handle(make_event())

        record = next(r for r in caplog.records if "debug trace" in r.getMessage())
        message = record.getMessage()
        assert "Hook sent to: https://hooks.example.com/survey" in message
        assert "Response: ok" in message
        assert "Total execution time in seconds:" in message
        parameters = message.split("Parameters:\n", 1)[1].split("\nHook sent to:", 1)[0]
        assert json.loads(parameters)["api_token"] == "[REDACTED]"
