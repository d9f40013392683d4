"""
Survey completion webhook plugin.

Runs the whole pipeline for one completed response: fetch the response,
look up the participant, build the question catalog, enrich, assemble the
payload, POST it, and log the outcome. Nothing escapes handle(): store and
transport failures end up in the log and in the returned PluginResult.
"""

import json
import logging
import time
from dataclasses import dataclass
from typing import Any

from core.errors.exceptions import StoreError
from core.logging.context import set_log_context
from core.logging.setup import generate_trace_id
from core.logging.utilities import log_exception, log_with_context
from core.security.url_validation import sanitize_url
from core.utils.json_serializers import json_serializer
from limesurvey_webhook.catalog import QuestionCatalog, load_catalog
from limesurvey_webhook.config import WebhookConfig
from limesurvey_webhook.dispatcher import WebhookDispatcher
from limesurvey_webhook.enrichment import enrich_response
from limesurvey_webhook.events import SurveyCompleteEvent
from limesurvey_webhook.models import DispatchResult, Participant, RawResponse
from limesurvey_webhook.payload import build_payload, redact_payload
from limesurvey_webhook.store import SurveyStore

logger = logging.getLogger(__name__)


@dataclass
class PluginResult:
    """Result of handling one event."""

    success: bool
    handled: bool = True
    message: str | None = None
    dispatch: DispatchResult | None = None

    @classmethod
    def skip(cls, reason: str) -> "PluginResult":
        return cls(success=True, handled=False, message=f"Skipped: {reason}")

    @classmethod
    def failed(cls, reason: str) -> "PluginResult":
        return cls(success=False, message=reason)

    @classmethod
    def dispatched(cls, result: DispatchResult) -> "PluginResult":
        return cls(
            success=result.success,
            message=f"HTTP {result.status}" if result.status is not None else "no response",
            dispatch=result,
        )


class SurveyWebhookPlugin:
    """
    Sends a webhook when a response to a configured survey is completed.

    Collaborators are injected: the survey store for reads and the
    dispatcher for the outbound POST. Each handle() call works on its own
    catalog and payload.
    """

    name = "survey_webhook"

    def __init__(
        self,
        config: WebhookConfig,
        store: SurveyStore,
        dispatcher: WebhookDispatcher,
        language: str | None = None,
        strip_html: bool = True,
    ):
        self.config = config
        self.store = store
        self.dispatcher = dispatcher
        self.language = language
        self.strip_html = strip_html

    def should_run(self, event: SurveyCompleteEvent) -> bool:
        """True if the event's survey is in the configured survey filter."""
        return event.survey_id in self.config.survey_ids

    async def handle(self, event: SurveyCompleteEvent) -> PluginResult:
        """Handle one completion event. Never raises."""
        if not self.should_run(event):
            logger.debug(
                "Survey not in webhook filter",
                extra={"survey_ids": sorted(self.config.survey_ids)},
            )
            return PluginResult.skip(f"survey {event.survey_id} not configured")

        set_log_context(
            trace_id=generate_trace_id(),
            survey_id=event.survey_id,
            response_id=event.response_id,
        )
        try:
            return await self._run(event)
        except Exception as e:
            log_exception(logger, e, "Unexpected error while handling survey completion")
            return PluginResult.failed(f"Unexpected error: {type(e).__name__}")
        finally:
            set_log_context(trace_id="", survey_id="", response_id="")

    async def _run(self, event: SurveyCompleteEvent) -> PluginResult:
        start_time = time.perf_counter()
        event_name = event.event or self.config.event_name

        try:
            response = await self.store.get_response(event.survey_id, event.response_id)
        except StoreError as e:
            log_exception(logger, e, "Failed to load survey response", include_traceback=False)
            return PluginResult.failed("Response lookup failed")

        if response is None:
            logger.warning("Survey response not found, no webhook sent")
            return PluginResult.failed("Response not found")

        participant = await self._lookup_participant(event.survey_id, response)

        catalog = None
        answers = None
        if self.config.richness.needs_catalog:
            catalog = await self._load_catalog(event.survey_id, response)
            if self.config.richness.includes_answers:
                answers = enrich_response(response, catalog)

        payload = build_payload(
            event.survey_id,
            event.response_id,
            response,
            event_name=event_name,
            richness=self.config.richness,
            answers=answers,
            catalog=catalog,
            participant=participant,
            auth_token=self.config.auth_token,
        )

        result = await self.dispatcher.dispatch(payload)
        self._log_dispatch(event_name, payload, result, time.perf_counter() - start_time)
        return PluginResult.dispatched(result)

    async def _lookup_participant(
        self, survey_id: int, response: RawResponse
    ) -> Participant | None:
        token = response.get("token")
        if not token:
            return None
        try:
            participant = await self.store.query_participant(survey_id, str(token))
        except StoreError as e:
            log_exception(
                logger,
                e,
                "Participant lookup failed, sending without participant",
                level=logging.WARNING,
                include_traceback=False,
            )
            return None
        if participant is None:
            logger.debug("No participant record for response token")
        return participant

    async def _load_catalog(self, survey_id: int, response: RawResponse) -> QuestionCatalog:
        language = self.language or response.get("startlanguage") or None
        try:
            return await load_catalog(
                self.store, survey_id, language=language, clean_html=self.strip_html
            )
        except StoreError as e:
            log_exception(
                logger,
                e,
                "Question catalog unavailable, sending without labels",
                level=logging.WARNING,
                include_traceback=False,
            )
            return QuestionCatalog(survey_id, language=language)

    def _log_dispatch(
        self,
        event_name: str,
        payload: dict[str, Any],
        result: DispatchResult,
        elapsed: float,
    ) -> None:
        serialized = self.dispatcher.serialize(redact_payload(payload))
        target_url = sanitize_url(self.dispatcher.target_url)

        log_with_context(
            logger,
            logging.INFO,
            f"{event_name} | webhook {'delivered' if result.success else 'failed'} "
            f"| Response: {result.remote_response}",
            event=event_name,
            payload=serialized,
            remote_response=result.remote_response,
            http_status=result.status,
            target_url=target_url,
            elapsed_seconds=round(result.elapsed_seconds, 3),
            answers_count=len(payload.get("answers") or ()),
        )

        if result.error is not None:
            log_exception(
                logger,
                result.error,
                "Webhook delivery failed",
                include_traceback=False,
                http_status=result.status,
                target_url=target_url,
            )

        if self.config.debug_mode:
            pretty = json.dumps(
                redact_payload(payload),
                default=json_serializer,
                ensure_ascii=False,
                indent=2,
            )
            logger.debug(
                "%s debug trace\nParameters:\n%s\nHook sent to: %s\nResponse: %s\n"
                "Total execution time in seconds: %.3f",
                event_name,
                pretty,
                target_url,
                result.remote_response,
                elapsed,
                extra={
                    "event": event_name,
                    "payload": serialized,
                    "target_url": target_url,
                    "remote_response": result.remote_response,
                    "elapsed_seconds": round(elapsed, 3),
                },
            )
