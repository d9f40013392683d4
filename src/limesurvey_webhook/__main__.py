"""Survey completion webhook service. Use --help for usage."""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

from dotenv import load_dotenv

from core.errors.exceptions import ConfigurationError
from core.logging.setup import log_startup, setup_logging
from core.security.url_validation import sanitize_url
from limesurvey_webhook.config import AppConfig, load_config
from limesurvey_webhook.dispatcher import WebhookDispatcher
from limesurvey_webhook.events import SurveyCompleteEvent
from limesurvey_webhook.plugin import SurveyWebhookPlugin
from limesurvey_webhook.server import WebhookServer
from limesurvey_webhook.store import SqlSurveyStore

# __main__.py is at src/limesurvey_webhook/__main__.py, so root is 3 levels up
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Placeholder logger until setup_logging() is called in main()
logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="limesurvey_webhook",
        description="Send a webhook when a survey response is completed",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Listen for completion events over HTTP
    python -m limesurvey_webhook serve

    # Send the webhook for one response
    python -m limesurvey_webhook send --survey-id 42 --response-id 7

    # Validate the configuration file
    python -m limesurvey_webhook check-config --config config/config.yaml
        """,
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to config.yaml (default: $LIMESURVEY_WEBHOOK_CONFIG or config/config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Console log level (default: logging.level from config)",
    )
    parser.add_argument(
        "--log-to-stdout",
        action="store_true",
        help="Send all logs to stdout only, no log files",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP trigger server")
    serve.add_argument("--host", help="Override server.host")
    serve.add_argument("--port", type=int, help="Override server.port")

    send = subparsers.add_parser("send", help="Send the webhook for one response")
    send.add_argument("--survey-id", type=int, required=True)
    send.add_argument("--response-id", type=int, required=True)
    send.add_argument("--event", help="Event name reported in the payload")

    subparsers.add_parser("check-config", help="Load and validate the configuration")

    return parser.parse_args(argv)


def _setup_logging(args: argparse.Namespace, config: AppConfig) -> None:
    console_level = logging.getLevelName(args.log_level or config.logging.level)
    if config.webhook.debug_mode:
        console_level = logging.DEBUG

    setup_logging(
        name="limesurvey_webhook",
        stage=args.command,
        log_dir=config.logging.log_dir,
        json_format=config.logging.json_format,
        console_level=console_level,
        log_to_stdout=args.log_to_stdout or config.logging.log_to_stdout,
    )


def build_plugin(config: AppConfig) -> tuple[SurveyWebhookPlugin, SqlSurveyStore, WebhookDispatcher]:
    """Wire store, dispatcher and plugin from configuration."""
    store = SqlSurveyStore.from_url(config.database.url, table_prefix=config.database.table_prefix)
    dispatcher = WebhookDispatcher.from_config(config.webhook)
    plugin = SurveyWebhookPlugin(
        config.webhook,
        store,
        dispatcher,
        language=config.database.language,
        strip_html=config.database.strip_html,
    )
    return plugin, store, dispatcher


def setup_signal_handlers(loop: asyncio.AbstractEventLoop, shutdown_event: asyncio.Event) -> None:
    """Set shutdown_event on SIGINT/SIGTERM. Not supported on Windows."""

    def handle_signal(sig):
        logger.info("Received signal, initiating graceful shutdown", extra={"signal": sig.name})
        shutdown_event.set()

    if sys.platform == "win32":
        logger.debug("Signal handlers not supported on Windows, using KeyboardInterrupt")
        return

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, lambda s=sig: handle_signal(s))


async def run_serve(config: AppConfig, host: str | None = None, port: int | None = None) -> int:
    plugin, store, dispatcher = build_plugin(config)
    server = WebhookServer(
        plugin,
        host=host or config.server.host,
        port=port if port is not None else config.server.port,
        path=config.server.path,
    )

    shutdown_event = asyncio.Event()
    setup_signal_handlers(asyncio.get_running_loop(), shutdown_event)

    try:
        await dispatcher.start()
        await server.start()
        await shutdown_event.wait()
    finally:
        await server.stop()
        await dispatcher.close()
        await store.close()
        logger.info("Webhook service shutdown complete")
    return 0


async def run_send(config: AppConfig, survey_id: int, response_id: int, event: str | None) -> int:
    plugin, store, dispatcher = build_plugin(config)
    trigger = SurveyCompleteEvent(survey_id=survey_id, response_id=response_id, event=event)

    try:
        async with dispatcher:
            result = await plugin.handle(trigger)
    finally:
        await store.close()

    if not result.handled:
        logger.warning("Survey is not in the webhook filter, nothing sent: %s", result.message)
        return 0
    return 0 if result.success else 1


def run_check_config(config: AppConfig) -> int:
    print("Configuration OK")
    print(f"  webhook.target_url: {sanitize_url(config.webhook.target_url)}")
    print(f"  webhook.survey_ids: {', '.join(str(s) for s in sorted(config.webhook.survey_ids)) or '(none)'}")
    print(f"  webhook.richness:   {config.webhook.richness.value}")
    print(f"  webhook.debug_mode: {config.webhook.debug_mode}")
    print(f"  database.url:       {sanitize_url(config.database.url)}")
    print(f"  server:             {config.server.host}:{config.server.port}{config.server.path}")
    return 0


def main(argv: list[str] | None = None) -> int:
    load_dotenv(PROJECT_ROOT / ".env")
    args = parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    if args.command == "check-config":
        return run_check_config(config)

    _setup_logging(args, config)
    log_startup(
        logger,
        "LimeSurvey completion webhook",
        target_url=sanitize_url(config.webhook.target_url),
        survey_ids=sorted(config.webhook.survey_ids),
        extra_config={
            "Richness": config.webhook.richness.value,
            "Debug mode": config.webhook.debug_mode,
        },
    )

    try:
        if args.command == "serve":
            return asyncio.run(run_serve(config, host=args.host, port=args.port))
        return asyncio.run(run_send(config, args.survey_id, args.response_id, args.event))
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
        return 0


if __name__ == "__main__":
    sys.exit(main())
