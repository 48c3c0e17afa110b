"""
iSummarize – daily Slack channel digests

This package houses the web application that receives Slack events and the
pipeline that turns a day of channel activity into a summarized report for
a single recipient.  The pipeline itself lives in :pymod:`isummarize.verbs`;
this file only exposes the Flask application factory.
"""

# ---------------------------------------------------------------------------
# Imports
# ---------------------------------------------------------------------------
from functools import partial
from typing import Any, Callable, Optional
import threading

from flask import Flask, jsonify, request
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from slack_sdk.signature import SignatureVerifier

from isummarize import cloud_logging as logging
from isummarize.errors import TransportError

logging.log_text("Flask application factory module imported", severity="DEBUG")

FAILURE_TEXT = (
    "An error occurred while fetching messages or generating the summary. "
    "Please try again later."
)
BUSY_TEXT = "A summary is already being prepared. Please try again in a few minutes."

# ---------------------------------------------------------------------------
# Rate limiter – instantiated at module level to avoid circular imports
# ---------------------------------------------------------------------------

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["200 per day", "50 per hour"],
    storage_uri="memory://",
)


def _spawn_thread(fn: Callable[..., Any], *args: Any) -> None:
    threading.Thread(target=fn, args=args, daemon=True).start()


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(
    logger: Optional[Any] = None,
    *,
    services: Any,
    mailbox: Optional[Any] = None,
    loop: Optional[Any] = None,
    spawn: Callable[..., None] = _spawn_thread,
) -> Flask:
    """Create and configure the Flask application instance.

    Parameters
    ----------
    logger:
        Optional Google Cloud logger; when given, the package's ``log_text``
        facade is routed through it.
    services:
        :class:`isummarize.verbs.Services` bundle used by every route.
    mailbox:
        :class:`isummarize.scheduler.RecipientMailbox` that ``app_home_opened``
        events post into.  A fresh one is created when omitted.
    loop:
        :class:`isummarize.scheduler.SchedulerLoop` whose busy guard manual
        runs share.  An unstarted loop is built when omitted.
    spawn:
        ``spawn(fn, *args)`` runs slow work off the request thread (Slack
        expects an answer within three seconds).
    """
    # Local imports keep ``import isummarize`` light for the CLI.
    from isummarize.outputs.slack import publish_home
    from isummarize.scheduler import RecipientMailbox, SchedulerLoop, TickOutcome
    from isummarize.verbs import generate_report, run_cycle

    if logger is not None and hasattr(logger, "log_text"):
        logging.attach_gcp_logger(logger)

    settings = services.settings
    mailbox = mailbox if mailbox is not None else RecipientMailbox(settings.initial_recipient)
    if loop is None:
        loop = SchedulerLoop(
            partial(run_cycle, services), mailbox, interval_seconds=settings.interval_seconds
        )
    verifier = (
        SignatureVerifier(settings.slack_signing_secret) if settings.slack_signing_secret else None
    )

    # ---------------------------------------------------------------------
    # Initialise base Flask app
    # ---------------------------------------------------------------------
    app = Flask(__name__)
    app.extensions["isummarize"] = {"services": services, "mailbox": mailbox, "loop": loop}

    limiter.init_app(app)

    def _manual_summary(user_id: str, channel_id: Optional[str]) -> None:
        outcome = loop.run_for(user_id)
        if outcome is TickOutcome.DELIVERED or not channel_id:
            return
        text = BUSY_TEXT if outcome is TickOutcome.SKIPPED else FAILURE_TEXT
        try:
            services.transport.post_message(channel_id, text)
        except TransportError as exc:
            logging.log_text(f"Could not reply in {channel_id}: {exc}", severity="ERROR")

    # ---------------------------------------------------------------------
    # Health check route – required by Cloud Run / load-balancers
    # ---------------------------------------------------------------------
    @app.route("/", methods=["GET"])
    @limiter.exempt
    def health_check():  # type: ignore[return-value]
        """Light-weight liveness probe endpoint."""
        return jsonify({"status": "ok", "scheduler": loop.state.value}), 200

    # ---------------------------------------------------------------------
    # Slack Events API
    # ---------------------------------------------------------------------
    @app.route("/slack/events", methods=["POST"])
    @limiter.exempt
    def slack_events():  # type: ignore[return-value]
        body = request.get_data(as_text=True)
        if verifier is not None and not verifier.is_valid(
            body=body,
            timestamp=request.headers.get("X-Slack-Request-Timestamp", ""),
            signature=request.headers.get("X-Slack-Signature", ""),
        ):
            logging.log_text("Rejected Slack request with a bad signature", severity="WARNING")
            return jsonify({"status": "error", "message": "invalid signature"}), 401

        payload = request.get_json(silent=True) or {}
        if payload.get("type") == "url_verification":
            return jsonify({"challenge": payload.get("challenge", "")}), 200

        # Slack re-sends events it thinks timed out; the first delivery already ran.
        if request.headers.get("X-Slack-Retry-Num"):
            return jsonify({"ok": True}), 200

        event = payload.get("event") or {}
        event_type = event.get("type")
        user_id = event.get("user")

        if event_type == "app_home_opened" and user_id:
            logging.log_text(f"User who opened the app home: {user_id}", severity="INFO")
            mailbox.post(user_id)
            spawn(publish_home, services.transport, user_id, settings.interval_seconds)
        elif event_type == "app_mention" and user_id and "summarize" in (event.get("text") or ""):
            logging.log_text(f"Manual summary requested by {user_id}", severity="INFO")
            spawn(_manual_summary, user_id, event.get("channel"))

        return jsonify({"ok": True}), 200

    # ---------------------------------------------------------------------
    # On-demand summary (used by ``isummarize --api-url … digest``)
    # ---------------------------------------------------------------------
    @app.route("/summarize", methods=["POST"])
    def summarize():  # type: ignore[return-value]
        data = request.get_json(silent=True) or {}
        if not data.get("deliver", True):
            with loop.exclusive() as acquired:
                if not acquired:
                    return jsonify({"status": TickOutcome.SKIPPED.value}), 409
                report = generate_report(services)
            if report is None:
                return jsonify({"status": "error", "message": FAILURE_TEXT}), 502
            return jsonify({"status": "ok", "report": report}), 200

        recipient = data.get("user_id") or mailbox.current()
        if not recipient:
            return jsonify({"status": "error", "message": "No recipient known yet."}), 400

        outcome = loop.run_for(recipient)
        status_code = {
            TickOutcome.DELIVERED: 200,
            TickOutcome.SKIPPED: 409,
        }.get(outcome, 502)
        return jsonify({"status": outcome.value, "recipient": recipient}), status_code

    # ---------------------------------------------------------------------
    # Rate-limit error handler – converts 429 into JSON response & structured log
    # ---------------------------------------------------------------------
    @app.errorhandler(429)  # type: ignore[arg-type]
    def _ratelimit_handler(error):  # noqa: D401 – internal handler
        client_ip = request.remote_addr or "unknown"
        user_agent = request.headers.get("User-Agent", "Unknown")
        logging.log_text(
            f"Rate limit exceeded: {error} – IP: {client_ip}, User-Agent: {user_agent}",
            severity="WARNING",
        )
        return (
            jsonify({
                "status": "error",
                "message": "Rate limit exceeded. Please try again later.",
            }),
            429,
        )

    logging.log_text("Flask application initialised", severity="INFO")
    return app
