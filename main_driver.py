import logging as pylogging
import os
import sys
from functools import partial

from dotenv import load_dotenv

load_dotenv()

from isummarize import cloud_logging, create_app  # noqa: E402 – after .env is loaded
from isummarize.scheduler import RecipientMailbox, SchedulerLoop  # noqa: E402
from isummarize.settings import load_settings  # noqa: E402
from isummarize.verbs import build_services, run_cycle  # noqa: E402

LOCAL_CREDS = os.getenv("LOCAL_CREDS")

if LOCAL_CREDS is not None:
    os.environ["GOOGLE_APPLICATION_CREDENTIALS"] = LOCAL_CREDS

# ---------------------------------------------------------------------------
# Logging – Google Cloud Logging when a project is configured, stderr otherwise
# ---------------------------------------------------------------------------

logger = None
if os.getenv("GOOGLE_CLOUD_PROJECT"):
    logger = cloud_logging.init_cloud_logging()
else:
    pylogging.basicConfig(
        level=pylogging.INFO,
        format="%(asctime)s %(levelname)s %(name)s – %(message)s",
    )

cloud_logging.log_text("Application starting up", severity="INFO")

FLASK_ENV = os.getenv("FLASK_ENV", "development").lower()
cloud_logging.log_text(f"Server starting in {FLASK_ENV} mode", severity="INFO")

PORT = int(os.getenv("PORT", 8080))

# ---------------------------------------------------------------------------
# Pipeline wiring
# ---------------------------------------------------------------------------

settings = load_settings()
services = build_services(settings)
mailbox = RecipientMailbox(settings.initial_recipient)
loop = SchedulerLoop(
    partial(run_cycle, services), mailbox, interval_seconds=settings.interval_seconds
)

# Pass the Google Cloud logger to the Flask factory
app = create_app(logger, services=services, mailbox=mailbox, loop=loop)

# Under Gunicorn the worker imports this module as "main_driver"; when run as a
# script the launcher process must not start a second scheduler.
if __name__ != "__main__":
    loop.start()


def run_server() -> None:
    """
    Run the appropriate web server based on the environment configuration.

    Production runs Gunicorn with a single worker: the digest scheduler lives
    inside the worker process and more workers would mean more schedulers.
    Development runs the Flask server without the reloader for the same
    reason.

    Environment Variables
    --------------------
    FLASK_ENV : str
        "production" selects Gunicorn; anything else the Flask dev server.
    PORT : int
        Listening port, defaults to 8080.
    """

    if FLASK_ENV == "production":
        from gunicorn.app.wsgiapp import run

        sys.argv = [
            "gunicorn",
            "main_driver:app",  # The WSGI entrypoint (module:variable)
            "--bind",
            f"0.0.0.0:{PORT}",
            "--workers",
            "1",
            "--timeout",
            "120",
        ]
        run()  # This will block until Gunicorn exits
    else:
        loop.start()
        app.run(host="0.0.0.0", port=PORT, debug=True, use_reloader=False)


if __name__ == "__main__":
    run_server()
