"""Application entry point for the daily poll server."""

from __future__ import annotations

from poll_app.core.clock import CivilClock
from poll_app.core.poll_manager import PollManager
from poll_app.server.api_server import create_api_app, run_api_server
from poll_app.server.auth import StaticTokenVerifier
from poll_app.storage import InMemoryTableStore, SqlTableStore, TableStore
from poll_app.utils.logging_config import configure_logging
from poll_app.utils.settings import AppSettings


def _build_store(settings: AppSettings) -> TableStore:
    if not settings.database_url:
        return InMemoryTableStore()
    store = SqlTableStore.from_url(settings.database_url, timeout_seconds=settings.store_timeout_seconds)
    store.create_schema()
    return store


def main() -> None:
    """Initialize logging, build the poll services, and serve the API."""
    settings = AppSettings.from_env()
    logger = configure_logging(settings.log_level)
    logger.info("Starting poll server…")

    store = _build_store(settings)
    clock = CivilClock(settings.timezone)
    poll_manager = PollManager(store=store, clock=clock)
    if settings.seed_file is not None:
        poll_manager.import_questions(settings.seed_file)
    elif settings.seed_samples:
        poll_manager.seed_sample_questions()
    logger.info("Civil day is %s (%s)", clock.today().isoformat(), clock.timezone_name)

    app = create_api_app(
        poll_manager,
        admin_password=settings.admin_password,
        verifier=StaticTokenVerifier(settings.session_tokens),
        cookie_secret=settings.cookie_secret or None,
    )
    run_api_server(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
