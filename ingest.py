"""Command line entry point for importing the support CSV export.

Reads every message from the CSV, groups messages into conversations with the
inactivity window and scores them for urgency. Each record is committed as
soon as it is stored, so a failure part-way leaves the earlier records in
place; the process then exits with status 1.
"""

from __future__ import annotations

import argparse
import logging
import sys

from support_inbox.config import get_settings
from support_inbox.conversations.repository import SqlAlchemyConversationRepository
from support_inbox.ingestion.driver import IngestionDriver
from support_inbox.ingestion.records import RecordSourceError, read_message_records
from support_inbox.ingestion.windowing import ConversationWindower
from support_inbox.models.session import get_sessionmaker, init_db


def main(argv: list[str] | None = None) -> int:
    """Parse CLI arguments, run the ingestion and return the exit status."""

    settings = get_settings()
    parser = argparse.ArgumentParser(description="Ingest customer messages from CSV")
    parser.add_argument(
        "--csv",
        default=settings.csv_path,
        help="CSV export with 'User ID', 'Timestamp (UTC)' and 'Message Body' columns",
    )
    parser.add_argument(
        "--database-url",
        default=settings.database_url,
        help="SQLAlchemy database URL (defaults to DATABASE_URL)",
    )
    parser.add_argument(
        "--window-hours",
        type=float,
        default=settings.conversation_window_hours,
        help="Inactivity gap that starts a new conversation",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log every ingested message",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO, format="%(message)s"
    )
    log = logging.getLogger("ingest")

    log.info("Reading CSV %s", args.csv)
    try:
        records = read_message_records(args.csv)
    except RecordSourceError as exc:
        log.error("%s", exc)
        return 1
    log.info("Found %d messages.", len(records))

    try:
        init_db(args.database_url)
    except Exception:
        log.exception("Could not prepare database %s", args.database_url)
        return 1

    session = get_sessionmaker(args.database_url)()
    driver = IngestionDriver(
        SqlAlchemyConversationRepository(session),
        windower=ConversationWindower(args.window_hours),
    )
    try:
        report = driver.run(records, after_each=lambda _outcome: session.commit())
    except Exception:
        session.rollback()
        log.exception("Ingestion failed")
        return 1
    finally:
        session.close()

    summary = report.as_dict()
    log.info(
        "Ingestion complete: %(records)d messages, %(customers)d customers, "
        "%(conversations_created)d conversations created, "
        "%(conversations_continued)d messages appended to existing conversations.",
        summary,
    )
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI execution
    sys.exit(main())
