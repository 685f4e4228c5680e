"""Message records read from the support CSV export."""

from __future__ import annotations

import csv
import logging
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..timeutils import as_utc

logger = logging.getLogger(__name__)

USER_ID_COLUMN = "User ID"
TIMESTAMP_COLUMN = "Timestamp (UTC)"
BODY_COLUMN = "Message Body"
REQUIRED_COLUMNS = (USER_ID_COLUMN, TIMESTAMP_COLUMN, BODY_COLUMN)


class RecordSourceError(RuntimeError):
    """Raised when the record source is missing or cannot be parsed."""


class MessageRecord(BaseModel):
    """One inbound customer message.

    Accepts either the CSV column headers or the field names, so rows from
    :class:`csv.DictReader` validate directly.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    customer_id: str = Field(alias=USER_ID_COLUMN, min_length=1)
    timestamp: datetime = Field(alias=TIMESTAMP_COLUMN)
    content: str = Field(alias=BODY_COLUMN, default="")

    @field_validator("customer_id", mode="before")
    @classmethod
    def _strip_customer_id(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value

    @field_validator("content", mode="before")
    @classmethod
    def _default_content(cls, value: object) -> object:
        return "" if value is None else value

    @field_validator("timestamp")
    @classmethod
    def _normalise_timestamp(cls, value: datetime) -> datetime:
        return as_utc(value)


def sort_records(records: Iterable[MessageRecord]) -> list[MessageRecord]:
    """Order records by customer id, then timestamp ascending."""

    return sorted(records, key=lambda record: (record.customer_id, record.timestamp))


def read_message_records(path: Path | str) -> list[MessageRecord]:
    """Load and validate every row of the CSV at ``path``.

    Blank lines are skipped. A missing file, missing header columns or an
    invalid row raise :class:`RecordSourceError`; the row number is included
    in the message.
    """

    csv_path = Path(path)
    if not csv_path.is_file():
        raise RecordSourceError(f"CSV not found at {csv_path}")

    records: list[MessageRecord] = []
    try:
        with csv_path.open("r", encoding="utf-8-sig", newline="") as fh:
            reader = csv.DictReader(fh)
            missing = [c for c in REQUIRED_COLUMNS if c not in (reader.fieldnames or [])]
            if missing:
                raise RecordSourceError(
                    f"CSV {csv_path} is missing columns: {', '.join(missing)}"
                )
            for row_number, row in enumerate(reader, start=2):
                fields = {k: v for k, v in row.items() if isinstance(k, str)}
                if not any((v or "").strip() for v in fields.values()):
                    continue
                try:
                    records.append(MessageRecord.model_validate(fields))
                except ValidationError as exc:
                    raise RecordSourceError(
                        f"Invalid row {row_number} in {csv_path}: {exc}"
                    ) from exc
    except (OSError, UnicodeDecodeError, csv.Error) as exc:
        raise RecordSourceError(f"Could not read {csv_path}: {exc}") from exc

    logger.debug("Read %d record(s) from %s", len(records), csv_path)
    return records


__all__ = [
    "MessageRecord",
    "RecordSourceError",
    "read_message_records",
    "sort_records",
]
