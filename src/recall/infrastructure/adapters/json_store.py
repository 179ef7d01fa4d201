"""
JSON file adapters for the CardStore and ReviewEventLog ports.

Each store is one JSON document. Writes go to a temporary file in the same
directory and are moved into place, so a failed write leaves the previous
document intact.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from recall.domain.errors import StorageError
from recall.domain.models import Card, ReviewEvent
from recall.domain.ports import CardStore, ReviewEventLog
from recall.infrastructure.serialization import (
    card_from_record,
    card_to_record,
    event_from_record,
    event_to_record,
)

logger = logging.getLogger(__name__)


class _JsonDocument:
    """A list of records kept in a single JSON file under a top-level key."""

    def __init__(self, path: Path, key: str):
        self.path = Path(path)
        self.key = key

    def read(self) -> list[dict[str, Any]]:
        if not self.path.exists():
            return []
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except OSError as e:
            raise StorageError.from_os_error(f"read {self.path}", e) from e
        except json.JSONDecodeError as e:
            raise StorageError(f"Corrupt data in {self.path}: {e}") from e

        records = payload.get(self.key, []) if isinstance(payload, dict) else payload
        if not isinstance(records, list):
            raise StorageError(f"Unexpected layout in {self.path}: '{self.key}' is not a list")
        return [r for r in records if isinstance(r, dict)]

    def write(self, records: list[dict[str, Any]]) -> None:
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump({"version": 1, self.key: records}, handle, indent=2)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self.path)
            tmp_name = None
        except OSError as e:
            raise StorageError.from_os_error(f"write {self.path}", e) from e
        finally:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)


class JsonCardStore(CardStore):
    def __init__(self, path: Path):
        self._doc = _JsonDocument(path, "cards")

    @property
    def path(self) -> Path:
        return self._doc.path

    async def find(self, card_id: str) -> Card | None:
        for record in self._doc.read():
            if record.get("id") == card_id:
                return card_from_record(record)
        return None

    async def save(self, card: Card) -> None:
        records = self._doc.read()
        replacement = card_to_record(card)
        for i, record in enumerate(records):
            if record.get("id") == card.id:
                records[i] = replacement
                break
        else:
            records.append(replacement)
        self._doc.write(records)
        logger.debug(f"Saved card {card.id} to {self._doc.path}")

    async def list_all(self) -> list[Card]:
        return [card_from_record(r) for r in self._doc.read() if "id" in r]

    async def delete(self, card_id: str) -> bool:
        records = self._doc.read()
        remaining = [r for r in records if r.get("id") != card_id]
        if len(remaining) == len(records):
            return False
        self._doc.write(remaining)
        logger.debug(f"Deleted card {card_id} from {self._doc.path}")
        return True


class JsonReviewEventLog(ReviewEventLog):
    def __init__(self, path: Path):
        self._doc = _JsonDocument(path, "reviews")

    @property
    def path(self) -> Path:
        return self._doc.path

    async def append(self, event: ReviewEvent) -> None:
        records = self._doc.read()
        if any(r.get("id") == event.id for r in records):
            logger.debug(f"Review event {event.id} already recorded")
            return
        records.append(event_to_record(event))
        self._doc.write(records)

    async def list_events(self, card_id: str | None = None) -> list[ReviewEvent]:
        events = []
        for record in self._doc.read():
            if card_id is not None and record.get("card_id") != card_id:
                continue
            try:
                events.append(event_from_record(record))
            except (KeyError, ValueError) as e:
                logger.warning(f"Skipping malformed review record in {self._doc.path}: {e}")
        return events
