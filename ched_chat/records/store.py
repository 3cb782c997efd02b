"""In-memory institution store with a one-way readiness flag."""

import asyncio
import csv
import re
import threading
from pathlib import Path

from ched_chat.ops.logging import log_event
from ched_chat.ops.metrics import set_records_loaded
from ched_chat.records.ingest import read_records
from ched_chat.schemas import Institution

SEARCH_FIELDS = ("name", "city", "region")
_MIN_MATCH_LEN = 3
_TOKEN_PATTERN = re.compile(r"[a-z0-9]+")
_EDGE_PUNCTUATION = " \t\n?!.,;:'\""


def _field_value(record: Institution, field: str) -> str:
    return (getattr(record, field, None) or "").strip().lower()


def _phrase(value: str) -> str:
    """Space-padded word tokens, so ``" car "`` never hits inside ``" scarce "``."""
    tokens = _TOKEN_PATTERN.findall(value.lower())
    return f" {' '.join(tokens)} " if tokens else ""


def _field_index(record: Institution, fields: tuple[str, ...]) -> tuple[tuple[str, str], ...]:
    return tuple((value, _phrase(value)) for value in (_field_value(record, f) for f in fields))


def _score(index: tuple[tuple[str, str], ...], needle: str, phrase: str) -> int:
    score = 0
    for value, padded in index:
        if len(value) < _MIN_MATCH_LEN:
            continue
        if padded and padded in phrase:
            score += 1
        elif len(needle) >= _MIN_MATCH_LEN and needle in value:
            score += 1
    return score


def match_score(record: Institution, text: str, fields: tuple[str, ...] = SEARCH_FIELDS) -> int:
    """Count the fields of ``record`` that match ``text`` in either direction.

    A field matches when its value is mentioned in the text as whole words
    ("tell me about metro city") or when the whole text is a substring of the
    value ("baguio"). Both checks are case-insensitive. Values and texts
    shorter than three characters never match.
    """
    needle = text.lower().strip(_EDGE_PUNCTUATION)
    return _score(_field_index(record, fields), needle, _phrase(text))


class RecordStore:
    """Ordered, read-mostly collection of institutions.

    The sequence is built in full by ``load`` and published together with the
    readiness flag; readers never see a partial list.
    """

    def __init__(self) -> None:
        self._records: tuple[Institution, ...] = ()
        self._index: tuple[tuple[tuple[str, str], ...], ...] = ()
        self._ready = threading.Event()
        self._publish_lock = threading.Lock()

    def is_ready(self) -> bool:
        return self._ready.is_set()

    def records(self) -> tuple[Institution, ...]:
        if not self.is_ready():
            return ()
        return self._records

    def count(self) -> int:
        return len(self.records())

    async def load(self, path: str | Path) -> bool:
        if self.is_ready():
            return True
        path = Path(path)
        try:
            records = await asyncio.to_thread(read_records, path)
        except (OSError, UnicodeDecodeError, csv.Error) as exc:
            log_event(
                {
                    "type": "records_load_failed",
                    "path": str(path),
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                }
            )
            return False

        self._publish(records)
        set_records_loaded(len(self._records))
        log_event({"type": "records_loaded", "path": str(path), "count": len(self._records)})
        return True

    def _publish(self, records: list[Institution]) -> None:
        with self._publish_lock:
            if self._ready.is_set():
                return
            self._records = tuple(records)
            self._index = tuple(_field_index(record, SEARCH_FIELDS) for record in self._records)
            self._ready.set()

    def search(self, substring: str, fields: tuple[str, ...] = SEARCH_FIELDS) -> list[Institution]:
        needle = substring.strip().lower()
        records = self.records()
        if not needle:
            return list(records)
        return [
            record
            for record in records
            if any(needle in _field_value(record, field) for field in fields)
        ]

    def match(self, text: str, fields: tuple[str, ...] = SEARCH_FIELDS) -> list[Institution]:
        """Records matching ``text`` in either direction, in store order."""
        records = self.records()
        if fields != SEARCH_FIELDS:
            return [record for record in records if match_score(record, text, fields) > 0]
        needle = text.lower().strip(_EDGE_PUNCTUATION)
        phrase = _phrase(text)
        return [
            record
            for record, index in zip(records, self._index)
            if _score(index, needle, phrase) > 0
        ]
