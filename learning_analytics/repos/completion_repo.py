from __future__ import annotations

from typing import Protocol

from learning_analytics.core.errors import ConcurrencyConflict
from learning_analytics.models.completion import CompletionRecord


class CompletionRepo(Protocol):
    """Storage for completion records with compare-and-set writes.

    insert() fails with ConcurrencyConflict if the key already exists;
    replace() fails with ConcurrencyConflict if the stored version is not
    ``expected_version``.  The ledger retries on either.
    """

    async def get(self, student_id: str, lesson_id: str) -> CompletionRecord | None: ...
    async def insert(self, record: CompletionRecord) -> None: ...
    async def replace(self, record: CompletionRecord, expected_version: int) -> None: ...
    async def list_for_student(self, student_id: str) -> list[CompletionRecord]: ...


class InMemoryCompletionRepo:
    """Dict-backed repo for dev and tests.

    No method awaits between its check and its write, so each one runs as
    a single step on the event loop and compare-and-set holds.
    """

    def __init__(self) -> None:
        self._store: dict[tuple[str, str], CompletionRecord] = {}

    async def get(self, student_id: str, lesson_id: str) -> CompletionRecord | None:
        return self._store.get((student_id, lesson_id))

    async def insert(self, record: CompletionRecord) -> None:
        if record.key in self._store:
            raise ConcurrencyConflict(f"record {record.key} already exists")
        self._store[record.key] = record

    async def replace(self, record: CompletionRecord, expected_version: int) -> None:
        current = self._store.get(record.key)
        if current is None or current.version != expected_version:
            raise ConcurrencyConflict(
                f"record {record.key} changed (expected v{expected_version})"
            )
        self._store[record.key] = record

    async def list_for_student(self, student_id: str) -> list[CompletionRecord]:
        return sorted(
            (r for r in self._store.values() if r.student_id == student_id),
            key=lambda r: r.lesson_id,
        )
