from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Callable, ContextManager, Dict, Iterator, List

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from volmon.errors import StateError
from volmon.models.snapshot_generation import SnapshotGenerationRecord
from volmon.pipeline.entities import OptionSnapshot
from volmon.pipeline.generation_store import CURRENT, PREVIOUS, Generation, Generations, GenerationStore
from volmon.services.db import session_scope

SessionFactory = Callable[[], ContextManager[Session]]


def _encode(generation: Generation) -> List[Dict[str, Any]]:
    return [snap.as_dict() for snap in generation]


def _decode(payload: List[Dict[str, Any]]) -> Generation:
    return tuple(OptionSnapshot.from_dict(item) for item in payload)


class PersistentGenerationStore(GenerationStore):
    """Generation store backed by the ``snapshot_generations`` table.

    The API process and the worker process see the same generations through
    it. :meth:`locked` keeps one session open with the namespace row selected
    ``FOR UPDATE``, so on backends with row locks a manual cycle and a
    scheduled cycle running in different processes take turns. Changes are
    committed when the outermost ``locked()`` block exits.
    """

    def __init__(self, namespace: str = "default", session_factory: SessionFactory = session_scope):
        super().__init__(namespace)
        self._session_factory = session_factory
        self._row: SnapshotGenerationRecord | None = None
        self._row_ready = False

    @contextmanager
    def locked(self) -> Iterator["PersistentGenerationStore"]:
        with self._lock:
            if self._row is not None:
                yield self
                return
            self._ensure_row()
            with self._session_factory() as session:
                self._row = self._lock_row(session)
                try:
                    yield self
                finally:
                    self._row = None

    def _ensure_row(self) -> None:
        if self._row_ready:
            return
        try:
            with self._session_factory() as session:
                if session.get(SnapshotGenerationRecord, self.namespace) is None:
                    session.add(SnapshotGenerationRecord(namespace=self.namespace))
        except IntegrityError:
            logger.debug("snapshot generation row created concurrently", namespace=self.namespace)
        self._row_ready = True

    def _lock_row(self, session: Session) -> SnapshotGenerationRecord:
        return session.scalars(
            select(SnapshotGenerationRecord)
            .where(SnapshotGenerationRecord.namespace == self.namespace)
            .with_for_update()
        ).one()

    def _held_row(self) -> SnapshotGenerationRecord:
        if self._row is None:
            raise StateError("snapshot generations accessed outside locked()")
        return self._row

    def _load(self) -> Generations:
        row = self._held_row()
        generations: Generations = {}
        if row.current is not None:
            generations[CURRENT] = _decode(row.current)
        if row.previous is not None:
            generations[PREVIOUS] = _decode(row.previous)
        return generations

    def _save(self, generations: Generations) -> None:
        row = self._held_row()
        row.current = _encode(generations[CURRENT]) if CURRENT in generations else None
        row.previous = _encode(generations[PREVIOUS]) if PREVIOUS in generations else None
