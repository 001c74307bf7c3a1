from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, Tuple

from loguru import logger

from volmon.errors import StateError
from volmon.pipeline.entities import OptionSnapshot

CURRENT = "current"
PREVIOUS = "previous"
GENERATIONS = (CURRENT, PREVIOUS)

Generation = Tuple[OptionSnapshot, ...]
Generations = Dict[str, Generation]


class GenerationStore:
    """Two-slot holder for the ``current`` and ``previous`` snapshot generations.

    Generations are stored as tuples and replaced whole under a reentrant
    lock, so readers only ever see a complete generation. Callers that need
    write + detect + rotate to happen as one step hold :meth:`locked` around
    the sequence.

    This class keeps the generations in process memory. Subclasses swap the
    backing storage by overriding :meth:`locked`, :meth:`_load` and
    :meth:`_save`.
    """

    def __init__(self, namespace: str = "default"):
        self.namespace = namespace
        self._lock = threading.RLock()
        self._generations: Generations = {}

    @contextmanager
    def locked(self) -> Iterator["GenerationStore"]:
        with self._lock:
            yield self

    def _load(self) -> Generations:
        return self._generations

    def _save(self, generations: Generations) -> None:
        self._generations = generations

    def write(self, snapshots: Iterable[OptionSnapshot]) -> None:
        generation = tuple(snapshots)
        with self.locked():
            generations = dict(self._load())
            generations[CURRENT] = generation
            self._save(generations)
        logger.debug("generation written", namespace=self.namespace, contracts=len(generation))

    def rotate(self) -> None:
        with self.locked():
            generations = dict(self._load())
            current = generations.pop(CURRENT, ())
            generations[PREVIOUS] = current
            self._save(generations)
        logger.debug("generation rotated", namespace=self.namespace, previous=len(current))

    def get(self, name: str) -> Generation:
        _check_name(name)
        with self.locked():
            generations = self._load()
        try:
            return generations[name]
        except KeyError:
            raise StateError(f"generation {name!r} has not been written in namespace {self.namespace!r}") from None

    def read(self, name: str) -> Generation:
        try:
            return self.get(name)
        except StateError:
            return ()

    def latest(self) -> Generation:
        """Most recently captured generation, whether or not it was rotated yet."""
        with self.locked():
            generations = self._load()
        if CURRENT in generations:
            return generations[CURRENT]
        return generations.get(PREVIOUS, ())

    def clear(self) -> None:
        with self.locked():
            self._save({})
        logger.info("generation store cleared", namespace=self.namespace)


def _check_name(name: str) -> None:
    if name not in GENERATIONS:
        raise ValueError(f"Unknown generation: {name!r}")
