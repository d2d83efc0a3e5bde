"""
Result store boundary.

Every backend exposes the same whole-document contract: load_all() reads
{"results", "usedCodes"} and save_all() overwrites it. append() is a
read-modify-write on top of that, so two devices finalizing at the same
moment can overwrite each other (lost update). Nothing here reserves an
access code; a code only becomes "used" once its Result is written.
"""
import asyncio
import copy
import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, List

from mockexam.errors import PersistenceFailure
from mockexam.models import Result, StoreSnapshot

logger = logging.getLogger(__name__)


class ResultStore(ABC):
    """Asynchronous store of results and used access codes. No transactions."""

    @abstractmethod
    async def load_all(self) -> StoreSnapshot:
        """Read the whole document. Raises NetworkFailure / PersistenceFailure."""

    @abstractmethod
    async def save_all(self, results: Iterable[Result], used_codes: Iterable[str]) -> None:
        """Overwrite the whole document. Raises NetworkFailure / PersistenceFailure."""

    async def is_code_used(self, code: str) -> bool:
        """True when the code is in usedCodes or on any stored Result. Errors propagate to the caller."""
        snapshot = await self.load_all()
        return snapshot.code_is_used(code)

    async def append(self, result: Result) -> bool:
        """
        Add one Result and mark its access code as used.

        Returns:
            True if written, False if a Result with the same id was already stored
            (a retried submission whose first write landed).
        """
        snapshot = await self.load_all()
        if any(r.id == result.id for r in snapshot.results):
            logger.warning("Result %s already stored; skipping duplicate append", result.id)
            return False
        used_codes = list(dict.fromkeys([*snapshot.used_codes, result.access_code]))
        await self.save_all([*snapshot.results, result], used_codes)
        logger.info("Result %s saved (%d results total)", result.id, len(snapshot.results) + 1)
        return True

    async def list_all(self) -> List[Result]:
        """All stored results, newest first."""
        snapshot = await self.load_all()
        return sorted(snapshot.results, key=lambda r: r.timestamp, reverse=True)

    async def close(self) -> None:
        return None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.close()


def build_document(results: Iterable[Result], used_codes: Iterable[str]) -> dict:
    return StoreSnapshot(results=tuple(results), used_codes=tuple(used_codes)).to_dict()


class InMemoryResultStore(ResultStore):
    """Process-local store for tests and offline demos. `latency` simulates a network round trip."""

    def __init__(self, document: dict | None = None, latency: float = 0.0):
        self._document = copy.deepcopy(document) if document else {"results": [], "usedCodes": []}
        self.latency = latency
        self.loads = 0
        self.saves = 0

    async def load_all(self) -> StoreSnapshot:
        await asyncio.sleep(self.latency)
        self.loads += 1
        return StoreSnapshot.from_dict(copy.deepcopy(self._document))

    async def save_all(self, results: Iterable[Result], used_codes: Iterable[str]) -> None:
        await asyncio.sleep(self.latency)
        self.saves += 1
        self._document = build_document(results, used_codes)

    @property
    def document(self) -> dict:
        return copy.deepcopy(self._document)


class JsonFileResultStore(ResultStore):
    """Single JSON file on local disk. Writes go through a temp file and an atomic replace."""

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def _read(self) -> StoreSnapshot:
        if not self.path.exists():
            return StoreSnapshot()
        try:
            with self.path.open("r", encoding="utf-8") as f:
                return StoreSnapshot.from_dict(json.load(f))
        except (OSError, ValueError, KeyError, AttributeError, TypeError) as e:
            raise PersistenceFailure(f"Could not read results file {self.path}: {e}") from e

    def _write(self, document: dict) -> None:
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tmp.open("w", encoding="utf-8") as f:
                json.dump(document, f, ensure_ascii=False, indent=2)
            os.replace(tmp, self.path)
        except OSError as e:
            raise PersistenceFailure(f"Could not write results file {self.path}: {e}") from e

    async def load_all(self) -> StoreSnapshot:
        return await asyncio.to_thread(self._read)

    async def save_all(self, results: Iterable[Result], used_codes: Iterable[str]) -> None:
        await asyncio.to_thread(self._write, build_document(results, used_codes))
