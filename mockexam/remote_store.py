"""
Shared cloud backends for the result store: JSONBin.io (HTTP) and a Supabase table.
Both clients are blocking, so calls run in a worker thread to keep the event loop free.
"""
import asyncio
import logging
from typing import Iterable, Optional

import requests
from supabase import Client, PostgrestAPIError

from mockexam.errors import NetworkFailure, PersistenceFailure
from mockexam.models import Result, StoreSnapshot
from mockexam.store import ResultStore, build_document

logger = logging.getLogger(__name__)

JSONBIN_API_URL = "https://api.jsonbin.io/v3"
REQUEST_TIMEOUT = 15


def _parse_snapshot(record: dict | None, source: str) -> StoreSnapshot:
    if record is not None and not isinstance(record, dict):
        raise PersistenceFailure(f"Malformed store document from {source}: expected an object")
    try:
        return StoreSnapshot.from_dict(record)
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise PersistenceFailure(f"Malformed store document from {source}: {e}") from e


class JsonBinResultStore(ResultStore):
    """
    One JSONBin bin holds the whole document. Every device must point at the same bin id
    for access codes to be shared; a store without a bin id refuses to read or write.
    """

    def __init__(
        self,
        api_key: str,
        bin_id: Optional[str] = None,
        api_url: str = JSONBIN_API_URL,
        timeout: float = REQUEST_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        if not api_key:
            raise ValueError("JSONBin API key is required")
        self.bin_id = bin_id
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"X-Master-Key": api_key, "Content-Type": "application/json"})

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            return self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise NetworkFailure(f"JSONBin {method} failed: {e}") from e

    def _require_bin(self) -> str:
        if not self.bin_id:
            raise PersistenceFailure("No JSONBin bin id configured (set JSONBIN_BIN_ID)")
        return self.bin_id

    def _load(self) -> StoreSnapshot:
        bin_id = self._require_bin()
        response = self._request("GET", f"{self.api_url}/b/{bin_id}/latest")
        if response.status_code == 404:
            # Fresh bin with no record yet
            logger.info("Bin %s... has no record yet, returning empty document", bin_id[:8])
            return StoreSnapshot()
        if not response.ok:
            raise PersistenceFailure(f"Failed to load from JSONBin: {response.status_code}", response.status_code)
        try:
            payload = response.json()
        except ValueError as e:
            raise PersistenceFailure(f"JSONBin returned invalid JSON: {e}") from e
        if not isinstance(payload, dict):
            raise PersistenceFailure("JSONBin returned an unexpected payload")
        return _parse_snapshot(payload.get("record"), "JSONBin")

    def _save(self, document: dict) -> None:
        bin_id = self._require_bin()
        response = self._request("PUT", f"{self.api_url}/b/{bin_id}", json=document)
        if response.status_code == 404:
            raise PersistenceFailure(f"Bin {bin_id[:8]}... does not exist; create it first or check the bin id", 404)
        if not response.ok:
            raise PersistenceFailure(
                f"Failed to save to JSONBin: {response.status_code} - {response.text[:200]}", response.status_code
            )
        logger.info("Saved to bin %s...", bin_id[:8])

    def create_bin(self) -> str:
        """Create an empty bin and adopt its id. Run once at setup, then share the id with every device."""
        response = self._request("POST", f"{self.api_url}/b", json={"results": [], "usedCodes": []})
        if not response.ok:
            raise PersistenceFailure(f"Failed to create bin: {response.status_code}", response.status_code)
        data = response.json()
        new_id = (data.get("metadata") or {}).get("id") or data.get("id")
        if not new_id:
            raise PersistenceFailure("JSONBin did not return a bin id")
        self.bin_id = new_id
        logger.info("Created bin %s", new_id)
        return new_id

    async def load_all(self) -> StoreSnapshot:
        return await asyncio.to_thread(self._load)

    async def save_all(self, results: Iterable[Result], used_codes: Iterable[str]) -> None:
        await asyncio.to_thread(self._save, build_document(results, used_codes))

    async def close(self) -> None:
        self.session.close()


class SupabaseResultStore(ResultStore):
    """The document lives in one row (`id`, `data` jsonb) of a Supabase table."""

    def __init__(self, client: Client, table: str = "exam_store", store_id: str = "default"):
        self.client = client
        self.table = table
        self.store_id = store_id

    def _load(self) -> StoreSnapshot:
        try:
            r = self.client.table(self.table).select("data").eq("id", self.store_id).limit(1).execute()
        except PostgrestAPIError as e:
            raise PersistenceFailure(f"Supabase read failed: {e}") from e
        except Exception as e:
            raise NetworkFailure(f"Supabase unreachable: {e}") from e
        rows = r.data or []
        if not rows:
            return StoreSnapshot()
        return _parse_snapshot(rows[0].get("data"), "Supabase")

    def _save(self, document: dict) -> None:
        row = {"id": self.store_id, "data": document}
        try:
            self.client.table(self.table).upsert(row, on_conflict="id").execute()
        except PostgrestAPIError as e:
            raise PersistenceFailure(f"Supabase write failed: {e}") from e
        except Exception as e:
            raise NetworkFailure(f"Supabase unreachable: {e}") from e
        logger.info("Saved store document %s to %s", self.store_id, self.table)

    async def load_all(self) -> StoreSnapshot:
        return await asyncio.to_thread(self._load)

    async def save_all(self, results: Iterable[Result], used_codes: Iterable[str]) -> None:
        await asyncio.to_thread(self._save, build_document(results, used_codes))
