"""Result store wiring. The store is built from env and cached via Streamlit."""
import logging
import os
from pathlib import Path

import streamlit as st
from dotenv import load_dotenv
from supabase import create_client, Client

from mockexam.question_bank import QuestionBank
from mockexam.remote_store import JSONBIN_API_URL, JsonBinResultStore, SupabaseResultStore
from mockexam.settings import ExamSettings
from mockexam.store import InMemoryResultStore, JsonFileResultStore, ResultStore

load_dotenv()

logger = logging.getLogger(__name__)

BACKENDS = ("jsonbin", "supabase", "file", "memory")
DEFAULT_RESULTS_FILE = Path(__file__).resolve().parent / "results.json"

# Run once in the Supabase SQL editor when STORE_BACKEND=supabase
SCHEMA_SQL = """
-- One row per exam store document ({"results": [...], "usedCodes": [...]})
CREATE TABLE IF NOT EXISTS exam_store (
    id TEXT PRIMARY KEY,
    data JSONB NOT NULL DEFAULT '{"results": [], "usedCodes": []}'::jsonb,
    updated_at TIMESTAMPTZ DEFAULT NOW()
);
"""


def backend_name() -> str:
    name = (os.environ.get("STORE_BACKEND") or "").strip().lower()
    if not name:
        return "jsonbin" if os.environ.get("JSONBIN_API_KEY") else "file"
    if name not in BACKENDS:
        raise ValueError(f"STORE_BACKEND must be one of {', '.join(BACKENDS)} (got {name!r})")
    return name


def _env_supabase() -> Client:
    url = os.environ.get("SUPABASE_URL")
    key = os.environ.get("SUPABASE_KEY")
    if not url or not key:
        raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set")
    return create_client(url, key)


def _env_jsonbin() -> JsonBinResultStore:
    key = os.environ.get("JSONBIN_API_KEY")
    if not key:
        raise ValueError("JSONBIN_API_KEY must be set")
    return JsonBinResultStore(
        key,
        bin_id=os.environ.get("JSONBIN_BIN_ID") or None,
        api_url=os.environ.get("JSONBIN_API_URL") or JSONBIN_API_URL,
    )


def _env_store() -> ResultStore:
    name = backend_name()
    if name == "jsonbin":
        store = _env_jsonbin()
    elif name == "supabase":
        store = SupabaseResultStore(
            _env_supabase(),
            table=os.environ.get("SUPABASE_STORE_TABLE") or "exam_store",
            store_id=os.environ.get("SUPABASE_STORE_ID") or "default",
        )
    elif name == "file":
        store = JsonFileResultStore(os.environ.get("RESULTS_FILE") or DEFAULT_RESULTS_FILE)
    else:
        store = InMemoryResultStore()
    logger.info("Using %s result store", name)
    return store


@st.cache_resource
def get_store() -> ResultStore:
    return _env_store()


def get_store_uncached() -> ResultStore:
    """For CLI/scripts (no Streamlit context)."""
    return _env_store()


@st.cache_resource
def get_settings() -> ExamSettings:
    return ExamSettings.from_env()


@st.cache_resource
def get_bank() -> QuestionBank:
    return QuestionBank.from_jsonl(get_settings().question_bank_path)
