"""Store selection from environment."""
import pytest

import db
from mockexam.remote_store import JsonBinResultStore
from mockexam.store import InMemoryResultStore, JsonFileResultStore


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("STORE_BACKEND", "JSONBIN_API_KEY", "JSONBIN_BIN_ID", "JSONBIN_API_URL", "RESULTS_FILE",
                 "SUPABASE_URL", "SUPABASE_KEY"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults_to_file_without_jsonbin_key(clean_env):
    assert db.backend_name() == "file"
    store = db.get_store_uncached()
    assert isinstance(store, JsonFileResultStore)
    assert store.path == db.DEFAULT_RESULTS_FILE


def test_defaults_to_jsonbin_with_key(clean_env):
    clean_env.setenv("JSONBIN_API_KEY", "k")
    clean_env.setenv("JSONBIN_BIN_ID", "bin42")
    assert db.backend_name() == "jsonbin"
    store = db.get_store_uncached()
    assert isinstance(store, JsonBinResultStore)
    assert store.bin_id == "bin42"
    assert store.session.headers["X-Master-Key"] == "k"


def test_explicit_backends(clean_env, tmp_path):
    clean_env.setenv("STORE_BACKEND", "memory")
    assert isinstance(db.get_store_uncached(), InMemoryResultStore)
    clean_env.setenv("STORE_BACKEND", "FILE")
    clean_env.setenv("RESULTS_FILE", str(tmp_path / "r.json"))
    assert db.get_store_uncached().path == tmp_path / "r.json"


def test_unknown_backend(clean_env):
    clean_env.setenv("STORE_BACKEND", "redis")
    with pytest.raises(ValueError, match="STORE_BACKEND"):
        db.backend_name()


def test_supabase_needs_credentials(clean_env):
    clean_env.setenv("STORE_BACKEND", "supabase")
    with pytest.raises(ValueError, match="SUPABASE_URL"):
        db.get_store_uncached()


def test_jsonbin_needs_key(clean_env):
    clean_env.setenv("STORE_BACKEND", "jsonbin")
    with pytest.raises(ValueError, match="JSONBIN_API_KEY"):
        db.get_store_uncached()
