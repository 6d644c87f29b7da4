import json
from unittest.mock import MagicMock

import pytest
import requests

from artgallery.config import Settings
from artgallery.storage.client import (
    BackendKVStore,
    HttpKVStore,
    KVStoreError,
    LocalOverlay,
    StaticKVStore,
    create_kv_store,
    normalize_snapshot,
)


# --- Contrat commun (fichier, HTTP, statique) ---

@pytest.mark.parametrize("value", [
    [{"id": "1", "title": "Vase bleu", "category": "verres"}],
    {"nested": {"list": [1, 2.5, None, True]}},
    "data:image/png;base64,iVBORw0KGgo=",
    0,
])
def test_set_then_get_round_trip(store, value):
    store.set("some-key", value)
    assert store.get("some-key") == value
    assert store.get("/some-key") == value


def test_get_absent_key_returns_none(store):
    assert store.get("never-written") is None


def test_delete_then_get_is_absent_and_idempotent(store):
    store.set("/temp", {"a": 1})

    store.delete("temp")
    assert store.get("/temp") is None
    store.delete("temp")
    store.delete("/never-written")


def test_keys_lists_key_once_with_or_without_separator(store):
    store.set("gallery-artworks", [])
    store.set("/gallery-artworks", [{"id": "1"}])

    keys = store.keys()
    assert keys.count("/gallery-artworks") == 1
    assert all(key.startswith("/") for key in keys)


# --- Variante statique ---

def test_normalize_snapshot_accepts_flat_shape():
    assert normalize_snapshot({"gallery-artworks": [], "/images/a.png": "x"}) == {
        "/gallery-artworks": [],
        "/images/a.png": "x",
    }


def test_normalize_snapshot_accepts_nested_shape():
    nested = {
        "artworks": [{"id": "1"}],
        "images": {"/images/a.png": "A", "images/b.png": "B", "c.png": "C"},
    }
    assert normalize_snapshot(nested) == {
        "/gallery-artworks": [{"id": "1"}],
        "/images/a.png": "A",
        "/images/b.png": "B",
        "/images/c.png": "C",
    }


def test_normalize_snapshot_ignores_non_objects():
    assert normalize_snapshot([1, 2]) == {}


@pytest.fixture
def overlay(tmp_path):
    return LocalOverlay(tmp_path / "local-storage.json", namespace="art-gallery-kv")


def test_static_reads_snapshot_and_prefers_overlay(static_snapshot_file, overlay):
    store = StaticKVStore(str(static_snapshot_file), overlay)

    assert store.get("images/published.png") == "data:image/png;base64,AAAA"

    store.set("/images/published.png", "data:image/png;base64,BBBB")
    assert store.get("/images/published.png") == "data:image/png;base64,BBBB"
    assert json.loads(static_snapshot_file.read_text())["/images/published.png"] == "data:image/png;base64,AAAA"


def test_static_delete_hides_snapshot_key(static_snapshot_file, overlay):
    store = StaticKVStore(str(static_snapshot_file), overlay)

    store.delete("/images/published.png")

    assert store.get("/images/published.png") is None
    assert "/images/published.png" not in store.keys()

    store.set("/images/published.png", "again")
    assert store.get("/images/published.png") == "again"
    assert store.keys().count("/images/published.png") == 1


def test_static_keys_are_union_of_snapshot_and_overlay(static_snapshot_file, overlay):
    store = StaticKVStore(str(static_snapshot_file), overlay)
    store.set("/images/local.png", "L")

    assert store.keys() == ["/gallery-artworks", "/images/published.png", "/images/local.png"]


def test_static_overlay_is_namespaced(tmp_path, static_snapshot_file):
    path = tmp_path / "local-storage.json"
    path.write_text(json.dumps({"theme": "dark"}), encoding="utf-8")
    store = StaticKVStore(str(static_snapshot_file), LocalOverlay(path, namespace="art-gallery-kv"))

    store.set("/gallery-artworks", [{"id": "9"}])
    store.delete("/gallery-artworks")
    store.set("/gallery-artworks", [{"id": "10"}])

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data == {"theme": "dark", "art-gallery-kv:/gallery-artworks": [{"id": "10"}]}
    assert "/theme" not in store.keys()


def test_static_snapshot_is_loaded_once(static_snapshot_file, overlay):
    store = StaticKVStore(str(static_snapshot_file), overlay)
    store.get("/gallery-artworks")

    static_snapshot_file.write_text("{}", encoding="utf-8")

    assert store.get("/images/published.png") == "data:image/png;base64,AAAA"


def test_static_snapshot_from_url(overlay):
    session = MagicMock()
    session.get.return_value.json.return_value = {"artworks": [{"id": "1"}], "images": {}}
    store = StaticKVStore("https://gallery.example/kv.json", overlay, session=session)

    assert store.get("gallery-artworks") == [{"id": "1"}]
    session.get.assert_called_once_with("https://gallery.example/kv.json")


def test_static_unreadable_snapshot_degrades_to_empty(tmp_path, overlay):
    store = StaticKVStore(str(tmp_path / "missing.json"), overlay)

    assert store.get("/gallery-artworks") is None
    assert store.keys() == []


# --- Variante HTTP ---

def test_http_get_returns_none_on_transport_error():
    session = MagicMock()
    session.get.side_effect = requests.ConnectionError("refused")
    store = HttpKVStore("http://localhost:8787/api", session=session)

    assert store.get("/gallery-artworks") is None


def test_http_writes_raise_on_failure():
    session = MagicMock()
    session.put.side_effect = requests.ConnectionError("refused")
    session.delete.return_value.status_code = 500
    store = HttpKVStore("http://localhost:8787/api", session=session)

    with pytest.raises(KVStoreError):
        store.set("/gallery-artworks", [])
    with pytest.raises(KVStoreError):
        store.delete("/gallery-artworks")


def test_http_urls_are_built_from_normalized_keys():
    session = MagicMock()
    session.get.return_value.status_code = 200
    session.get.return_value.json.return_value = {"value": "v"}
    store = HttpKVStore("http://localhost:8787/api/", session=session)

    assert store.get("images/my photo.png") == "v"
    session.get.assert_called_once_with("http://localhost:8787/api/kv/images/my%20photo.png")


def test_http_user(client):
    store = HttpKVStore("http://testserver/api", session=client)
    assert store.user() == {"isOwner": True}


# --- Fabrique ---

def test_create_kv_store_selects_implementation(tmp_path):
    local = create_kv_store(Settings(kv_data_file=str(tmp_path / "kv.json")))
    http = create_kv_store(Settings(kv_client_mode="http"))
    static = create_kv_store(Settings(kv_client_mode="static", local_overlay_file=str(tmp_path / "ls.json")))

    assert isinstance(local, BackendKVStore)
    assert isinstance(http, HttpKVStore)
    assert http.base_url == "http://localhost:8787/api"
    assert isinstance(static, StaticKVStore)

    with pytest.raises(ValueError):
        create_kv_store(Settings(kv_client_mode="carrier-pigeon"))


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("CORS_ORIGIN", "https://a.example, https://b.example")
    monkeypatch.setenv("PORT", "9000")
    monkeypatch.setenv("KV_CLIENT_MODE", "static")
    monkeypatch.delenv("MONGODB_URI", raising=False)

    settings = Settings.from_env()

    assert settings.cors_origins == ["https://a.example", "https://b.example"]
    assert settings.allow_credentials
    assert settings.port == 9000
    assert settings.kv_client_mode == "static"
    assert settings.mongodb_uri is None
