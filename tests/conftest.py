"""Fixtures partagées des tests."""

import json
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from artgallery.config import Settings
from artgallery.main import create_app
from artgallery.storage.backend import JsonFileKVBackend
from artgallery.storage.client import BackendKVStore, HttpKVStore, KVStore, LocalOverlay, StaticKVStore
from artgallery.storage.keys import normalize_key


class MemoryKVStore(KVStore):
    """Store en mémoire qui enregistre les écritures."""

    def __init__(self, data=None):
        self.data = {normalize_key(k): v for k, v in (data or {}).items()}
        self.set_calls = []
        self.get_calls = []

    def get(self, key):
        self.get_calls.append(normalize_key(key))
        return self.data.get(normalize_key(key))

    def set(self, key, value):
        self.set_calls.append((normalize_key(key), value))
        self.data[normalize_key(key)] = value

    def delete(self, key):
        self.data.pop(normalize_key(key), None)

    def keys(self):
        return list(self.data)


class FakeClock:
    """Horloge déterministe : avance d'une seconde à chaque appel."""

    def __init__(self, start=datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self):
        current = self.now
        self.now += timedelta(seconds=1)
        return current


@pytest.fixture
def settings(tmp_path):
    return Settings(kv_data_file=str(tmp_path / "server" / "data" / "kv.json"))


@pytest.fixture
def backend(settings):
    return JsonFileKVBackend(settings.kv_data_file)


@pytest.fixture
def client(settings, backend):
    return TestClient(create_app(settings, backend=backend))


@pytest.fixture
def memory_store():
    return MemoryKVStore()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def static_snapshot_file(tmp_path):
    path = tmp_path / "static" / "kv.json"
    path.parent.mkdir(parents=True)
    path.write_text(json.dumps({
        "/gallery-artworks": [],
        "/images/published.png": "data:image/png;base64,AAAA",
    }), encoding="utf-8")
    return path


@pytest.fixture(params=["backend", "http", "static"])
def store(request, tmp_path, backend, client, static_snapshot_file):
    """Chaque test de contrat tourne sur les trois implémentations du store."""
    if request.param == "backend":
        return BackendKVStore(backend)
    if request.param == "http":
        return HttpKVStore("http://testserver/api", session=client)
    overlay = LocalOverlay(tmp_path / "browser" / "local-storage.json")
    return StaticKVStore(str(static_snapshot_file), overlay)
