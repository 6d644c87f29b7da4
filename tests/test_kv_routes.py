import json


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"ok": True}


def test_user_is_always_owner(client):
    assert client.get("/api/user").json() == {"isOwner": True}


def test_put_then_get_returns_value_unchanged(client):
    artworks = [{"id": "1", "title": "X", "category": "sculptures", "description": "d", "imageUrl": "/images/x.png"}]

    response = client.put("/api/kv/gallery-artworks", json={"value": artworks})
    assert response.status_code == 200
    assert response.json() == {"ok": True}

    response = client.get("/api/kv/gallery-artworks")
    assert response.status_code == 200
    assert response.json() == {"value": artworks}


def test_get_unknown_key_is_404(client):
    response = client.get("/api/kv/does-not-exist")
    assert response.status_code == 404
    assert response.json() == {"error": "Not found"}


def test_put_without_value_is_400(client):
    response = client.put("/api/kv/some-key", json={"other": 1})
    assert response.status_code == 400
    assert response.json() == {"error": "Missing value"}

    response = client.put("/api/kv/some-key", json=[1, 2])
    assert response.status_code == 400


def test_put_accepts_null_value(client):
    assert client.put("/api/kv/empty", json={"value": None}).status_code == 200
    assert client.get("/api/kv/empty").json() == {"value": None}


def test_delete_is_idempotent(client):
    client.put("/api/kv/temp", json={"value": 3})

    assert client.delete("/api/kv/temp").json() == {"ok": True}
    assert client.get("/api/kv/temp").status_code == 404
    response = client.delete("/api/kv/temp")
    assert response.status_code == 200
    assert response.json() == {"ok": True}


def test_keys_lists_normalized_keys(client):
    client.put("/api/kv/gallery-artworks", json={"value": []})
    client.put("/api/kv/images/photo.png", json={"value": "data:image/png;base64,AA"})

    keys = client.get("/api/kv/keys").json()
    assert sorted(keys) == ["/gallery-artworks", "/images/photo.png"]


def test_state_is_persisted_as_flat_json_object(client, settings):
    client.put("/api/kv/images/a.png", json={"value": "data:image/png;base64,AA"})

    with open(settings.kv_data_file, encoding="utf-8") as f:
        assert json.load(f) == {"/images/a.png": "data:image/png;base64,AA"}


def test_cors_allows_any_origin_by_default(client):
    response = client.get("/api/health", headers={"Origin": "https://gallery.example"})
    assert response.headers["access-control-allow-origin"] == "*"
