# artgallery/routes/kv.py
from typing import Any

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from artgallery.dependencies import get_kv_backend
from artgallery.storage.backend import KVBackend

router = APIRouter()


def _key(path: str) -> str:
    return "/" + path


@router.get("/keys")
def list_keys(backend: KVBackend = Depends(get_kv_backend)):
    return list(backend.read().keys())


@router.get("/{path:path}")
def get_value(path: str, backend: KVBackend = Depends(get_kv_backend)):
    kv = backend.read()
    key = _key(path)
    if key not in kv:
        return JSONResponse(status_code=404, content={"error": "Not found"})
    return {"value": kv[key]}


@router.put("/{path:path}")
def set_value(path: str, payload: Any = Body(None),
              backend: KVBackend = Depends(get_kv_backend)):
    # null est une valeur valide, seule l'absence du champ est refusée
    if not isinstance(payload, dict) or "value" not in payload:
        return JSONResponse(status_code=400, content={"error": "Missing value"})
    kv = backend.read()
    kv[_key(path)] = payload["value"]
    backend.write(kv)
    return {"ok": True}


@router.delete("/{path:path}")
def delete_value(path: str, backend: KVBackend = Depends(get_kv_backend)):
    kv = backend.read()
    key = _key(path)
    if key in kv:
        del kv[key]
        backend.write(kv)
    return {"ok": True}
