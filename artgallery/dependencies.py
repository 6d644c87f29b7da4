from fastapi import Request

from artgallery.storage.backend import KVBackend


def get_kv_backend(request: Request) -> KVBackend:
    """Adaptateur créé au démarrage par create_app"""
    return request.app.state.kv_backend
