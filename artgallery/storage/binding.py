"""
Liaison réactive entre une valeur locale et une clé du store.

La valeur est chargée une fois à l'activation, puis chaque mise à jour est
répercutée dans le store. Les échecs d'écriture sont journalisés : la valeur
locale reste la référence pour la session.
"""
import copy
import logging
from enum import Enum
from typing import Any, Callable, Generic, List, TypeVar, Union

from artgallery.storage.client import KVStore
from artgallery.storage.keys import normalize_key

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BindingState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADED_CLEAN = "loaded-clean"  # en phase avec le store, prochaine écriture inutile
    DIRTY = "dirty"  # modifiée par l'appelant, à écrire


class KVBinding(Generic[T]):

    def __init__(self, store: KVStore, key: str, default: T):
        self.store = store
        self.key = normalize_key(key)
        self._value: T = copy.deepcopy(default)
        self.state = BindingState.UNINITIALIZED
        self._listeners: List[Callable[[T], None]] = []

    @property
    def value(self) -> T:
        return self._value

    def activate(self) -> T:
        """Charge la valeur persistée au premier appel ; sans effet ensuite"""
        if self.state is BindingState.UNINITIALIZED:
            self._load()
        return self._value

    def reload(self) -> T:
        """Force un nouveau chargement depuis le store (après une restauration)"""
        self._load()
        return self._value

    def _load(self) -> None:
        try:
            stored = self.store.get(self.key)
        except Exception as e:
            logger.warning(f"Failed to load {self.key}: {e}")
            return
        if stored is not None:
            self._value = stored
            self.state = BindingState.LOADED_CLEAN
            self._notify()

    def set(self, value: Union[T, Callable[[T], T]]) -> T:
        """
        Remplace la valeur (ou la dérive de la précédente si `value` est appelable)
        puis l'écrit dans le store.
        """
        self._value = value(self._value) if callable(value) else value
        self.state = BindingState.DIRTY
        self._notify()
        self.persist()
        return self._value

    def persist(self) -> bool:
        """Écrit la valeur si elle a été modifiée ; retourne True si une écriture a eu lieu"""
        if self.state is not BindingState.DIRTY:
            return False
        try:
            self.store.set(self.key, self._value)
        except Exception as e:
            logger.warning(f"Failed to persist {self.key}: {e}")
            return False
        self.state = BindingState.LOADED_CLEAN
        return True

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        """Enregistre un observateur ; retourne la fonction de désinscription"""
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _notify(self) -> None:
        for callback in list(self._listeners):
            try:
                callback(self._value)
            except Exception as e:
                logger.error(f"Binding listener failed for {self.key}: {e}")
