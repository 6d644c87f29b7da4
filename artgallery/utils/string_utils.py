import re
import unicodedata
from typing import Iterable, Optional


def normalize_string(value: str) -> str:
    """
    Normalise une chaîne pour comparaison de catégories saisies par l'utilisateur:
    - convertit en str
    - passe en minuscules
    - retire les accents
    - garde uniquement les caractères alphanumériques (a-z0-9)
    Exemple: 'Peintures ' -> 'peintures', 'Verrés' -> 'verres'
    """
    if value is None:
        return ""
    s = str(value)
    # décomposer les accents
    s = unicodedata.normalize('NFKD', s)
    s = ''.join(ch for ch in s if not unicodedata.combining(ch))
    s = s.lower()
    s = re.sub(r'[^a-z0-9]+', '', s)
    return s


def contains_text(needle: str, haystacks: Iterable[Optional[str]]) -> bool:
    """Recherche insensible à la casse d'une sous-chaîne dans l'un des champs"""
    term = needle.strip().casefold()
    if not term:
        return True
    return any(term in (h or "").casefold() for h in haystacks)


def collation_key(value: Optional[str]):
    """
    Clé de tri alphabétique proche de localeCompare : 'Étoile' se range avec 'E'.
    Le texte brut départage les titres qui ne diffèrent que par les accents.
    """
    s = unicodedata.normalize('NFKD', value or "")
    folded = ''.join(ch for ch in s if not unicodedata.combining(ch)).casefold()
    return folded, value or ""
