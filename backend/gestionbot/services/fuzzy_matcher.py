"""
Coincidencia aproximada de palabras

Singularización, sinónimos, abreviaturas, atributos (color/tamaño) y
similitud por distancia de Levenshtein. Todas las funciones reciben texto
ya normalizado por `text_normalizer.normalize`.
"""
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from rapidfuzz.distance import Levenshtein

from .text_normalizer import collapse_repeats, normalize


SIMILARITY_THRESHOLD = 75
MIN_FUZZY_WORD_LENGTH = 5

_SINGLE_LETTERS = re.compile(r"(.)\1+")

SYNONYM_GROUPS = [
    ["boli", "birome", "boligrafo", "lapicera"],
    ["cuaderno", "libreta", "anotador"],
    ["goma", "borrador"],
    ["sacapuntas", "afilador", "tajador"],
    ["muneco", "peluche", "juguete"],
    ["celular", "telefono", "movil", "smartphone", "celu"],
    ["cargador", "cable"],
    ["auricular", "auriculares", "audifonos"],
    ["parlante", "altavoz", "bocina"],
]

ABBREVIATIONS = {
    "a4": "cuaderno a4",
    "a5": "cuaderno a5",
    "hb": "lapiz hb",
    "2b": "lapiz 2b",
    "usb": "cable usb",
    "cd": "disco cd",
    "dvd": "disco dvd",
}

COLORS = [
    "rojo", "azul", "verde", "amarillo", "negro", "blanco",
    "rosa", "violeta", "naranja", "celeste", "gris",
]

SIZES = ["grande", "mediano", "pequeno", "chico", "mini", "enorme"]


def _build_synonym_map(groups: List[List[str]]) -> Dict[str, Set[str]]:
    synonyms: Dict[str, Set[str]] = {}
    for group in groups:
        for word in group:
            synonyms.setdefault(word, set()).update(w for w in group if w != word)
    return synonyms


_SYNONYMS = _build_synonym_map(SYNONYM_GROUPS)


@dataclass
class Attributes:
    """Atributos encontrados en una consulta"""
    colors: List[str] = field(default_factory=list)
    sizes: List[str] = field(default_factory=list)
    stripped_text: str = ""


def singularize(word: str) -> str:
    """
    Forma singular aproximada.

    lapices -> lapiz, colores -> color, globos -> globo.
    Palabras cortas quedan intactas.
    """
    if word.endswith("ces") and len(word) > 4:
        return word[:-3] + "z"
    if word.endswith("es") and len(word) > 4:
        return word[:-2]
    if word.endswith("s") and len(word) > 3:
        return word[:-1]
    return word


def singular_candidates(word: str) -> List[str]:
    """
    Formas singulares a probar, en orden.

    La regla de `singularize` recorta "-es" completo, lo que rompe
    palabras como "peluches"; también se prueba el recorte simple de "s".
    """
    candidates = []
    rule = singularize(word)
    if rule != word:
        candidates.append(rule)
    if word.endswith("s") and len(word) > 3 and word[:-1] not in candidates:
        candidates.append(word[:-1])
    return candidates


def expand_synonyms(word: str) -> Set[str]:
    """Sinónimos de la palabra (sin incluirla). Grupos bidireccionales."""
    return set(_SYNONYMS.get(word, set()))


def expand_abbreviation(text: str) -> Optional[str]:
    """'a4' -> 'cuaderno a4'. None si el texto no es una abreviatura conocida."""
    return ABBREVIATIONS.get(text.strip())


def similarity(a: str, b: str) -> float:
    """Similitud 0-100 basada en distancia de edición."""
    max_len = max(len(a), len(b))
    if max_len == 0:
        return 100.0
    return (max_len - Levenshtein.distance(a, b)) / max_len * 100


def approximate_match(
    word: str,
    vocabulary: Iterable[str],
    threshold: float = SIMILARITY_THRESHOLD
) -> Optional[str]:
    """
    Mejor palabra del vocabulario con similitud >= threshold.

    Solo se aplica a palabras de más de 4 caracteres; en palabras cortas
    una sola letra de diferencia cambia el producto.
    """
    if len(word) < MIN_FUZZY_WORD_LENGTH:
        return None

    best_word = None
    best_score = 0.0

    for candidate in vocabulary:
        score = similarity(word, candidate)
        if score >= threshold and score > best_score:
            best_word = candidate
            best_score = score

    return best_word


def extract_attributes(text: str) -> Attributes:
    """Separa colores y tamaños del resto de la consulta."""
    attributes = Attributes()
    remaining = []

    for token in text.split():
        forms = [token] + singular_candidates(token)
        color = next((form for form in forms if form in COLORS), None)
        size = next((form for form in forms if form in SIZES), None)
        if color:
            attributes.colors.append(color)
        elif size:
            attributes.sizes.append(size)
        else:
            remaining.append(token)

    attributes.stripped_text = " ".join(remaining)
    return attributes


def words_match_with_tolerance(text: str, phrases: Iterable[str], ratio: float = 0.35) -> bool:
    """
    True si el texto coincide con alguna frase tolerando errores de tipeo.

    Textos de hasta 2 caracteres solo coinciden exactos. Contra frases de
    hasta 2 caracteres ("si", "no", "ok") solo se aceptan letras repetidas:
    "siii" es sí, "sin" y "uno" no.
    En el resto, tolerancia = max(1, floor(min_len * ratio)) ediciones.

    Example:
        >>> words_match_with_tolerance("siiii", ["si", "dale"])
        True
        >>> words_match_with_tolerance("confirmoo", ["confirmo"])
        True
    """
    cleaned = collapse_repeats(normalize(text))
    if not cleaned:
        return False

    for phrase in phrases:
        target = normalize(phrase)
        if cleaned == target:
            return True
        if len(cleaned) <= 2:
            continue
        if len(target) <= 2:
            if _SINGLE_LETTERS.sub(r"\1", cleaned) == target:
                return True
            continue

        min_len = min(len(cleaned), len(target))
        tolerance = max(1, int(min_len * ratio))
        if Levenshtein.distance(cleaned, target) <= tolerance:
            return True

    return False
