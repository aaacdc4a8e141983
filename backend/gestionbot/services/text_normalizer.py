"""
Normalización de texto para búsqueda y detección de intenciones

Todas las comparaciones del bot (índice de productos, frases sí/no,
comandos del carrito) pasan por `normalize`, así el mismo mensaje
siempre produce la misma forma canónica.
"""
import re
import unicodedata
from typing import Optional


_SEPARATORS = re.compile(r"[-/_]+")
_NON_WORD = re.compile(r"[^a-z0-9\s]")
_SPACES = re.compile(r"\s+")
_REPEATED = re.compile(r"(.)\1{2,}")
_ANY_DIGITS = re.compile(r"\d+")

NUMBER_WORDS = {
    "un": 1, "una": 1, "uno": 1,
    "dos": 2, "tres": 3, "cuatro": 4, "cinco": 5,
    "seis": 6, "siete": 7, "ocho": 8, "nueve": 9, "diez": 10,
}

# Palabras de relleno que no ayudan a identificar el producto
FILLER_WORDS = {
    "quiero", "quisiera", "necesito", "busco", "buscando", "me", "das",
    "dame", "pasame", "mandame", "vendeme", "tenes", "tienen", "tiene",
    "hay", "venden", "vendes", "el", "la", "los", "las", "de",
    "del", "para", "por", "favor", "porfa", "un", "una", "unos", "unas",
    "uno", "y", "a", "al", "con", "que", "cuanto", "cuesta", "sale",
    "salen", "precio", "precios", "hola", "buenas", "comprar", "llevar",
    "llevo", "agregar", "agrega", "si", "algun", "alguna", "algo",
    "interesa", "consulta", "consultar", "vale", "valen", "cuestan",
    "disponible", "disponibles", "stock", "en", "lo", "les", "te",
}


def normalize(text: Optional[str]) -> str:
    """
    Forma canónica de un texto.

    Minúsculas, sin acentos (ñ pasa a n), guiones/barras/guiones bajos pasan
    a espacio, se eliminan los demás símbolos y se colapsan los espacios.
    Idempotente.

    Example:
        >>> normalize("¿Tenés Cuadernos A4?")
        'tenes cuadernos a4'
    """
    if not text:
        return ""

    decomposed = unicodedata.normalize("NFD", str(text).lower())
    sem_acentos = "".join(c for c in decomposed if unicodedata.category(c) != "Mn")

    result = _SEPARATORS.sub(" ", sem_acentos)
    result = _NON_WORD.sub(" ", result)
    return _SPACES.sub(" ", result).strip()


def format_display_name(raw_name: str) -> str:
    """cuaderno_rayado_a4 -> Cuaderno Rayado A4"""
    name = (raw_name or "").replace("_", " ")
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), name)


def collapse_repeats(text: str) -> str:
    """Reduce letras repetidas 3+ veces a 2 ("siiiii" -> "sii")."""
    return _REPEATED.sub(r"\1\1", text)


def extract_number(text: str) -> Optional[int]:
    """Primer número entero del mensaje (o None)."""
    match = _ANY_DIGITS.search(normalize(text))
    return int(match.group(0)) if match else None


def extract_quantity(text: str) -> int:
    """
    Cantidad pedida en el mensaje.

    Acepta dígitos sueltos ("2 cuadernos") y palabras ("dos cuadernos").
    Dígitos pegados a letras (a4, 2b) son parte del nombre del producto y
    se ignoran. Sin cantidad explícita devuelve 1.
    """
    normalized = normalize(text)

    for token in normalized.split():
        if token.isdigit():
            quantity = int(token)
            return quantity if quantity > 0 else 1
        if token in NUMBER_WORDS:
            return NUMBER_WORDS[token]

    return 1


def clean_product_query(text: str) -> str:
    """
    Quita palabras de relleno y la cantidad, dejando solo el producto.

    Example:
        >>> clean_product_query("quiero 2 cuadernos por favor")
        'cuadernos'
    """
    tokens = []
    for token in normalize(text).split():
        if token in FILLER_WORDS or token in NUMBER_WORDS:
            continue
        if token.isdigit():
            continue
        tokens.append(token)
    return " ".join(tokens)
