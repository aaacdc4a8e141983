"""
Índice de búsqueda sobre la lista de precios

Funcionalidades:
- Construye mapas por nombre, palabra, código de barras, categoría y subcategoría
- Búsqueda tolerante: plurales, sinónimos, abreviaturas, errores de tipeo
- Bonus por color/tamaño pedidos
- Reconstrucción atómica: se arma un estado nuevo y se publica de una vez,
  las búsquedas en curso siempre ven el índice viejo completo o el nuevo completo
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple

from loguru import logger
from pydantic import ValidationError

from ..exceptions import CatalogSnapshotError
from ..models.catalog import CatalogItem
from .fuzzy_matcher import (
    SIMILARITY_THRESHOLD,
    approximate_match,
    expand_abbreviation,
    expand_synonyms,
    extract_attributes,
    singular_candidates,
    singularize,
)
from .text_normalizer import normalize


SCORE_EXACT = 100
SCORE_ABBREVIATION = 90
SCORE_CONTAINS = 75
SCORE_CONTAINS_BONUS = 30
SCORE_WORD = 50
SCORE_WORD_BONUS = 25
SCORE_ATTRIBUTE = 15

MIN_WORD_LENGTH = 3
MIN_CONTAINS_LENGTH = 3


@dataclass
class IndexStats:
    """Estadísticas del índice publicado"""
    total_items: int = 0
    total_categories: int = 0
    total_subcategories: int = 0
    indexed_words: int = 0
    built_at: Optional[datetime] = None


@dataclass
class SearchMatch:
    """Resultado de búsqueda con su puntaje"""
    item: CatalogItem
    score: int
    requested_quantity: int = 1
    full_match: bool = False


@dataclass
class _IndexState:
    items: List[CatalogItem] = field(default_factory=list)
    position: Dict[str, int] = field(default_factory=dict)
    by_key: Dict[str, CatalogItem] = field(default_factory=dict)
    normalized_names: Dict[str, str] = field(default_factory=dict)
    by_name: Dict[str, List[CatalogItem]] = field(default_factory=dict)
    words: Dict[str, List[CatalogItem]] = field(default_factory=dict)
    barcodes: Dict[str, CatalogItem] = field(default_factory=dict)
    categories: Dict[str, List[CatalogItem]] = field(default_factory=dict)
    subcategories: Dict[str, List[CatalogItem]] = field(default_factory=dict)
    category_names: List[str] = field(default_factory=list)
    subcategory_names: Dict[str, List[str]] = field(default_factory=dict)
    stats: IndexStats = field(default_factory=IndexStats)


class CatalogIndex:
    """Índice de productos en memoria"""

    def __init__(self, similarity_threshold: float = SIMILARITY_THRESHOLD):
        self.similarity_threshold = similarity_threshold
        self._state = _IndexState()

    # ==================== Construcción ====================

    def build(self, snapshot: Mapping[str, Any]) -> IndexStats:
        """
        Construye el índice completo desde la lista de precios.

        Args:
            snapshot: {categoria: {subcategoria: {nombre: datos}}}

        Returns:
            Estadísticas del índice nuevo

        Raises:
            CatalogSnapshotError: si la lista no es un mapa. El índice
                publicado anteriormente queda intacto.
        """
        if not isinstance(snapshot, Mapping):
            raise CatalogSnapshotError(
                f"Lista de precios inválida: se esperaba un mapa, llegó {type(snapshot).__name__}"
            )

        logger.info("🏗️ Construyendo índice de productos...")
        state = _IndexState()
        subcategory_keys = set()

        for category, subcategories in snapshot.items():
            if not isinstance(subcategories, Mapping):
                logger.warning(f"⚠️ Categoría '{category}' ignorada: formato inválido")
                continue

            for subcategory, products in subcategories.items():
                if not isinstance(products, Mapping):
                    logger.warning(f"⚠️ Subcategoría '{category}/{subcategory}' ignorada: formato inválido")
                    continue

                for name, info in products.items():
                    if not isinstance(info, Mapping):
                        logger.warning(f"⚠️ Producto '{name}' ignorado: datos inválidos")
                        continue

                    try:
                        item = CatalogItem.from_raw(str(category), str(subcategory), str(name), dict(info))
                    except (ValidationError, ArithmeticError) as e:
                        logger.warning(f"⚠️ Producto '{name}' ignorado: {e}")
                        continue

                    self._add_item(state, item)
                    subcategory_keys.add((item.category, item.subcategory))

        state.stats = IndexStats(
            total_items=len(state.items),
            total_categories=len(state.category_names),
            total_subcategories=len(subcategory_keys),
            indexed_words=len(state.words),
            built_at=datetime.now(),
        )

        # Publicación: un único cambio de referencia
        self._state = state

        logger.info(
            f"✅ Índice construido: {state.stats.total_items} productos, "
            f"{state.stats.total_categories} categorías, "
            f"{state.stats.indexed_words} palabras indexadas"
        )
        return state.stats

    def rebuild(self, snapshot: Mapping[str, Any]) -> IndexStats:
        """Reconstruye el índice (cuando cambia la lista de precios)"""
        logger.info("🔄 Reconstruyendo índice...")
        return self.build(snapshot)

    def clear(self):
        """Publica un índice vacío"""
        self._state = _IndexState()
        logger.info("🧹 Índice limpiado")

    @staticmethod
    def _add_item(state: _IndexState, item: CatalogItem):
        key = item.key
        normalized_name = normalize(item.name)

        state.position[key] = len(state.items)
        state.items.append(item)
        state.by_key[key] = item
        state.normalized_names[key] = normalized_name
        state.by_name.setdefault(normalized_name, []).append(item)

        for word in set(normalized_name.split()):
            if len(word) >= MIN_WORD_LENGTH:
                state.words.setdefault(word, []).append(item)

        if item.barcode:
            if item.barcode in state.barcodes:
                logger.warning(
                    f"⚠️ Código de barras {item.barcode} duplicado en '{item.name}', "
                    f"se mantiene '{state.barcodes[item.barcode].name}'"
                )
            else:
                state.barcodes[item.barcode] = item

        category = normalize(item.category)
        if category not in state.categories:
            state.category_names.append(item.category)
        state.categories.setdefault(category, []).append(item)

        sub_names = state.subcategory_names.setdefault(category, [])
        if item.subcategory not in sub_names:
            sub_names.append(item.subcategory)

        sub_key = f"{category}::{normalize(item.subcategory)}"
        state.subcategories.setdefault(sub_key, []).append(item)

    # ==================== Búsquedas directas ====================

    def find_by_key(self, key: str) -> Optional[CatalogItem]:
        return self._state.by_key.get(key)

    def find_by_exact_name(self, name: str) -> Optional[CatalogItem]:
        """Primer producto (en orden de catálogo) con ese nombre exacto"""
        items = self._state.by_name.get(normalize(name))
        return items[0] if items else None

    def find_by_barcode(self, code: str) -> Optional[CatalogItem]:
        return self._state.barcodes.get(str(code).strip())

    def find_by_category(self, category: str) -> List[CatalogItem]:
        return list(self._state.categories.get(normalize(category), []))

    def find_by_subcategory(self, category: str, subcategory: str) -> List[CatalogItem]:
        key = f"{normalize(category)}::{normalize(subcategory)}"
        return list(self._state.subcategories.get(key, []))

    def find_by_price_range(self, min_price: Decimal, max_price: Decimal) -> List[CatalogItem]:
        """Productos con precio entre min y max, del más barato al más caro"""
        low, high = Decimal(str(min_price)), Decimal(str(max_price))
        items = [item for item in self._state.items if low <= item.unit_price <= high]
        return sorted(items, key=lambda item: item.unit_price)

    def all_items(self) -> List[CatalogItem]:
        return list(self._state.items)

    def categories(self) -> List[str]:
        return list(self._state.category_names)

    def subcategories(self, category: str) -> List[str]:
        return list(self._state.subcategory_names.get(normalize(category), []))

    def stats(self) -> IndexStats:
        return self._state.stats

    def is_empty(self) -> bool:
        return not self._state.items

    # ==================== Búsqueda inteligente ====================

    def search(self, query: str, requested_quantity: int = 1) -> List[CatalogItem]:
        """
        Busca productos por texto libre, ordenados por relevancia.

        Example:
            >>> index.search("cuadernoo")
            [CatalogItem(name='cuaderno', ...)]
        """
        return [match.item for match in self.search_matches(query, requested_quantity)]

    def search_best(self, query: str, requested_quantity: int = 1) -> List[CatalogItem]:
        """
        Como `search`, pero cuando un producto cubre la consulta completa con
        mejor puntaje que cualquier otro que también la cubre ("cuadernos a4"
        -> Cuaderno A4), devuelve solo ese.
        """
        matches = self.search_matches(query, requested_quantity)
        full = [match for match in matches if match.full_match]
        if full and (len(full) == 1 or full[0].score > full[1].score):
            return [full[0].item]
        return [match.item for match in matches]

    def search_in_stock(self, query: str) -> List[CatalogItem]:
        return [item for item in self.search(query) if item.in_stock]

    def search_matches(self, query: str, requested_quantity: int = 1) -> List[SearchMatch]:
        """Igual que `search`, pero devuelve puntaje y cantidad pedida"""
        state = self._state
        scores, full = self._score(state, normalize(query))

        ranked = sorted(scores.items(), key=lambda kv: (-kv[1], state.position[kv[0]]))
        return [
            SearchMatch(
                item=state.by_key[key],
                score=score,
                requested_quantity=requested_quantity,
                full_match=key in full,
            )
            for key, score in ranked
        ]

    def _score(self, state: _IndexState, normalized: str) -> Tuple[Dict[str, int], Set[str]]:
        """Puntaje por clave, y las claves cuyo nombre cubre la consulta completa"""
        scores: Dict[str, int] = {}
        full: Set[str] = set()
        if not normalized:
            return scores, full

        attributes = extract_attributes(normalized)
        cleaned = attributes.stripped_text

        # 1. Abreviaturas ("a4" -> "cuaderno a4")
        expansion = expand_abbreviation(cleaned)
        if expansion:
            expanded, expanded_full = self._score(state, expansion)
            for key in expanded:
                scores.setdefault(key, SCORE_ABBREVIATION)
            full |= expanded_full

        # 2. Nombre exacto
        for name in {normalized, cleaned}:
            for item in state.by_name.get(name, []):
                scores[item.key] = SCORE_EXACT
                full.add(item.key)

        # 3. Palabras (literal -> singular -> sinónimos -> difusa)
        for word in cleaned.split():
            if len(word) < MIN_WORD_LENGTH:
                continue
            for item in self._word_hits(state, word):
                key = item.key
                if key not in scores:
                    scores[key] = SCORE_WORD
                else:
                    scores[key] += SCORE_WORD_BONUS

        # 4. Contención parcial en el nombre
        if len(cleaned) >= MIN_CONTAINS_LENGTH:
            forms = {cleaned, " ".join(singularize(w) for w in cleaned.split())}
            for item in state.items:
                name = state.normalized_names[item.key]
                if any(form in name or name in form for form in forms):
                    key = item.key
                    full.add(key)
                    if key not in scores:
                        scores[key] = SCORE_CONTAINS
                    else:
                        scores[key] += SCORE_CONTAINS_BONUS

        # 5. Bonus por color / tamaño
        wanted = attributes.colors + attributes.sizes
        if wanted:
            for key in scores:
                name = state.normalized_names[key]
                scores[key] += SCORE_ATTRIBUTE * sum(1 for attr in wanted if attr in name)

        return scores, full

    def _word_hits(self, state: _IndexState, word: str) -> List[CatalogItem]:
        hits = state.words.get(word, [])

        if not hits:
            for singular in singular_candidates(word):
                hits = state.words.get(singular, [])
                if hits:
                    break

        if not hits:
            synonyms = expand_synonyms(word)
            for singular in singular_candidates(word):
                synonyms |= expand_synonyms(singular)
            hits = _unique(
                item for synonym in sorted(synonyms) for item in state.words.get(synonym, [])
            )

        if not hits:
            similar = approximate_match(word, state.words.keys(), self.similarity_threshold)
            if similar:
                logger.debug(f"🔎 '{word}' aproximado a '{similar}'")
                hits = state.words.get(similar, [])

        return hits


def _unique(items) -> List[CatalogItem]:
    seen = set()
    result = []
    for item in items:
        if item.key not in seen:
            seen.add(item.key)
            result.append(item)
    return result
