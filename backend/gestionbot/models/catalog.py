"""
Modelos del catálogo de productos (lista de precios)

El catálogo llega como un mapa anidado categoría -> subcategoría ->
nombre -> datos. Las claves de los datos aceptan el formato original en
castellano (precio, precio_desde, codigo_barras...) y el formato en inglés.
"""
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from ..services.text_normalizer import format_display_name


KEY_SEPARATOR = "::"


class ProductImage(BaseModel):
    """Foto de un producto"""
    model_config = ConfigDict(frozen=True)

    url: str
    id: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    format: Optional[str] = None


class CatalogItem(BaseModel):
    """Producto vendible del catálogo"""
    model_config = ConfigDict(frozen=True)

    category: str
    subcategory: str
    name: str
    display_name: str
    price: Optional[Decimal] = None
    price_from: Optional[Decimal] = None
    in_stock: bool = True
    unit: Optional[str] = None
    barcode: Optional[str] = None
    images: List[ProductImage] = Field(default_factory=list)
    description: Optional[str] = None
    delivery_time: Optional[str] = None

    @property
    def key(self) -> str:
        return make_key(self.category, self.subcategory, self.name)

    @property
    def unit_price(self) -> Decimal:
        """Precio usado en el carrito: precio fijo, si no 'desde', si no 0."""
        if self.price is not None:
            return self.price
        if self.price_from is not None:
            return self.price_from
        return Decimal("0")

    @property
    def is_price_from(self) -> bool:
        return self.price is None and self.price_from is not None

    @classmethod
    def from_raw(
        cls,
        category: str,
        subcategory: str,
        name: str,
        raw: Dict[str, Any]
    ) -> "CatalogItem":
        """
        Crea un item a partir de la entrada cruda del catálogo.

        Si vienen precio y precio_desde, gana el precio fijo.
        Stock ausente significa disponible; solo `false` explícito lo agota.
        """
        price = _to_decimal(_first(raw, "precio", "price"), name)
        price_from = _to_decimal(_first(raw, "precio_desde", "price_from", "priceFrom"), name)
        if price is not None:
            price_from = None

        barcode = _first(raw, "codigo_barras", "barcode")

        return cls(
            category=category,
            subcategory=subcategory,
            name=name,
            display_name=format_display_name(name),
            price=price,
            price_from=price_from,
            in_stock=raw.get("stock") is not False,
            unit=_to_text(_first(raw, "unidad", "unit")),
            barcode=str(barcode) if barcode else None,
            images=_parse_images(_first(raw, "imagenes", "images") or [], name),
            description=_to_text(_first(raw, "descripcion", "description")),
            delivery_time=_to_text(_first(raw, "tiempo_entrega", "delivery_time")),
        )


def make_key(category: str, subcategory: str, name: str) -> str:
    """Identificador estable 'categoria::subcategoria::nombre'."""
    return KEY_SEPARATOR.join([category, subcategory, name])


def _first(raw: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return None


def _to_decimal(value: Any, name: str) -> Optional[Decimal]:
    if value is None or value is False:
        return None
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        amount = None
    if amount is None or not amount.is_finite():
        logger.warning(f"⚠️ Precio inválido para '{name}': {value!r}")
        return None
    if amount <= 0:
        return None
    return amount


def _to_text(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def _to_dimension(value: Any) -> Optional[int]:
    """Ancho/alto en píxeles. Valores raros (800.5, "abc") se redondean o se ignoran."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return None


def _parse_images(raw_images: Any, name: str) -> List[ProductImage]:
    images = []
    if not isinstance(raw_images, list):
        logger.warning(f"⚠️ Imágenes inválidas para '{name}'")
        return images

    for entry in raw_images:
        if isinstance(entry, str):
            images.append(ProductImage(url=entry))
        elif isinstance(entry, dict) and entry.get("url"):
            images.append(ProductImage(
                url=str(entry["url"]),
                id=str(entry["id"]) if entry.get("id") is not None else None,
                width=_to_dimension(entry.get("width")),
                height=_to_dimension(entry.get("height")),
                format=_to_text(entry.get("format")),
            ))
    return images
