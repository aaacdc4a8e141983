"""
Modelos de datos de la sesión de cada cliente
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field


class MessageSource(str, Enum):
    """Origen del mensaje"""
    CUSTOMER = "customer"  # Cliente
    HUMAN = "human"        # Dueño / encargado respondiendo desde el WhatsApp del negocio


class InboundMessage(BaseModel):
    """Mensaje entrante ya extraído del webhook"""
    customer_id: str
    text: str = ""
    has_attachment: bool = False
    timestamp: datetime = Field(default_factory=datetime.now)
    source: MessageSource = MessageSource.CUSTOMER


class CartLine(BaseModel):
    """Línea del carrito (o selección pendiente)"""
    item_key: str
    display_name: str
    unit_price: Decimal
    price_from: bool = False
    quantity: int = 1

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class Cart(BaseModel):
    """Carrito confirmado del cliente"""
    items: List[CartLine] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def subtotal(self) -> Decimal:
        return sum((line.line_total for line in self.items), Decimal("0"))


# ==================== Sub-flujos abiertos ====================
# La sesión tiene a lo sumo UN sub-flujo abierto: confirmación pendiente,
# lista de opciones, elección de entrega u opción de servicio.

class PendingConfirmation(BaseModel):
    """Producto(s) mostrado(s) esperando un sí/no"""
    kind: Literal["pending"] = "pending"
    lines: List[CartLine]


class CandidateSelection(BaseModel):
    """Lista numerada de opciones esperando un número"""
    kind: Literal["candidates"] = "candidates"
    candidates: List[str]
    quantity: int = 1
    total_matches: int = 0


class DeliveryChoice(BaseModel):
    """Pedido confirmado esperando retiro (1) o envío (2)"""
    kind: Literal["delivery"] = "delivery"


class CustomServiceOption(BaseModel):
    """Presupuesto de servicio esperando la forma de envío de datos (1/2/3)"""
    kind: Literal["custom_service"] = "custom_service"
    service: str


Flow = Annotated[
    Union[PendingConfirmation, CandidateSelection, DeliveryChoice, CustomServiceOption],
    Field(discriminator="kind"),
]


class SessionState(BaseModel):
    """Estado conversacional de un cliente"""
    customer_id: str
    active_until: Optional[datetime] = None
    kind: Optional[str] = None
    cart: Cart = Field(default_factory=Cart)
    flow: Optional[Flow] = None
    collecting_custom_data: Optional[str] = None
    last_shown: List[str] = Field(default_factory=list)

    @property
    def pending(self) -> Optional[PendingConfirmation]:
        return self.flow if isinstance(self.flow, PendingConfirmation) else None

    @property
    def candidates(self) -> Optional[CandidateSelection]:
        return self.flow if isinstance(self.flow, CandidateSelection) else None

    def reset(self) -> None:
        """Vacía carrito y sub-flujos (no toca la derivación a humano)."""
        self.cart = Cart()
        self.flow = None
        self.collecting_custom_data = None
        self.last_shown = []
