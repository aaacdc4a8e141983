"""
Modelos del pedido emitido al confirmar
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from .session import CartLine


class DeliveryType(str, Enum):
    """Forma de entrega elegida por el cliente"""
    PICKUP = "pickup"  # Retiro en el local
    SHIP = "ship"      # Envío a domicilio


class OrderTotals(BaseModel):
    """Totales del pedido (sin redondeos intermedios)"""
    subtotal: Decimal
    discount: Decimal = Decimal("0")
    delivery: Decimal = Decimal("0")
    total: Decimal


class OrderDraft(BaseModel):
    """Pedido listo para registrar"""
    customer_id: str
    lines: List[CartLine]
    delivery_type: DeliveryType
    discount_pct: Decimal = Decimal("0")
    totals: OrderTotals
    created_at: datetime = Field(default_factory=datetime.now)


class OrderResult(BaseModel):
    """Resultado de `record_order`"""
    success: bool
    order_id: Optional[str] = None
    error: Optional[str] = None


class OrderSummary(BaseModel):
    """Pedido anterior, para el historial del cliente"""
    order_id: str
    total: Decimal
    status: str = "pendiente"
    created_at: Optional[datetime] = None
    items: int = 0
