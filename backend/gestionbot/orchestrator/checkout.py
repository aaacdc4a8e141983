"""
Carrito y cierre del pedido

CartCoordinator opera sobre la copia de la sesión que maneja el turno;
el resolver la guarda al terminar. Los precios y el stock se vuelven a
consultar en el índice vigente en cada paso.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from loguru import logger

from ..models.order import DeliveryType, OrderDraft, OrderTotals
from ..models.session import CartLine, DeliveryChoice, SessionState
from ..services.catalog_index import CatalogIndex
from ..services.order_recorder import OrderRecorder


CONFIRM_EMPTY = "empty"
CONFIRM_STOCK_PROBLEMS = "stock_problems"
CONFIRM_READY = "ready"


@dataclass
class AddResult:
    added: List[CartLine] = field(default_factory=list)
    rejected: List[CartLine] = field(default_factory=list)


@dataclass
class ConfirmResult:
    status: str
    problems: List[CartLine] = field(default_factory=list)
    subtotal: Decimal = Decimal("0")


@dataclass
class FinalizeResult:
    success: bool
    order_id: Optional[str] = None
    draft: Optional[OrderDraft] = None
    problems: List[CartLine] = field(default_factory=list)
    error: Optional[str] = None


def compute_totals(
    lines: List[CartLine],
    delivery_type: DeliveryType,
    discount_pct: Decimal = Decimal("0"),
    delivery_fee: Decimal = Decimal("500")
) -> OrderTotals:
    """
    Totales del pedido.

    subtotal = Σ precio × cantidad
    descuento = subtotal × % / 100
    envío = costo fijo si es envío a domicilio
    total = subtotal - descuento + envío
    """
    subtotal = sum((line.unit_price * line.quantity for line in lines), Decimal("0"))
    discount = subtotal * Decimal(discount_pct) / Decimal("100")
    delivery = Decimal(delivery_fee) if delivery_type == DeliveryType.SHIP else Decimal("0")
    return OrderTotals(
        subtotal=subtotal,
        discount=discount,
        delivery=delivery,
        total=subtotal - discount + delivery,
    )


class CartCoordinator:
    """Operaciones del carrito y cierre del pedido"""

    def __init__(
        self,
        index: CatalogIndex,
        recorder: OrderRecorder,
        delivery_fee: Decimal = Decimal("500"),
        discount_pct: Decimal = Decimal("0")
    ):
        self.index = index
        self.recorder = recorder
        self.delivery_fee = delivery_fee
        self.discount_pct = discount_pct

    def add_pending_to_cart(self, session: SessionState) -> AddResult:
        """
        Pasa la selección pendiente al carrito.

        Un producto que ya está en el carrito suma cantidad. Los que ya no
        tienen stock se informan en `rejected` y no se agregan.
        """
        result = AddResult()
        pending = session.pending
        if pending is None:
            return result

        for line in pending.lines:
            item = self.index.find_by_key(line.item_key)
            if item is None or not item.in_stock:
                result.rejected.append(line)
                continue

            existing = next((l for l in session.cart.items if l.item_key == line.item_key), None)
            if existing:
                existing.quantity += line.quantity
                existing.unit_price = item.unit_price
            else:
                session.cart.items.append(line.model_copy(update={"unit_price": item.unit_price}))
            result.added.append(line)

        session.flow = None
        logger.info(
            f"🛒 Carrito de {session.customer_id[:8]}: +{len(result.added)} "
            f"(rechazados {len(result.rejected)}), {len(session.cart.items)} líneas"
        )
        return result

    def remove_by_ordinal(self, session: SessionState, position: int) -> Optional[CartLine]:
        """Quita la línea N (1-based). None si el número no existe."""
        if position < 1 or position > len(session.cart.items):
            return None
        removed = session.cart.items.pop(position - 1)
        logger.info(f"🗑️ {removed.display_name} quitado del carrito de {session.customer_id[:8]}")
        return removed

    def validate_stock(self, session: SessionState) -> List[CartLine]:
        """Líneas que ya no existen en el catálogo o quedaron sin stock"""
        problems = []
        for line in session.cart.items:
            item = self.index.find_by_key(line.item_key)
            if item is None or not item.in_stock:
                problems.append(line)
        return problems

    def confirm(self, session: SessionState) -> ConfirmResult:
        """Revalida el carrito y, si está todo bien, pide la forma de entrega"""
        if session.cart.is_empty:
            return ConfirmResult(status=CONFIRM_EMPTY)

        problems = self.validate_stock(session)
        if problems:
            logger.warning(f"⚠️ {len(problems)} productos sin stock al confirmar ({session.customer_id[:8]})")
            return ConfirmResult(status=CONFIRM_STOCK_PROBLEMS, problems=problems)

        session.flow = DeliveryChoice()
        return ConfirmResult(status=CONFIRM_READY, subtotal=session.cart.subtotal)

    def build_draft(self, session: SessionState, delivery_type: DeliveryType) -> OrderDraft:
        lines = [line.model_copy() for line in session.cart.items]
        return OrderDraft(
            customer_id=session.customer_id,
            lines=lines,
            delivery_type=delivery_type,
            discount_pct=self.discount_pct,
            totals=compute_totals(lines, delivery_type, self.discount_pct, self.delivery_fee),
        )

    def finalize(self, session: SessionState, delivery_type: DeliveryType) -> FinalizeResult:
        """
        Registra el pedido.

        Solo si el registro sale bien se vacía la sesión. Si falla, el
        carrito y la elección de entrega quedan como estaban para reintentar.
        """
        problems = self.validate_stock(session)
        if problems:
            session.flow = None
            return FinalizeResult(success=False, problems=problems)

        draft = self.build_draft(session, delivery_type)

        try:
            result = self.recorder.record_order(session.customer_id, draft)
        except Exception as e:
            logger.exception(f"❌ Error al registrar pedido de {session.customer_id[:8]}: {e}")
            return FinalizeResult(success=False, draft=draft, error=str(e))

        if not result.success:
            logger.error(f"❌ Pedido de {session.customer_id[:8]} no registrado: {result.error}")
            return FinalizeResult(success=False, draft=draft, error=result.error)

        session.reset()
        logger.info(f"✅ Pedido {result.order_id} confirmado para {session.customer_id[:8]}")
        return FinalizeResult(success=True, order_id=result.order_id, draft=draft)
