"""
Registro de pedidos confirmados

Dos implementaciones del mismo contrato:
- InMemoryOrderRecorder: numeración local PED-0001, para desarrollo y tests
- HttpOrderRecorder: envía el pedido a la API de pedidos del negocio
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Protocol

import httpx
from loguru import logger

from ..exceptions import OrderRecordError
from ..models.order import DeliveryType, OrderDraft, OrderResult, OrderSummary


class OrderRecorder(Protocol):
    """Destino de los pedidos confirmados"""

    def record_order(self, customer_id: str, draft: OrderDraft) -> OrderResult:
        ...

    def list_orders(self, customer_id: str, limit: int = 5) -> List[OrderSummary]:
        ...


def format_order_number(sequence: int) -> str:
    """1 -> PED-0001"""
    return f"PED-{sequence:04d}"


class InMemoryOrderRecorder:
    """Pedidos en memoria, numerados en orden de llegada"""

    def __init__(self):
        self._orders: Dict[str, List[OrderSummary]] = {}
        self._drafts: Dict[str, OrderDraft] = {}
        self._sequence = 0

    def record_order(self, customer_id: str, draft: OrderDraft) -> OrderResult:
        self._sequence += 1
        order_id = format_order_number(self._sequence)

        self._drafts[order_id] = draft
        self._orders.setdefault(customer_id, []).append(OrderSummary(
            order_id=order_id,
            total=draft.totals.total,
            created_at=draft.created_at,
            items=sum(line.quantity for line in draft.lines),
        ))

        logger.info(f"🧾 Pedido {order_id} registrado para {customer_id[:8]}: ${draft.totals.total}")
        return OrderResult(success=True, order_id=order_id)

    def list_orders(self, customer_id: str, limit: int = 5) -> List[OrderSummary]:
        """Últimos pedidos del cliente, del más reciente al más viejo"""
        return list(reversed(self._orders.get(customer_id, [])))[:limit]

    def get_draft(self, order_id: str) -> Optional[OrderDraft]:
        return self._drafts.get(order_id)


class HttpOrderRecorder:
    """Envía los pedidos a la API de pedidos (POST /pedidos)"""

    def __init__(self, base_url: str, api_key: Optional[str] = None, timeout: float = 15.0):
        self.base_url = base_url.rstrip("/")
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.Client(timeout=timeout, headers=headers)
        logger.info(f"✅ API de pedidos configurada: {self.base_url}")

    def _request(self, method: str, endpoint: str, **kwargs) -> Any:
        try:
            response = self._client.request(method, f"{self.base_url}{endpoint}", **kwargs)
            response.raise_for_status()
            return response.json()

        except httpx.HTTPStatusError as e:
            raise OrderRecordError(
                f"API de pedidos respondió {e.response.status_code}: {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise OrderRecordError(f"No se pudo contactar la API de pedidos: {e}") from e

    def record_order(self, customer_id: str, draft: OrderDraft) -> OrderResult:
        payload = {
            "telefono": customer_id,
            "tipo_entrega": "DELIVERY" if draft.delivery_type == DeliveryType.SHIP else "RETIRO",
            "descuento_porcentaje": str(draft.discount_pct),
            "items": [
                {
                    "producto": line.item_key,
                    "nombre": line.display_name,
                    "cantidad": line.quantity,
                    "precio_unitario": str(line.unit_price),
                }
                for line in draft.lines
            ],
            "subtotal": str(draft.totals.subtotal),
            "descuento": str(draft.totals.discount),
            "costo_envio": str(draft.totals.delivery),
            "total": str(draft.totals.total),
        }

        try:
            data = self._request("POST", "/pedidos", json=payload)
        except OrderRecordError as e:
            logger.error(f"❌ Error al registrar pedido de {customer_id[:8]}: {e}")
            return OrderResult(success=False, error=str(e))

        order_id = data.get("numero") or data.get("id")
        if not order_id:
            logger.error(f"❌ Respuesta sin número de pedido: {data}")
            return OrderResult(success=False, error="Respuesta sin número de pedido")

        logger.info(f"🧾 Pedido {order_id} registrado para {customer_id[:8]}")
        return OrderResult(success=True, order_id=str(order_id))

    def list_orders(self, customer_id: str, limit: int = 5) -> List[OrderSummary]:
        data = self._request("GET", "/pedidos", params={"telefono": customer_id, "limit": limit})
        orders = data.get("pedidos", data) if isinstance(data, dict) else data

        result = []
        for order in orders[:limit]:
            created = order.get("fecha")
            result.append(OrderSummary(
                order_id=str(order.get("numero") or order.get("id")),
                total=Decimal(str(order.get("total", 0))),
                status=order.get("estado", "pendiente"),
                created_at=datetime.fromisoformat(created) if created else None,
                items=len(order.get("items", [])),
            ))
        return result

    def close(self):
        self._client.close()
