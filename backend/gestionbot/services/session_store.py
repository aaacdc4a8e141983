"""
Almacén de sesiones por cliente

Funcionalidades:
- Sesión activa con vencimiento (30 min sin actividad)
- Carrito y sub-flujo abierto de cada cliente
- Derivación a humano con su propio vencimiento (1 hora)
- Flujo de carga de datos para servicios personalizados

Los vencimientos se evalúan al leer (expiración perezosa) y `sweep()`
limpia periódicamente lo vencido. No hay timers por cliente.
"""
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from loguru import logger

from ..models.session import Cart, SessionState


Clock = Callable[[], datetime]

SESSION_TTL = timedelta(minutes=30)
HANDOFF_TTL = timedelta(hours=1)


class SessionStore:
    """Estado conversacional en memoria, indexado por cliente"""

    def __init__(
        self,
        session_ttl: timedelta = SESSION_TTL,
        handoff_ttl: timedelta = HANDOFF_TTL,
        clock: Optional[Clock] = None
    ):
        """
        Args:
            session_ttl: Inactividad tras la cual la sesión se descarta
            handoff_ttl: Duración de la derivación a humano
            clock: Reloj inyectable (tests)
        """
        self.session_ttl = session_ttl
        self.handoff_ttl = handoff_ttl
        self._clock = clock or datetime.now
        self._sessions: Dict[str, SessionState] = {}
        self._handoffs: Dict[str, datetime] = {}

    def now(self) -> datetime:
        return self._clock()

    # ==================== Sesión ====================

    def get(self, customer_id: str) -> SessionState:
        """
        Copia del estado del cliente.

        Un cliente desconocido o con la sesión vencida recibe un estado nuevo.
        Los cambios sobre la copia no se ven hasta llamar a `put`.
        """
        state = self._sessions.get(customer_id)
        if state is None:
            return SessionState(customer_id=customer_id)

        if self._expired(state):
            logger.info(f"⌛ Sesión vencida de {customer_id[:8]}, descartando")
            self._sessions.pop(customer_id, None)
            return SessionState(customer_id=customer_id)

        return state.model_copy(deep=True)

    def put(self, customer_id: str, state: SessionState):
        """Guarda el estado (copia) del cliente"""
        stored = state.model_copy(deep=True)
        if stored.active_until is None:
            stored.active_until = self.now() + self.session_ttl
        self._sessions[customer_id] = stored

    def delete(self, customer_id: str):
        self._sessions.pop(customer_id, None)

    def mark_active(self, customer_id: str, kind: Optional[str] = None):
        """Extiende la sesión por `session_ttl` desde ahora"""
        state = self.get(customer_id)
        state.active_until = self.now() + self.session_ttl
        if kind:
            state.kind = kind
        self.put(customer_id, state)

    def is_active(self, customer_id: str) -> bool:
        state = self._sessions.get(customer_id)
        if state is None or state.active_until is None:
            return False
        return not self._expired(state)

    def get_cart(self, customer_id: str) -> Cart:
        return self.get(customer_id).cart

    def set_cart(self, customer_id: str, cart: Cart):
        state = self.get(customer_id)
        state.cart = cart.model_copy(deep=True)
        self.put(customer_id, state)

    def clear(self, customer_id: str):
        """Vacía carrito y sub-flujos. La derivación a humano se mantiene."""
        state = self.get(customer_id)
        state.reset()
        self.put(customer_id, state)
        logger.info(f"🧹 Sesión limpiada para {customer_id[:8]}")

    # ==================== Derivación a humano ====================

    def mark_human_handoff(self, customer_id: str, ttl: Optional[timedelta] = None):
        """El bot deja de responder a este cliente hasta que venza o se libere"""
        self._handoffs[customer_id] = self.now() + (ttl or self.handoff_ttl)
        logger.info(f"👤 Cliente {customer_id[:8]} derivado a atención humana")

    def is_human_handoff(self, customer_id: str) -> bool:
        until = self._handoffs.get(customer_id)
        if until is None:
            return False
        if self.now() >= until:
            self._handoffs.pop(customer_id, None)
            logger.info(f"🤖 Derivación vencida para {customer_id[:8]}, bot reactivado")
            return False
        return True

    def release_human_handoff(self, customer_id: str) -> bool:
        """Reactiva el bot. Devuelve True si había derivación activa."""
        was_active = self.is_human_handoff(customer_id)
        self._handoffs.pop(customer_id, None)
        if was_active:
            logger.info(f"🤖 Bot reactivado para {customer_id[:8]}")
        return was_active

    def handoff_until(self, customer_id: str) -> Optional[datetime]:
        if not self.is_human_handoff(customer_id):
            return None
        return self._handoffs[customer_id]

    # ==================== Servicios personalizados ====================

    def mark_custom_order_flow(self, customer_id: str, service: str):
        state = self.get(customer_id)
        state.collecting_custom_data = service
        self.put(customer_id, state)

    def is_in_custom_order_flow(self, customer_id: str) -> bool:
        return self.get(customer_id).collecting_custom_data is not None

    def clear_custom_order_flow(self, customer_id: str):
        state = self.get(customer_id)
        state.collecting_custom_data = None
        self.put(customer_id, state)

    # ==================== Mantenimiento ====================

    def sweep(self) -> int:
        """Elimina sesiones y derivaciones vencidas. Devuelve cuántas."""
        now = self.now()
        expired_sessions = [cid for cid, state in list(self._sessions.items()) if self._expired(state, now)]
        expired_handoffs = [cid for cid, until in list(self._handoffs.items()) if now >= until]

        for customer_id in expired_sessions:
            self._sessions.pop(customer_id, None)
        for customer_id in expired_handoffs:
            self._handoffs.pop(customer_id, None)

        removed = len(expired_sessions) + len(expired_handoffs)
        if removed:
            logger.info(
                f"🧹 Limpieza: {len(expired_sessions)} sesiones y "
                f"{len(expired_handoffs)} derivaciones vencidas"
            )
        return removed

    def stats(self) -> Dict[str, int]:
        now = self.now()
        live = [state for state in self._sessions.values() if not self._expired(state, now)]
        return {
            "sessions": len(live),
            "carts_with_items": sum(1 for state in live if not state.cart.is_empty),
            "custom_data_flows": sum(1 for state in live if state.collecting_custom_data),
            "human_handoffs": sum(1 for until in self._handoffs.values() if now < until),
        }

    def _expired(self, state: SessionState, now: Optional[datetime] = None) -> bool:
        if state.active_until is None:
            return False
        return (now or self.now()) >= state.active_until
