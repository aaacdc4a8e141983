"""
Conversation Engine - procesa mensajes entrantes y envía la respuesta

- Un mensaje por cliente a la vez (lock por cliente); clientes distintos
  se atienden en paralelo
- Los mensajes anteriores al arranque del bot se ignoran
- Contactos ignorados, pausa global de respuestas y límite anti-spam se
  filtran antes de resolver (los mensajes del dueño/encargado pasan siempre)
- Un error inesperado se responde con un mensaje genérico y la sesión
  queda como estaba
"""
import asyncio
import re
from datetime import datetime
from typing import Dict, Optional, Tuple

from loguru import logger

from ..models.session import InboundMessage, MessageSource
from ..orchestrator.business_config import BusinessConfig
from ..services.rate_limiter import RateLimiter
from ..services.zapi_client import Messenger
from . import respuestas as resp
from .dialogue_resolver import DialogueResolver


class ConversationEngine:
    """Punto de entrada de los mensajes ya parseados del webhook"""

    def __init__(
        self,
        resolver: DialogueResolver,
        messenger: Messenger,
        started_at: Optional[datetime] = None,
        config: Optional[BusinessConfig] = None,
        rate_limiter: Optional[RateLimiter] = None,
        owner_phone: Optional[str] = None
    ):
        """
        Args:
            resolver: Decide la respuesta de cada mensaje
            messenger: Envía las respuestas (Z-API)
            started_at: Arranque del bot; lo anterior se descarta
            config: negocio.yaml (contactos ignorados, pausa global, límite)
            rate_limiter: Anti-spam por cliente (por defecto, según config)
            owner_phone: Teléfono del dueño, exento de los filtros
        """
        self.resolver = resolver
        self.messenger = messenger
        self.started_at = started_at or datetime.now()
        self.config = config
        if rate_limiter is None and config is not None:
            rate_limiter = RateLimiter(config.rate_limit_messages, config.rate_limit_window)
        self.rate_limiter = rate_limiter
        self.owner_phone = owner_phone
        self._locks: Dict[str, asyncio.Lock] = {}
        # Mensajes en curso o esperando el lock, por cliente
        self._in_flight: Dict[str, int] = {}

    def _lock_for(self, customer_id: str) -> asyncio.Lock:
        if customer_id not in self._locks:
            self._locks[customer_id] = asyncio.Lock()
        return self._locks[customer_id]

    def _is_operator(self, message: InboundMessage) -> bool:
        if message.source == MessageSource.HUMAN:
            return True
        return self.owner_phone is not None and message.customer_id == self.owner_phone

    def _screen(self, message: InboundMessage) -> Tuple[bool, Optional[str]]:
        """
        Filtros previos a la resolución.

        Returns:
            (sigue, aviso): si el mensaje se procesa y, si no, el aviso
            opcional para el cliente
        """
        if self._is_operator(message):
            return True, None

        customer_id = message.customer_id

        if self.config is not None:
            if re.sub(r"\D", "", customer_id) in self.config.ignored_contacts:
                logger.info(f"🚫 Contacto ignorado: {customer_id[:8]}")
                return False, None
            if not self.config.auto_replies_enabled:
                logger.info(f"⏸️ Respuestas automáticas pausadas, ignorando {customer_id[:8]}")
                return False, None

        if self.rate_limiter is not None:
            limit = self.rate_limiter.check(customer_id)
            if not limit.allowed:
                return False, resp.LIMITE_MENSAJES if limit.notify else None

        return True, None

    async def handle(self, message: InboundMessage) -> Optional[str]:
        """
        Resuelve el mensaje y envía la respuesta al cliente.

        Returns:
            El texto enviado, o None si el bot no respondió
        """
        customer_id = message.customer_id

        if message.timestamp < self.started_at:
            logger.info(f"⏭️ Ignorando mensaje anterior al arranque de {customer_id[:8]}")
            return None

        allowed, notice = self._screen(message)
        if not allowed:
            if notice is None:
                return None
            await self._send(customer_id, notice)
            return notice

        self._in_flight[customer_id] = self._in_flight.get(customer_id, 0) + 1
        try:
            async with self._lock_for(customer_id):
                logger.info(f"📨 Procesando mensaje de {customer_id[:8]}: {message.text[:50]}")

                try:
                    reply = await asyncio.to_thread(self.resolver.resolve, message)
                except Exception as e:
                    logger.exception(f"❌ Error al procesar mensaje de {customer_id[:8]}: {e}")
                    reply = resp.ERROR_GENERICO

                if reply is None:
                    logger.info(f"🤐 Sin respuesta para {customer_id[:8]}")
                    return None

                await self._send(customer_id, reply)
                return reply
        finally:
            self._in_flight[customer_id] -= 1
            if self._in_flight[customer_id] <= 0:
                del self._in_flight[customer_id]

    async def _send(self, customer_id: str, text: str):
        result = await asyncio.to_thread(self.messenger.send_text, customer_id, text)
        if result.get("success"):
            logger.info(f"✅ Respuesta enviada a {customer_id[:8]}")
        else:
            logger.error(f"❌ Falla al enviar respuesta a {customer_id[:8]}: {result.get('error')}")

    def forget_idle_locks(self) -> int:
        """Descarta los locks de clientes sin mensajes en curso ni en espera"""
        idle = [
            cid for cid, lock in self._locks.items()
            if not lock.locked() and not self._in_flight.get(cid)
        ]
        for customer_id in idle:
            del self._locks[customer_id]
        if self.rate_limiter is not None:
            self.rate_limiter.sweep()
        return len(idle)
