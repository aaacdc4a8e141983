"""
Límite de mensajes por cliente (anti-spam)

Ventana deslizante en memoria: cada cliente puede mandar `max_messages`
mensajes cada `window`. Al pasarse se le avisa una sola vez y los
siguientes mensajes de la ventana se ignoran en silencio.
"""
from collections import defaultdict, deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Deque, Dict, Optional, Set

from loguru import logger


Clock = Callable[[], datetime]

MAX_MESSAGES = 10
WINDOW = timedelta(seconds=60)


@dataclass
class RateLimitResult:
    allowed: bool
    # True solo en el primer mensaje bloqueado de la ventana
    notify: bool = False
    remaining: int = 0


class RateLimiter:
    """Cuenta mensajes por cliente dentro de una ventana deslizante"""

    def __init__(
        self,
        max_messages: int = MAX_MESSAGES,
        window: timedelta = WINDOW,
        clock: Optional[Clock] = None
    ):
        self.max_messages = max_messages
        self.window = window
        self._clock = clock or datetime.now
        self._buckets: Dict[str, Deque[datetime]] = defaultdict(deque)
        self._notified: Set[str] = set()

    def check(self, customer_id: str) -> RateLimitResult:
        """Registra un mensaje del cliente y dice si se puede procesar"""
        if self.max_messages <= 0:
            return RateLimitResult(allowed=True)

        now = self._clock()
        bucket = self._buckets[customer_id]
        while bucket and now - bucket[0] >= self.window:
            bucket.popleft()

        if len(bucket) >= self.max_messages:
            notify = customer_id not in self._notified
            self._notified.add(customer_id)
            logger.warning(f"🚫 Límite de mensajes superado por {customer_id[:8]}")
            return RateLimitResult(allowed=False, notify=notify)

        self._notified.discard(customer_id)
        bucket.append(now)
        remaining = self.max_messages - len(bucket)
        if remaining <= 2:
            logger.warning(f"⚠️ {customer_id[:8]} cerca del límite de mensajes ({remaining} restantes)")
        return RateLimitResult(allowed=True, remaining=remaining)

    def sweep(self) -> int:
        """Descarta las ventanas sin mensajes recientes. Devuelve cuántas."""
        now = self._clock()
        stale = [
            cid for cid, bucket in list(self._buckets.items())
            if not bucket or now - bucket[-1] >= self.window
        ]
        for customer_id in stale:
            self._buckets.pop(customer_id, None)
            self._notified.discard(customer_id)
        return len(stale)
