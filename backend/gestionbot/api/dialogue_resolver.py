"""
Dialogue Resolver - decide la respuesta a cada mensaje

Evalúa una tabla de reglas en orden de prioridad y usa la primera que
aplica. Las respuestas dependen del mensaje y del estado del cliente;
nunca de qué regla respondió antes.
"""
from dataclasses import dataclass
from typing import Callable, List, Optional

from loguru import logger

from ..models.session import InboundMessage
from ..orchestrator.business_config import BusinessConfig
from ..orchestrator.checkout import CartCoordinator
from ..orchestrator.intent_classifier import IntentClassifier
from ..services.catalog_index import CatalogIndex
from ..services.order_recorder import OrderRecorder
from ..services.session_store import SessionStore
from ..services.text_normalizer import normalize
from ..services.zapi_client import Messenger
from . import intent_handlers as h
from .intent_handlers import HandlerContext


@dataclass(frozen=True)
class Rule:
    name: str
    applies: Callable[[HandlerContext], bool]
    handle: Callable[[HandlerContext], Optional[str]]


# Orden = prioridad
RULES: List[Rule] = [
    Rule("operador", h.applies_operator, h.handle_operator),
    Rule("derivado", h.applies_handoff_active, h.handle_silence),
    Rule("pedido_derivacion", h.applies_handoff_request, h.handle_handoff_request),
    Rule("datos_servicio", h.applies_custom_data, h.handle_custom_data),
    Rule("adjunto", h.applies_attachment, h.handle_silence),
    Rule("forma_entrega", h.applies_delivery_choice, h.handle_delivery_choice),
    Rule("opcion_servicio", h.applies_service_option, h.handle_service_option),
    Rule("eleccion_opcion", h.applies_candidate_selection, h.handle_candidate_selection),
    Rule("confirmacion", h.applies_pending_confirmation, h.handle_pending_confirmation),
    Rule("servicio", h.applies_custom_service, h.handle_custom_service),
    Rule("carrito", h.applies_cart_command, h.handle_cart_command),
    Rule("informacion", h.applies_informational, h.handle_informational),
    Rule("busqueda", h.applies_product_search, h.handle_product_search),
    Rule("fotos", h.applies_photo_request, h.handle_photo_request),
    Rule("fuera_de_tema", h.applies_off_topic, h.handle_silence),
    Rule("fallback", h.applies_always, h.handle_fallback),
]


class DialogueResolver:
    """Resuelve un mensaje entrante contra el estado del cliente"""

    def __init__(
        self,
        store: SessionStore,
        index: CatalogIndex,
        cart: CartCoordinator,
        classifier: IntentClassifier,
        config: BusinessConfig,
        messenger: Optional[Messenger] = None,
        recorder: Optional[OrderRecorder] = None,
        owner_phone: Optional[str] = None,
        rules: Optional[List[Rule]] = None
    ):
        self.store = store
        self.index = index
        self.cart = cart
        self.classifier = classifier
        self.config = config
        self.messenger = messenger
        self.recorder = recorder
        self.owner_phone = owner_phone
        self.rules = rules or RULES

    def resolve(self, message: InboundMessage) -> Optional[str]:
        """
        Respuesta para el mensaje, o None si el bot debe quedarse callado.

        El estado se guarda solo si el turno termina sin error y hubo
        respuesta o cambios; una excepción deja la sesión como estaba y un
        mensaje ignorado no crea sesión.
        """
        customer_id = message.customer_id
        session = self.store.get(customer_id)
        before = session.model_copy(deep=True)
        ctx = HandlerContext(
            customer_id=customer_id,
            message=message.text or "",
            text=normalize(message.text),
            session=session,
            has_attachment=message.has_attachment,
            source=message.source,
            store=self.store,
            index=self.index,
            classifier=self.classifier,
            cart=self.cart,
            config=self.config,
            messenger=self.messenger,
            recorder=self.recorder,
            owner_phone=self.owner_phone,
        )

        rule = next((r for r in self.rules if r.applies(ctx)), None)
        if rule is None:
            return None

        logger.info(f"🎯 Regla '{rule.name}' para {customer_id[:8]}")
        reply = rule.handle(ctx)

        if reply is not None or ctx.session != before:
            self.store.put(customer_id, ctx.session)
        if reply is not None:
            self.store.mark_active(customer_id, rule.name)
        return reply
