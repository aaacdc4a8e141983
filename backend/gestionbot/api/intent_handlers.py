"""
Intent Handlers - condición y respuesta de cada regla del diálogo.

Each rule is a pair:
- applies(ctx) -> bool: whether the rule takes the message
- handle(ctx) -> Optional[str]: the reply (None means stay silent)

Handlers mutate ctx.session (a copy); the resolver persists it once the
turn completes. The ordered rule table lives in dialogue_resolver.py.
"""
import re
from dataclasses import dataclass, field
from typing import Any, List, Optional

from loguru import logger

from ..exceptions import OrderRecordError
from ..models.catalog import CatalogItem
from ..models.order import DeliveryType
from ..models.session import (
    Cart,
    CandidateSelection,
    CartLine,
    CustomServiceOption,
    DeliveryChoice,
    MessageSource,
    PendingConfirmation,
    SessionState,
)
from ..orchestrator import checkout
from ..orchestrator.custom_services import (
    TEMPLATES,
    detect_service,
    find_service_item,
    looks_like_service_data,
)
from ..services.text_normalizer import clean_product_query, extract_number, extract_quantity
from . import respuestas as resp


# ==================== Shared Context ====================

@dataclass
class HandlerContext:
    """Context passed to every rule"""
    customer_id: str
    message: str
    text: str
    session: SessionState
    has_attachment: bool = False
    source: MessageSource = MessageSource.CUSTOMER
    # Service instances (injected, not imported)
    store: Any = None
    index: Any = None
    classifier: Any = None
    cart: Any = None
    config: Any = None
    messenger: Any = None
    recorder: Any = None
    owner_phone: Optional[str] = None
    # Product search, computed once per turn
    _matches: Optional[List[CatalogItem]] = field(default=None, repr=False)
    _query: Optional[str] = field(default=None, repr=False)

    @property
    def product_query(self) -> str:
        if self._query is None:
            self._query = clean_product_query(self.message)
        return self._query

    @property
    def matches(self) -> List[CatalogItem]:
        if self._matches is None:
            query = self.product_query
            self._matches = self.index.search_best(query, extract_quantity(self.message)) if query else []
        return self._matches


def _line_for(item: CatalogItem, quantity: int) -> CartLine:
    return CartLine(
        item_key=item.key,
        display_name=item.display_name,
        unit_price=item.unit_price,
        price_from=item.is_price_from,
        quantity=quantity,
    )


def _notify_owner(ctx: HandlerContext, text: str):
    if not ctx.owner_phone or ctx.messenger is None:
        logger.warning("⚠️ OWNER_PHONE no configurado, notificación no enviada")
        return
    result = ctx.messenger.send_text(ctx.owner_phone, text)
    if not result.get("success"):
        logger.error(f"❌ No se pudo notificar al dueño: {result.get('error')}")


# ==================== 0. Operator commands ====================

_OPERATOR_COMMAND = re.compile(r"^!bot\s+(activar|pausar|estado)(?:\s+\+?(\d{8,15}))?$")


def applies_operator(ctx: HandlerContext) -> bool:
    if ctx.source == MessageSource.HUMAN:
        return True
    is_owner = ctx.owner_phone is not None and ctx.customer_id == ctx.owner_phone
    return is_owner and ctx.message.strip().lower().startswith("!bot")


def handle_operator(ctx: HandlerContext) -> Optional[str]:
    """
    Mensajes del dueño/encargado.

    Escritos en el chat del cliente: "!bot activar|pausar|estado" actúan
    sobre ese cliente; cualquier otro texto significa que una persona tomó
    la conversación y el bot se pausa. Desde el teléfono del dueño los
    comandos llevan el número del cliente.
    """
    command = _OPERATOR_COMMAND.match(ctx.message.strip().lower())

    if ctx.source == MessageSource.HUMAN:
        if command is None:
            ctx.store.mark_human_handoff(ctx.customer_id)
            return None
        target = ctx.customer_id
    else:
        if command is None or command.group(2) is None:
            return "Uso: !bot activar|pausar|estado <número del cliente>"
        target = command.group(2)

    action = command.group(1)
    logger.info(f"🛠️ Comando de operador '{action}' para {target[:8]}")
    reply = _run_operator_command(ctx, action, target)

    # En el chat del cliente la respuesta va al dueño, nunca al cliente
    if ctx.source == MessageSource.HUMAN:
        _notify_owner(ctx, resp.aviso_comando_operador(ctx.customer_id, reply))
        return None
    return reply


def _run_operator_command(ctx: HandlerContext, action: str, target: str) -> str:
    if action == "activar":
        ctx.store.release_human_handoff(target)
        return resp.BOT_REACTIVADO
    if action == "pausar":
        ctx.store.mark_human_handoff(target)
        return resp.BOT_PAUSADO

    session = ctx.session if target == ctx.customer_id else ctx.store.get(target)
    return resp.estado_sesion(
        activa=ctx.store.is_active(target),
        derivado=ctx.store.is_human_handoff(target),
        cart=session.cart,
        flujo=session.flow.kind if session.flow else None,
    )


# ==================== 1-2. Human handoff ====================

def applies_handoff_active(ctx: HandlerContext) -> bool:
    return ctx.store.is_human_handoff(ctx.customer_id)


def handle_silence(ctx: HandlerContext) -> Optional[str]:
    return None


def applies_handoff_request(ctx: HandlerContext) -> bool:
    return ctx.classifier.is_handoff_request(ctx.message)


def handle_handoff_request(ctx: HandlerContext) -> str:
    """El carrito se conserva para cuando el bot vuelva a atender"""
    ctx.session.flow = None
    ctx.store.mark_human_handoff(ctx.customer_id)
    _notify_owner(ctx, resp.notificacion_derivacion(ctx.customer_id, ctx.message))
    return resp.DERIVADO_A_HUMANO


# ==================== 3. Custom service data ====================

def applies_custom_data(ctx: HandlerContext) -> bool:
    service = ctx.session.collecting_custom_data
    if not service:
        return False
    return ctx.has_attachment or looks_like_service_data(service, ctx.message)


def handle_custom_data(ctx: HandlerContext) -> str:
    template = TEMPLATES[ctx.session.collecting_custom_data]
    datos = ctx.message.strip() or None
    if ctx.has_attachment and datos:
        datos = f"(adjunto) {datos}"

    logger.info(f"📄 Datos de {template.tag} recibidos de {ctx.customer_id[:8]}")
    _notify_owner(ctx, resp.notificacion_servicio(template, ctx.customer_id, datos))
    ctx.session.collecting_custom_data = None
    return resp.datos_servicio_recibidos(template)


def applies_attachment(ctx: HandlerContext) -> bool:
    return ctx.has_attachment


# ==================== 4. Open binary choices ====================

_PICKUP = re.compile(r"^(1|retiro|retirar|retiro en el local|paso a buscar)$")
_SHIP = re.compile(r"^(2|envio|delivery|envio a domicilio|a domicilio)$")


def applies_delivery_choice(ctx: HandlerContext) -> bool:
    if not isinstance(ctx.session.flow, DeliveryChoice):
        return False
    return bool(_PICKUP.match(ctx.text) or _SHIP.match(ctx.text)) or ctx.text.isdigit()


def handle_delivery_choice(ctx: HandlerContext) -> str:
    if not (_PICKUP.match(ctx.text) or _SHIP.match(ctx.text)):
        return resp.OPCION_ENTREGA_INVALIDA

    delivery_type = DeliveryType.PICKUP if _PICKUP.match(ctx.text) else DeliveryType.SHIP
    result = ctx.cart.finalize(ctx.session, delivery_type)

    if result.success:
        return resp.pedido_confirmado(result.order_id, result.draft.lines, result.draft.totals, delivery_type)
    if result.problems:
        return resp.problemas_stock(result.problems)
    return resp.PEDIDO_ERROR


def applies_service_option(ctx: HandlerContext) -> bool:
    return isinstance(ctx.session.flow, CustomServiceOption) and ctx.text.isdigit()


def handle_service_option(ctx: HandlerContext) -> str:
    if ctx.text not in ("1", "2", "3"):
        return resp.OPCION_SERVICIO_INVALIDA

    template = TEMPLATES[ctx.session.flow.service]
    ctx.session.flow = None

    if ctx.text == "1":
        ctx.session.collecting_custom_data = template.tag
        return resp.servicio_enviar_texto(template)
    if ctx.text == "2":
        ctx.session.collecting_custom_data = template.tag
        return resp.SERVICIO_ENVIAR_FOTOS

    _notify_owner(ctx, resp.notificacion_traer_al_local(template, ctx.customer_id))
    return resp.servicio_traer_al_local(ctx.config)


# ==================== 5. Candidate list ====================

def applies_candidate_selection(ctx: HandlerContext) -> bool:
    if ctx.session.candidates is None:
        return False
    return ctx.classifier.extract_ordinal(ctx.message) is not None or ctx.classifier.is_cancel_candidates(ctx.message)


def handle_candidate_selection(ctx: HandlerContext) -> str:
    candidates: CandidateSelection = ctx.session.candidates
    number = ctx.classifier.extract_ordinal(ctx.message)

    if number is None:
        ctx.session.flow = None
        return resp.OPCIONES_CANCELADAS

    if number < 1 or number > len(candidates.candidates):
        return resp.numero_invalido(len(candidates.candidates))

    item = ctx.index.find_by_key(candidates.candidates[number - 1])
    if item is None:
        ctx.session.flow = None
        return resp.producto_no_encontrado("")

    logger.info(f"✅ {ctx.customer_id[:8]} eligió opción {number}: {item.display_name}")
    ctx.session.flow = PendingConfirmation(lines=[_line_for(item, candidates.quantity)])
    ctx.session.last_shown = [item.key]
    return resp.producto_unico(item, candidates.quantity)


# ==================== 6. Pending confirmation ====================

def applies_pending_confirmation(ctx: HandlerContext) -> bool:
    if ctx.session.pending is None:
        return False
    return ctx.classifier.is_yes(ctx.message) or ctx.classifier.is_no(ctx.message)


def handle_pending_confirmation(ctx: HandlerContext) -> str:
    if ctx.classifier.is_yes(ctx.message):
        result = ctx.cart.add_pending_to_cart(ctx.session)
        return resp.agregado_al_carrito(result.added, result.rejected, ctx.session.cart)

    ctx.session.flow = None
    return resp.SELECCION_CANCELADA


# ==================== 7. Custom services ====================

def applies_custom_service(ctx: HandlerContext) -> bool:
    return detect_service(ctx.message) is not None


def handle_custom_service(ctx: HandlerContext) -> Optional[str]:
    tag = detect_service(ctx.message)
    ctx.session.flow = None

    item = find_service_item(ctx.index, tag)
    if item is None:
        return None

    ctx.session.flow = CustomServiceOption(service=tag)
    return resp.presupuesto_servicio(TEMPLATES[tag], item)


# ==================== 8. Cart commands ====================

_CART_INTENTS = ["vaciar_carrito", "quitar_item", "ver_carrito"]


def applies_cart_command(ctx: HandlerContext) -> bool:
    return (
        ctx.classifier.first_match(_CART_INTENTS, ctx.message) is not None
        or ctx.classifier.is_confirm_order(ctx.message)
    )


def handle_cart_command(ctx: HandlerContext) -> str:
    session = ctx.session
    if session.cart.is_empty:
        return resp.CARRITO_VACIO

    intent = ctx.classifier.first_match(_CART_INTENTS, ctx.message)

    if intent == "vaciar_carrito":
        session.cart = Cart()
        session.flow = None
        return resp.CARRITO_VACIADO

    if intent == "quitar_item":
        position = extract_number(ctx.message)
        removed = ctx.cart.remove_by_ordinal(session, position or 0)
        if removed is None:
            return resp.numero_invalido(len(session.cart.items))
        return resp.item_quitado(removed, session.cart)

    if intent == "ver_carrito":
        return resp.ver_carrito(session.cart)

    result = ctx.cart.confirm(session)
    if result.status == checkout.CONFIRM_STOCK_PROBLEMS:
        return resp.problemas_stock(result.problems)
    return resp.menu_entrega(result.subtotal, ctx.cart.delivery_fee)


# ==================== 9. Informational ====================

_INFO_INTENTS = ["saludo", "historial", "catalogo", "horario", "ubicacion", "pago", "contacto"]


def _info_intent(ctx: HandlerContext) -> Optional[str]:
    intent = ctx.classifier.first_match(_INFO_INTENTS, ctx.message)
    if intent:
        return intent
    if ctx.classifier.matches("consulta_stock", ctx.message) and not ctx.product_query:
        return "consulta_stock"
    return None


def applies_informational(ctx: HandlerContext) -> bool:
    return _info_intent(ctx) is not None


def handle_informational(ctx: HandlerContext) -> str:
    intent = _info_intent(ctx)
    config = ctx.config

    if intent == "saludo":
        return resp.saludo(config)
    if intent == "horario":
        return resp.horario(config)
    if intent == "ubicacion":
        return resp.ubicacion(config)
    if intent == "pago":
        return resp.medios_pago(config)
    if intent == "contacto":
        return resp.contacto(config)
    if intent == "catalogo":
        return resp.catalogo(_catalog_summary(ctx))
    if intent == "historial":
        return _order_history(ctx)
    return resp.STOCK_GENERICO


def _catalog_summary(ctx: HandlerContext) -> list:
    summary = []
    for category in ctx.index.categories():
        subcategories = [
            (sub, len(ctx.index.find_by_subcategory(category, sub)))
            for sub in ctx.index.subcategories(category)
        ]
        summary.append((category, subcategories))
    return summary


def _order_history(ctx: HandlerContext) -> str:
    if ctx.recorder is None:
        return resp.HISTORIAL_ERROR
    try:
        orders = ctx.recorder.list_orders(ctx.customer_id)
    except OrderRecordError as e:
        logger.error(f"❌ Error al consultar historial de {ctx.customer_id[:8]}: {e}")
        return resp.HISTORIAL_ERROR
    return resp.historial(orders)


# ==================== 10. Product search ====================

def applies_product_search(ctx: HandlerContext) -> bool:
    if not ctx.product_query:
        return False

    wants_photo = ctx.classifier.matches("foto", ctx.message)
    if wants_photo and ctx.session.last_shown:
        return False
    if ctx.matches:
        return True
    return ctx.classifier.matches("intencion_compra", ctx.message) and not wants_photo


def handle_product_search(ctx: HandlerContext) -> str:
    matches = ctx.matches
    quantity = extract_quantity(ctx.message)

    if not matches:
        logger.info(f"🔎 Sin resultados para '{ctx.product_query}'")
        return resp.producto_no_encontrado(ctx.product_query)

    if len(matches) == 1:
        item = matches[0]
        ctx.session.flow = PendingConfirmation(lines=[_line_for(item, quantity)])
        ctx.session.last_shown = [item.key]
        return resp.producto_unico(item, quantity)

    shown = matches[:ctx.config.max_candidates]
    ctx.session.flow = CandidateSelection(
        candidates=[item.key for item in shown],
        quantity=quantity,
        total_matches=len(matches),
    )
    ctx.session.last_shown = [item.key for item in shown]
    logger.info(f"📋 {len(matches)} opciones para '{ctx.product_query}' ({ctx.customer_id[:8]})")
    return resp.lista_opciones(shown, len(matches))


# ==================== 11. Photos ====================

def applies_photo_request(ctx: HandlerContext) -> bool:
    return ctx.classifier.matches("foto", ctx.message)


def handle_photo_request(ctx: HandlerContext) -> str:
    items = [ctx.index.find_by_key(key) for key in ctx.session.last_shown]
    items = [item for item in items if item is not None]
    if not items:
        return resp.SIN_PRODUCTO_PARA_FOTOS

    with_images = [item for item in items if item.images]
    if not with_images or ctx.messenger is None:
        return resp.SIN_FOTOS

    sent = 0
    limit = ctx.config.max_photos
    for item in with_images:
        for image in item.images:
            if sent >= limit:
                break
            result = ctx.messenger.send_media(ctx.customer_id, image.url, resp.leyenda_foto(item))
            if result.get("success"):
                sent += 1
            else:
                logger.error(f"❌ Error al enviar foto de {item.display_name}: {result.get('error')}")

    if sent == 0:
        return resp.FOTOS_ERROR
    return resp.fotos_enviadas(sent)


# ==================== 12-13. Off-topic and fallback ====================

def applies_off_topic(ctx: HandlerContext) -> bool:
    return ctx.classifier.matches("fuera_de_tema", ctx.message)


def applies_always(ctx: HandlerContext) -> bool:
    return True


def handle_fallback(ctx: HandlerContext) -> Optional[str]:
    """Menu inside a live conversation or when the message looks business-related"""
    if ctx.store.is_active(ctx.customer_id) or ctx.classifier.matches("negocio", ctx.message):
        return resp.menu_ayuda()
    return None
