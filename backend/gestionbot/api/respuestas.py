"""
Respuestas del bot (plantillas y formateadores)
"""
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional

from ..models.catalog import CatalogItem
from ..models.order import DeliveryType, OrderSummary, OrderTotals
from ..models.session import Cart, CartLine
from ..orchestrator.business_config import BusinessConfig
from ..orchestrator.custom_services import ServiceTemplate


SEPARADOR = "━━━━━━━━━━━━━━━━━━━━━"


def formatear_precio(amount: Decimal) -> str:
    """Decimal('1500') -> '$1.500'; Decimal('1500.5') -> '$1.500,50'"""
    rounded = Decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    entero = int(rounded)
    miles = f"{entero:,}".replace(",", ".")
    centavos = int((rounded - entero) * 100)
    if centavos:
        return f"${miles},{centavos:02d}"
    return f"${miles}"


def _precio_item(item: CatalogItem) -> str:
    if item.is_price_from:
        return f"desde {formatear_precio(item.unit_price)}"
    return formatear_precio(item.unit_price)


def _precio_linea(line: CartLine) -> str:
    prefijo = "desde " if line.price_from else ""
    return f"{prefijo}{formatear_precio(line.unit_price)}"


def _fotos(item: CatalogItem) -> str:
    n = len(item.images)
    return f"{n} foto{'s' if n > 1 else ''}"


# ==================== Información del negocio ====================

def saludo(config: BusinessConfig) -> str:
    return (
        f"¡Hola! 👋 Bienvenido/a a *{config.business_name}*.\n\n"
        "Podés pedirme productos escribiendo por ejemplo:\n"
        "• \"Quiero 2 cuadernos A4\"\n"
        "• \"¿Tenés globos?\"\n\n"
        "¿En qué te puedo ayudar?"
    )


def horario(config: BusinessConfig) -> str:
    return f"🕐 *Horario de atención*\n\n{config.get_config('negocio.horario')}"


def ubicacion(config: BusinessConfig) -> str:
    texto = f"📍 *Dirección*\n\n{config.get_config('negocio.direccion')}"
    return texto + f"\n\n🕐 {config.get_config('negocio.horario')}"


def medios_pago(config: BusinessConfig) -> str:
    medios = config.get_config("negocio.medios_pago", []) or []
    lineas = "\n".join(f"• {medio}" for medio in medios)
    return f"💳 *Medios de pago*\n\n{lineas}"


def contacto(config: BusinessConfig) -> str:
    telefono = config.get_config("negocio.telefono")
    texto = "📞 *Contacto*\n\nEstás hablando con nosotros por este WhatsApp."
    if telefono:
        texto += f"\nTambién podés llamarnos al {telefono}."
    return texto


def catalogo(categorias: List[tuple]) -> str:
    """categorias: [(nombre, [(subcategoria, cantidad), ...]), ...]"""
    if not categorias:
        return "📋 Todavía no tenemos productos cargados. ¡Consultanos por este medio!"

    texto = "📋 *Nuestros productos*\n\n"
    for nombre, subcategorias in categorias:
        texto += f"*{nombre.replace('_', ' ').title()}*\n"
        for subcategoria, cantidad in subcategorias:
            texto += f"  • {subcategoria.replace('_', ' ').title()} ({cantidad})\n"
        texto += "\n"
    texto += "Escribí el producto que buscás y te paso precio y stock."
    return texto


STOCK_GENERICO = (
    "📦 Decime qué producto buscás y te confirmo si hay stock.\n\n"
    "Por ejemplo: \"¿tenés cuadernos A4?\""
)


def menu_ayuda() -> str:
    return (
        "🤔 No te entendí bien.\n\n"
        "Podés preguntarme por:\n"
        "• Productos y precios (\"¿cuánto sale el cuaderno A4?\")\n"
        "• Tu carrito (\"ver carrito\")\n"
        "• Horario, dirección y medios de pago\n"
        "• Tus pedidos anteriores (\"mis pedidos\")\n"
        "• Hablar con una persona (\"quiero hablar con el encargado\")"
    )


ERROR_GENERICO = "😔 Ocurrió un error procesando tu mensaje. Por favor, intentá de nuevo en un momento."

LIMITE_MENSAJES = (
    "⏳ Estás enviando muchos mensajes seguidos.\n\n"
    "Esperá un minuto y volvé a escribirme, así te respondo bien. 🙏"
)


# ==================== Productos ====================

def producto_no_encontrado(consulta: str) -> str:
    buscado = f" \"{consulta}\"" if consulta else ""
    return (
        f"🤔 No encontré productos{buscado}.\n\n"
        "Probá escribiéndolo de otra forma, por ejemplo:\n"
        "\"Quiero 2 cuadernos A4\"\n"
        "\"Dame 5 lapiceras\"\n"
        "\"Necesito 3 globos\""
    )


def producto_unico(item: CatalogItem, cantidad: int) -> str:
    stock = "✅" if item.in_stock else "❌"
    texto = f"✅ *Encontré:*\n\n{stock} *{item.display_name}*\n"
    texto += f"💰 Precio: {_precio_item(item)}\n"
    if cantidad > 1:
        texto += f"📊 Cantidad: {cantidad}\n"
        texto += f"💵 Total: {formatear_precio(item.unit_price * cantidad)}\n"
    if item.images:
        texto += f"📸 Tiene {_fotos(item)}\n"
    if not item.in_stock:
        texto += "\n⚠️ *SIN STOCK actualmente*\n"

    texto += f"\n{SEPARADOR}\n\n"
    texto += "💬 *¿Qué querés hacer?*\n"
    texto += "• Escribí \"si\" para agregarlo al carrito\n"
    texto += "• Escribí \"foto\" para ver imágenes\n"
    texto += "• Preguntá por más productos\n"
    texto += "• O \"ver carrito\" para revisar tu pedido"
    return texto


def lista_opciones(items: List[CatalogItem], total: int) -> str:
    texto = f"✅ *Tenemos {total} opciones:*\n\n"
    for numero, item in enumerate(items, start=1):
        stock = "✅" if item.in_stock else "❌"
        texto += f"{numero}. {stock} *{item.display_name}*\n"
        texto += f"   💰 {_precio_item(item)}{'' if item.in_stock else ' (SIN STOCK)'}\n"
        if item.images:
            texto += f"   📸 {_fotos(item)}\n"
        texto += "\n"

    if total > len(items):
        texto += f"... y {total - len(items)} más\n\n"

    texto += f"{SEPARADOR}\n\n"
    texto += "💬 *¿Qué querés hacer?*\n"
    texto += "• Escribí el número para elegirlo\n"
    texto += "• Preguntá por más productos\n"
    texto += "• Escribí \"foto\" para ver imágenes\n"
    texto += "• O \"ver carrito\" para revisar tu pedido"
    return texto


OPCIONES_CANCELADAS = "❌ Opciones canceladas.\n\n¿En qué más te puedo ayudar?"
SELECCION_CANCELADA = "👌 Listo, no lo agrego.\n\n¿Buscás algún otro producto?"


def agregado_al_carrito(agregados: List[CartLine], rechazados: List[CartLine], cart: Cart) -> str:
    texto = ""
    if agregados:
        nombres = "\n".join(f"• {l.quantity} x {l.display_name}" for l in agregados)
        texto += f"🛒 *Agregado al carrito:*\n{nombres}\n\n"
    if rechazados:
        nombres = "\n".join(f"• {l.display_name}" for l in rechazados)
        texto += f"⚠️ *Sin stock, no se agregó:*\n{nombres}\n\n"

    if not cart.is_empty:
        texto += f"💵 Subtotal: {formatear_precio(cart.subtotal)}\n\n"
        texto += "Seguí pidiendo, escribí \"ver carrito\" o \"confirmar\" para cerrar el pedido."
    else:
        texto += "¿Buscás algún otro producto?"
    return texto


# ==================== Carrito ====================

CARRITO_VACIO = (
    "🛒 Tu carrito está vacío.\n\n"
    "Escribí el producto que buscás, por ejemplo \"quiero 2 cuadernos\"."
)

CARRITO_VACIADO = "🗑️ Vacié tu carrito.\n\n¿Empezamos de nuevo? Decime qué necesitás."


def ver_carrito(cart: Cart) -> str:
    texto = "🛒 *Tu carrito:*\n\n"
    for numero, line in enumerate(cart.items, start=1):
        texto += f"{numero}. {line.display_name}\n"
        texto += f"   {line.quantity} x {_precio_linea(line)} = {formatear_precio(line.line_total)}\n"
    texto += f"\n💵 *Subtotal: {formatear_precio(cart.subtotal)}*\n\n"
    texto += "• \"confirmar\" para cerrar el pedido\n"
    texto += "• \"quitar N\" para sacar un producto\n"
    texto += "• \"vaciar\" para empezar de nuevo"
    return texto


def item_quitado(line: CartLine, cart: Cart) -> str:
    texto = f"🗑️ Quité *{line.display_name}* del carrito.\n\n"
    if cart.is_empty:
        return texto + "Tu carrito quedó vacío."
    return texto + ver_carrito(cart)


def numero_invalido(maximo: int) -> str:
    return f"⚠️ Ese número no está en la lista. Elegí un número del 1 al {maximo}."


# ==================== Cierre del pedido ====================

def problemas_stock(lineas: List[CartLine]) -> str:
    nombres = "\n".join(f"• {l.display_name}" for l in lineas)
    return (
        "⚠️ *Algunos productos ya no tienen stock:*\n"
        f"{nombres}\n\n"
        "Quitalos con \"quitar N\" (mirá el número en \"ver carrito\") y volvé a confirmar."
    )


def menu_entrega(subtotal: Decimal, costo_envio: Decimal) -> str:
    return (
        f"📦 *Subtotal: {formatear_precio(subtotal)}*\n\n"
        "¿Cómo querés recibir tu pedido?\n\n"
        "1️⃣ Retiro en el local (sin cargo)\n"
        f"2️⃣ Envío a domicilio (+{formatear_precio(costo_envio)})\n\n"
        "Escribí el número de tu opción."
    )


OPCION_ENTREGA_INVALIDA = "⚠️ Escribí *1* para retirar en el local o *2* para envío a domicilio."


def pedido_confirmado(order_id: str, lineas: List[CartLine], totals: OrderTotals, entrega: DeliveryType) -> str:
    texto = f"✅ *¡Pedido confirmado!*\n\n🧾 Número: *{order_id}*\n\n"
    for line in lineas:
        texto += f"• {line.quantity} x {line.display_name} = {formatear_precio(line.line_total)}\n"
    texto += f"\nSubtotal: {formatear_precio(totals.subtotal)}\n"
    if totals.discount:
        texto += f"Descuento: -{formatear_precio(totals.discount)}\n"
    if entrega == DeliveryType.SHIP:
        texto += f"Envío: {formatear_precio(totals.delivery)}\n"
    texto += f"💵 *Total: {formatear_precio(totals.total)}*\n\n"
    if entrega == DeliveryType.SHIP:
        texto += "🚚 Te vamos a escribir para coordinar la dirección de entrega."
    else:
        texto += "🏪 Te avisamos cuando esté listo para retirar."
    return texto


PEDIDO_ERROR = (
    "😔 No pudimos registrar tu pedido en este momento.\n\n"
    "Tu carrito sigue guardado. Escribí *1* (retiro) o *2* (envío) para intentar de nuevo."
)


def historial(pedidos: List[OrderSummary]) -> str:
    if not pedidos:
        return "📋 Todavía no tenés pedidos registrados."
    texto = "📋 *Tus últimos pedidos:*\n\n"
    for pedido in pedidos:
        fecha = pedido.created_at.strftime("%d/%m/%Y") if pedido.created_at else ""
        texto += f"• *{pedido.order_id}* {fecha} - {formatear_precio(pedido.total)} ({pedido.status})\n"
    return texto


HISTORIAL_ERROR = "😔 No pude consultar tus pedidos ahora. Probá de nuevo en unos minutos."


# ==================== Fotos ====================

SIN_PRODUCTO_PARA_FOTOS = (
    "🤔 No tengo productos guardados para mostrarte fotos.\n\n"
    "Buscá un producto primero y después pedí la foto."
)
SIN_FOTOS = "😔 Este producto no tiene fotos disponibles aún."
FOTOS_ERROR = "😔 No pude enviarte las fotos ahora. Probá de nuevo en un rato."


def leyenda_foto(item: CatalogItem) -> str:
    stock = "✅ Disponible" if item.in_stock else "❌ AGOTADO"
    return f"📸 *{item.display_name}*\n\n{stock}\n💰 Precio: {_precio_item(item)}"


def fotos_enviadas(cantidad: int) -> str:
    plural = "s" if cantidad > 1 else ""
    return f"✅ Foto{plural} enviada{plural}.\n\n💬 Seguí preguntando o escribí \"si\" para agregarlo al carrito."


# ==================== Atención humana ====================

DERIVADO_A_HUMANO = (
    "👤 ¡Listo! Le aviso al encargado para que te responda personalmente.\n\n"
    "En un ratito te escribe por acá."
)
BOT_REACTIVADO = "🤖 Bot reactivado para este cliente."
BOT_PAUSADO = "⏸️ Bot pausado para este cliente (1 hora o hasta \"!bot activar\")."


def notificacion_derivacion(customer_id: str, mensaje: str) -> str:
    return (
        "👤 *CLIENTE PIDE ATENCIÓN PERSONAL*\n\n"
        f"📱 Teléfono: {customer_id}\n"
        f"💬 Mensaje: {mensaje}\n\n"
        f"📲 https://wa.me/{customer_id}\n\n"
        "El bot queda pausado 1 hora. Para reactivarlo escribí \"!bot activar\" en el chat."
    )


def aviso_comando_operador(customer_id: str, resultado: str) -> str:
    """Resultado de un comando escrito en el chat del cliente, para el dueño"""
    return f"📱 Cliente {customer_id}\n{resultado}"


def estado_sesion(activa: bool, derivado: bool, cart: Cart, flujo: Optional[str]) -> str:
    return (
        "ℹ️ *Estado de la sesión*\n\n"
        f"Sesión activa: {'sí' if activa else 'no'}\n"
        f"Atención humana: {'sí' if derivado else 'no'}\n"
        f"Productos en carrito: {len(cart.items)}\n"
        f"Paso pendiente: {flujo or 'ninguno'}"
    )


# ==================== Servicios personalizados ====================

def presupuesto_servicio(template: ServiceTemplate, item: CatalogItem) -> str:
    texto = f"✅ *¡Sí, hacemos {template.name}!*\n\n"
    texto += f"💰 Precio: {_precio_item(item)}\n"
    texto += f"⏱️ Tiempo de entrega: {item.delivery_time or template.delivery_time}\n"
    if item.description:
        texto += f"📝 {item.description}\n"
    texto += f"\n{SEPARADOR}\n\n📋 *DATOS QUE NECESITAMOS:*\n\n"
    texto += "\n".join(template.fields)
    texto += f"\n\n{SEPARADOR}\n\n📝 *CÓMO PROCEDER:*\n\n"
    texto += "\n".join(template.steps)
    texto += f"\n\n{SEPARADOR}\n\n💬 *¿Cómo querés enviar los datos?*\n\n"
    texto += "1️⃣ Enviarlos por WhatsApp ahora\n"
    texto += "2️⃣ Enviar fotos de tus datos\n"
    texto += "3️⃣ Traer la información al local\n\n"
    texto += "Escribí el número de tu opción."
    return texto


def servicio_enviar_texto(template: ServiceTemplate) -> str:
    return (
        "✅ *¡Perfecto!*\n\n"
        "Enviá los datos siguiendo este formato:\n\n"
        + "\n".join(template.fields)
        + "\n\n💡 *Tip:* Copiá y completá cada campo.\n\n"
        "Cuando recibamos toda la información te contactamos para confirmar los detalles."
    )


SERVICIO_ENVIAR_FOTOS = (
    "📸 *¡Perfecto!*\n\n"
    "Enviá fotos claras de:\n"
    "• Tus datos\n"
    "• Documentos necesarios\n"
    "• Referencias (si tenés)\n\n"
    "Asegurate de que se lean bien.\n\n"
    "Cuando recibamos las fotos te contactamos para confirmar los detalles."
)


def servicio_traer_al_local(config: BusinessConfig) -> str:
    return (
        "🏪 *¡Perfecto!*\n\n"
        "Podés traer la información al local:\n\n"
        f"📍 *Dirección:* {config.get_config('negocio.direccion')}\n"
        f"🕐 *Horarios:* {config.get_config('negocio.horario')}\n\n"
        "Traé todos los datos necesarios y te ayudamos con el diseño. ¡Te esperamos! 😊"
    )


OPCION_SERVICIO_INVALIDA = (
    "❌ Opción no válida.\n\n"
    "Escribí:\n"
    "• *1* para enviar por WhatsApp\n"
    "• *2* para enviar fotos\n"
    "• *3* para traer al local"
)


def datos_servicio_recibidos(template: ServiceTemplate) -> str:
    return (
        "✅ *¡Datos recibidos!*\n\n"
        "🔔 *Próximos pasos:*\n"
        "1️⃣ Revisamos tu información\n"
        "2️⃣ Te contactamos para confirmar detalles\n"
        f"3️⃣ Preparamos tu pedido de {template.name}\n"
        "4️⃣ Te avisamos cuando esté listo para retirar\n\n"
        f"⏱️ *Tiempo de entrega:* {template.delivery_time}\n\n"
        "¿Necesitás algo más?"
    )


def notificacion_servicio(template: ServiceTemplate, customer_id: str, datos: Optional[str]) -> str:
    texto = f"📄 *NUEVA SOLICITUD: {template.name.upper()}*\n\n{SEPARADOR}\n"
    texto += f"📱 *Teléfono:* {customer_id}\n{SEPARADOR}\n\n"
    if datos:
        texto += f"📝 *DATOS RECIBIDOS:*\n\n{datos}\n\n"
    else:
        texto += "📷 *El cliente envió una foto/archivo con los datos*\n\n"
    texto += f"📲 *Contactar cliente:* https://wa.me/{customer_id}"
    return texto


def notificacion_traer_al_local(template: ServiceTemplate, customer_id: str) -> str:
    return (
        f"🏪 {customer_id} va a traer al local los datos para {template.name}.\n"
        f"📲 https://wa.me/{customer_id}"
    )