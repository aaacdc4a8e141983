"""
Endpoint del webhook de Z-API
Recibe los mensajes de WhatsApp y los procesa en segundo plano
"""
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Request
from loguru import logger

from ..models.session import InboundMessage, MessageSource
from .conversation_engine import ConversationEngine


router = APIRouter()

# Singleton (inyectado por main.py)
engine: Optional[ConversationEngine] = None

ATTACHMENT_FIELDS = ("image", "document", "audio", "video")


def parse_webhook(data: Dict[str, Any]) -> Optional[InboundMessage]:
    """
    Convierte el JSON de Z-API en un InboundMessage.

    Devuelve None para lo que el bot no procesa: grupos, mensajes enviados
    por la propia API y mensajes sin texto ni adjunto. Un mensaje escrito
    desde el teléfono del negocio (fromMe) es de un operador humano.

    Documentación: https://developer.z-api.io/webhooks/on-message-received
    """
    phone = data.get("phone", "")
    if not phone:
        logger.warning("⚠️ Teléfono no identificado")
        return None

    if data.get("isGroup", False):
        logger.info("⏭️ Ignorando mensaje de grupo")
        return None

    from_me = data.get("fromMe", False)
    if from_me and data.get("fromApi", False):
        logger.info("⏭️ Ignorando mensaje enviado por el bot")
        return None

    text_data = data.get("text") or {}
    text = text_data.get("message", "") or ""

    has_attachment = False
    for name in ATTACHMENT_FIELDS:
        media = data.get(name)
        if media:
            has_attachment = True
            text = text or (media.get("caption") or "")

    if not text and not has_attachment:
        logger.info("⏭️ Mensaje vacío ignorado")
        return None

    momment = data.get("momment")
    timestamp = datetime.fromtimestamp(momment / 1000) if momment else datetime.now()

    return InboundMessage(
        customer_id=phone,
        text=text,
        has_attachment=has_attachment,
        timestamp=timestamp,
        source=MessageSource.HUMAN if from_me else MessageSource.CUSTOMER,
    )


@router.post("/webhook/zapi")
async def zapi_webhook(request: Request, background_tasks: BackgroundTasks):
    """
    Webhook para recibir mensajes de Z-API.

    Responde enseguida; la respuesta al cliente se envía en segundo plano.
    """
    try:
        data = await request.json()
    except ValueError as e:
        logger.error(f"❌ Webhook con JSON inválido: {e}")
        return {"success": False, "error": "JSON inválido"}

    logger.debug(f"📥 Webhook Z-API recibido: {data}")

    message = parse_webhook(data)
    if message is None:
        return {"success": True, "message": "Mensaje ignorado"}

    if engine is None:
        logger.error("❌ Motor de conversación no inicializado")
        return {"success": False, "error": "Bot no inicializado"}

    background_tasks.add_task(engine.handle, message)
    return {"success": True, "message": "Mensaje recibido y en proceso"}


@router.get("/webhook/zapi")
async def zapi_webhook_get():
    """Verifica que el webhook esté activo"""
    return {
        "status": "online",
        "webhook": "zapi",
        "message": "Webhook Z-API activo y listo para recibir mensajes",
    }
