"""
API FastAPI principal del bot de WhatsApp
"""
import asyncio
import json
from dataclasses import asdict, dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Optional, Union

from fastapi import Body, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from ..config import Settings, load_settings
from ..exceptions import CatalogSnapshotError
from ..orchestrator.business_config import BusinessConfig
from ..orchestrator.checkout import CartCoordinator
from ..orchestrator.intent_classifier import IntentClassifier
from ..services.catalog_index import CatalogIndex
from ..services.order_recorder import HttpOrderRecorder, InMemoryOrderRecorder, OrderRecorder
from ..services.session_store import SessionStore
from ..services.zapi_client import Messenger, ZAPIClient
from . import zapi_webhook
from .conversation_engine import ConversationEngine
from .dialogue_resolver import DialogueResolver


app = FastAPI(
    title="GestionBot - Pedidos por WhatsApp",
    description="Bot de atención y pedidos para comercios, con derivación a humano",
    version="1.0.0"
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(zapi_webhook.router, tags=["ZAPI"])


@dataclass
class BotComponents:
    """Instancias compartidas por el webhook y los endpoints de control"""
    settings: Settings
    business: BusinessConfig
    store: SessionStore
    index: CatalogIndex
    classifier: IntentClassifier
    recorder: OrderRecorder
    messenger: Messenger
    cart: CartCoordinator
    resolver: DialogueResolver
    engine: ConversationEngine


# Inicializado en el startup (o por install() en los tests)
components: Optional[BotComponents] = None
_sweep_task: Optional[asyncio.Task] = None


def load_catalog_file(path: Union[str, Path]) -> Dict[str, Any]:
    """Lee la lista de precios (JSON). Sin archivo devuelve un catálogo vacío."""
    path = Path(path)
    if not path.exists():
        logger.warning(f"⚠️ Lista de precios no encontrada: {path}")
        return {}

    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def build_components(
    settings: Settings,
    business: Optional[BusinessConfig] = None,
    messenger: Optional[Messenger] = None,
    recorder: Optional[OrderRecorder] = None
) -> BotComponents:
    """Arma todas las piezas del bot a partir de la configuración"""
    business = business or BusinessConfig(settings.negocio_config_path)

    if messenger is None:
        messenger = ZAPIClient(settings.zapi_instance_id, settings.zapi_token, settings.zapi_client_token)

    if recorder is None:
        if settings.orders_api_url:
            recorder = HttpOrderRecorder(settings.orders_api_url, settings.orders_api_key)
        else:
            logger.warning("⚠️ ORDERS_API_URL no configurada, pedidos en memoria")
            recorder = InMemoryOrderRecorder()

    store = SessionStore(session_ttl=business.session_ttl, handoff_ttl=business.handoff_ttl)
    index = CatalogIndex(similarity_threshold=business.similarity_threshold)
    classifier = IntentClassifier(business.attendant_names, tolerance=business.confirmation_tolerance)
    cart = CartCoordinator(index, recorder, delivery_fee=business.delivery_fee, discount_pct=business.discount_pct)

    resolver = DialogueResolver(
        store=store,
        index=index,
        cart=cart,
        classifier=classifier,
        config=business,
        messenger=messenger,
        recorder=recorder,
        owner_phone=settings.owner_phone,
    )
    engine = ConversationEngine(resolver, messenger, config=business, owner_phone=settings.owner_phone)

    return BotComponents(
        settings=settings,
        business=business,
        store=store,
        index=index,
        classifier=classifier,
        recorder=recorder,
        messenger=messenger,
        cart=cart,
        resolver=resolver,
        engine=engine,
    )


def install(bot: BotComponents):
    """Publica las instancias para los endpoints y el webhook"""
    global components
    components = bot
    zapi_webhook.engine = bot.engine


def _require() -> BotComponents:
    if components is None:
        raise HTTPException(status_code=503, detail="Bot no inicializado")
    return components


# ==================== Endpoints ====================

@app.get("/")
async def root():
    """Health check"""
    return {
        "status": "online",
        "service": "gestionbot",
        "version": "1.0.0",
        "catalog_items": components.index.stats().total_items if components else 0,
    }


@app.get("/sessions/stats")
async def sessions_stats():
    bot = _require()
    return bot.store.stats()


@app.get("/session/{phone}/status")
async def get_session_status(phone: str):
    """
    Estado de la sesión de un cliente

    Incluye carrito, sub-flujo abierto y derivación a humano.
    """
    bot = _require()
    session = bot.store.get(phone)
    until = bot.store.handoff_until(phone)
    return {
        "active": bot.store.is_active(phone),
        "human_handoff": until is not None,
        "handoff_until": until.isoformat() if until else None,
        "session": session.model_dump(mode="json"),
    }


@app.post("/session/{phone}/takeover")
async def takeover_session(phone: str, minutes: Optional[int] = None):
    """Un humano toma la conversación: el bot deja de responder"""
    bot = _require()
    ttl = timedelta(minutes=minutes) if minutes else None
    bot.store.mark_human_handoff(phone, ttl)
    until = bot.store.handoff_until(phone)
    return {"success": True, "phone": phone, "handoff_until": until.isoformat() if until else None}


@app.post("/session/{phone}/release")
async def release_session(phone: str):
    """Devuelve la conversación al bot"""
    bot = _require()
    was_active = bot.store.release_human_handoff(phone)
    return {"success": True, "phone": phone, "was_handoff": was_active}


@app.post("/catalog/reload")
async def reload_catalog():
    """Vuelve a leer la lista de precios desde CATALOG_PATH"""
    bot = _require()
    try:
        snapshot = load_catalog_file(bot.settings.catalog_path)
        stats = bot.index.rebuild(snapshot)
    except (OSError, ValueError, CatalogSnapshotError) as e:
        logger.error(f"❌ Error al recargar catálogo: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "stats": asdict(stats)}


@app.put("/catalog")
async def replace_catalog(snapshot: Dict[str, Any] = Body(...)):
    """Reemplaza el catálogo por el snapshot enviado"""
    bot = _require()
    try:
        stats = bot.index.rebuild(snapshot)
    except CatalogSnapshotError as e:
        logger.error(f"❌ Snapshot de catálogo inválido: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True, "stats": asdict(stats)}


# ==================== Startup/Shutdown ====================

async def _sweep_loop(interval: int):
    """Limpieza periódica de sesiones y derivaciones vencidas"""
    while True:
        await asyncio.sleep(interval)
        bot = components
        if bot is None:
            continue
        bot.store.sweep()
        bot.engine.forget_idle_locks()


@app.on_event("startup")
async def startup_event():
    """Inicialización de la aplicación"""
    global _sweep_task

    logger.info("🚀 Iniciando GestionBot...")

    settings = load_settings()
    bot = build_components(settings)

    try:
        stats = bot.index.build(load_catalog_file(settings.catalog_path))
        logger.info(f"📦 Catálogo cargado: {stats.total_items} productos en {stats.total_categories} categorías")
    except (OSError, ValueError, CatalogSnapshotError) as e:
        logger.error(f"❌ No se pudo cargar el catálogo: {e}")

    install(bot)
    _sweep_task = asyncio.create_task(_sweep_loop(settings.sweep_interval_seconds))
    logger.info("✅ GestionBot listo")


@app.on_event("shutdown")
async def shutdown_event():
    """Finalización de la aplicación"""
    logger.info("👋 Cerrando GestionBot...")
    if _sweep_task:
        _sweep_task.cancel()
    if components and isinstance(components.recorder, HttpOrderRecorder):
        components.recorder.close()
