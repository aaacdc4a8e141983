"""
Fixtures compartidas: catálogo de prueba, reloj controlable y colaboradores falsos
"""
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from gestionbot.exceptions import OrderRecordError
from gestionbot.models.session import InboundMessage, MessageSource
from gestionbot.orchestrator.business_config import BusinessConfig
from gestionbot.orchestrator.checkout import CartCoordinator
from gestionbot.orchestrator.intent_classifier import IntentClassifier
from gestionbot.services.catalog_index import CatalogIndex
from gestionbot.services.order_recorder import InMemoryOrderRecorder
from gestionbot.services.session_store import SessionStore
from gestionbot.api.dialogue_resolver import DialogueResolver


CUSTOMER = "5491155554444"
OWNER = "5491100000000"


CATALOG = {
    "libreria": {
        "cuadernos": {
            "cuaderno_a4": {
                "precio": 1000,
                "stock": True,
                "codigo_barras": "7790001000011",
                "imagenes": [{"url": "https://cdn.test/cuaderno_a4.jpg", "id": "1"}],
            },
            "cuaderno_a5": {"precio": 900, "stock": True},
        },
        "escritura": {
            "lapicera_azul": {"precio": 350, "stock": True},
            "lapicera_negra": {"precio": 350, "stock": True},
            "lapiz_hb": {"precio": 150, "stock": False},
        },
    },
    "cotillon": {
        "globos": {
            "globos_rojos": {"precio_desde": 800, "stock": True},
        },
    },
    "servicios": {
        "impresion": {
            "curriculum_vitae": {"precio_desde": 2500, "tiempo_entrega": "24-48 horas"},
        },
    },
}


class FakeClock:
    """Reloj que solo avanza cuando el test lo pide"""

    def __init__(self, start=datetime(2026, 3, 2, 10, 0)):
        self.current = start

    def __call__(self):
        return self.current

    def advance(self, **kwargs):
        self.current += timedelta(**kwargs)


class FakeMessenger:
    """Registra lo enviado en lugar de llamar a Z-API"""

    def __init__(self, success=True):
        self.success = success
        self.texts = []
        self.media = []

    def send_text(self, customer_id, text):
        self.texts.append((customer_id, text))
        return {"success": self.success} if self.success else {"success": False, "error": "offline"}

    def send_media(self, customer_id, media_url, caption=None):
        self.media.append((customer_id, media_url, caption))
        return {"success": self.success} if self.success else {"success": False, "error": "offline"}


class FailingRecorder:
    """Registro de pedidos que siempre falla"""

    def __init__(self):
        self.calls = 0

    def record_order(self, customer_id, draft):
        self.calls += 1
        raise OrderRecordError("API de pedidos caída")

    def list_orders(self, customer_id, limit=5):
        raise OrderRecordError("API de pedidos caída")


@pytest.fixture
def catalog():
    return CATALOG


@pytest.fixture
def index(catalog):
    idx = CatalogIndex()
    idx.build(catalog)
    return idx


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def messenger():
    return FakeMessenger()


@pytest.fixture
def business():
    return BusinessConfig(overrides={
        "negocio": {"nombre": "Librería Test", "direccion": "Calle Falsa 123", "encargados": ["Marta"]},
    })


def make_bot(index, clock, messenger, business, recorder=None):
    recorder = recorder or InMemoryOrderRecorder()
    store = SessionStore(session_ttl=business.session_ttl, handoff_ttl=business.handoff_ttl, clock=clock)
    cart = CartCoordinator(index, recorder, delivery_fee=business.delivery_fee, discount_pct=business.discount_pct)
    classifier = IntentClassifier(business.attendant_names, tolerance=business.confirmation_tolerance)
    resolver = DialogueResolver(
        store=store,
        index=index,
        cart=cart,
        classifier=classifier,
        config=business,
        messenger=messenger,
        recorder=recorder,
        owner_phone=OWNER,
    )

    def say(text, customer_id=CUSTOMER, source=MessageSource.CUSTOMER, has_attachment=False):
        message = InboundMessage(
            customer_id=customer_id,
            text=text,
            source=source,
            has_attachment=has_attachment,
            timestamp=clock(),
        )
        return resolver.resolve(message)

    return SimpleNamespace(
        store=store,
        index=index,
        cart=cart,
        classifier=classifier,
        resolver=resolver,
        recorder=recorder,
        messenger=messenger,
        clock=clock,
        say=say,
    )


@pytest.fixture
def bot(index, clock, messenger, business):
    """Resolver completo con sesiones en memoria y pedidos en memoria"""
    return make_bot(index, clock, messenger, business)
