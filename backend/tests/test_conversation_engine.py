"""
Tests del motor de conversación (envío, errores y mensajes viejos)
"""
import asyncio
from datetime import datetime, timedelta

import pytest

from gestionbot.api import respuestas as resp
from gestionbot.api.conversation_engine import ConversationEngine
from gestionbot.models.session import InboundMessage, MessageSource
from gestionbot.orchestrator.business_config import BusinessConfig
from gestionbot.services.rate_limiter import RateLimiter

from conftest import CUSTOMER, OWNER, FakeClock, FakeMessenger


STARTED = datetime(2026, 3, 2, 10, 0)


class ScriptedResolver:
    """Devuelve respuestas fijas y registra los mensajes recibidos"""

    def __init__(self, reply="hola", error=None):
        self.reply = reply
        self.error = error
        self.received = []

    def resolve(self, message):
        self.received.append(message)
        if self.error:
            raise self.error
        return self.reply


def message(text="hola", customer_id=CUSTOMER, timestamp=STARTED + timedelta(seconds=5),
            source=MessageSource.CUSTOMER):
    return InboundMessage(customer_id=customer_id, text=text, timestamp=timestamp, source=source)


@pytest.fixture
def messenger():
    return FakeMessenger()


class TestConversationEngine:

    def test_reply_is_sent(self, messenger):
        engine = ConversationEngine(ScriptedResolver("¡Hola!"), messenger, started_at=STARTED)

        reply = asyncio.run(engine.handle(message()))

        assert reply == "¡Hola!"
        assert messenger.texts == [(CUSTOMER, "¡Hola!")]

    def test_silence_sends_nothing(self, messenger):
        engine = ConversationEngine(ScriptedResolver(None), messenger, started_at=STARTED)

        assert asyncio.run(engine.handle(message())) is None
        assert messenger.texts == []

    def test_messages_before_startup_are_ignored(self, messenger):
        resolver = ScriptedResolver()
        engine = ConversationEngine(resolver, messenger, started_at=STARTED)

        old = message(timestamp=STARTED - timedelta(minutes=1))

        assert asyncio.run(engine.handle(old)) is None
        assert resolver.received == []
        assert messenger.texts == []

    def test_unexpected_error_gets_generic_reply(self, messenger):
        engine = ConversationEngine(
            ScriptedResolver(error=RuntimeError("boom")), messenger, started_at=STARTED
        )

        reply = asyncio.run(engine.handle(message()))

        assert reply == resp.ERROR_GENERICO
        assert messenger.texts == [(CUSTOMER, resp.ERROR_GENERICO)]

    def test_send_failure_still_returns_reply(self):
        engine = ConversationEngine(ScriptedResolver("ok"), FakeMessenger(success=False), started_at=STARTED)
        assert asyncio.run(engine.handle(message())) == "ok"

    def test_messages_of_same_customer_run_in_order(self, messenger):
        resolver = ScriptedResolver("ok")
        engine = ConversationEngine(resolver, messenger, started_at=STARTED)

        async def burst():
            await asyncio.gather(*(engine.handle(message(str(n))) for n in range(5)))

        asyncio.run(burst())

        assert [m.text for m in resolver.received] == ["0", "1", "2", "3", "4"]
        assert len(messenger.texts) == 5

    def test_forget_idle_locks(self, messenger):
        engine = ConversationEngine(ScriptedResolver("ok"), messenger, started_at=STARTED)
        asyncio.run(engine.handle(message(customer_id="111")))
        asyncio.run(engine.handle(message(customer_id="222")))

        assert engine.forget_idle_locks() == 2
        assert engine.forget_idle_locks() == 0

    def test_lock_with_queued_message_is_kept(self, messenger):
        resolver = ScriptedResolver("ok")
        engine = ConversationEngine(resolver, messenger, started_at=STARTED)

        async def scenario():
            lock = engine._lock_for(CUSTOMER)
            await lock.acquire()
            waiting = asyncio.create_task(engine.handle(message("en espera")))
            await asyncio.sleep(0)

            # Liberado, pero el mensaje en espera todavía no tomó el lock
            lock.release()
            assert engine.forget_idle_locks() == 0
            assert engine._lock_for(CUSTOMER) is lock

            await waiting

        asyncio.run(scenario())

        assert [m.text for m in resolver.received] == ["en espera"]
        assert engine.forget_idle_locks() == 1


class TestMessageFilters:

    def engine(self, messenger, resolver=None, rate_limiter=None, **comportamiento):
        config = BusinessConfig(overrides={"comportamiento": comportamiento})
        return ConversationEngine(
            resolver or ScriptedResolver("ok"), messenger, started_at=STARTED,
            config=config, rate_limiter=rate_limiter, owner_phone=OWNER,
        )

    def test_ignored_contact_gets_no_reply(self, messenger):
        resolver = ScriptedResolver("ok")
        engine = self.engine(messenger, resolver, contactos_ignorar=[f"+{CUSTOMER}"])

        assert asyncio.run(engine.handle(message())) is None
        assert asyncio.run(engine.handle(message(customer_id="5491166667777"))) == "ok"
        assert [m.customer_id for m in resolver.received] == ["5491166667777"]

    def test_global_pause_silences_customers_but_not_owner(self, messenger):
        resolver = ScriptedResolver("ok")
        engine = self.engine(messenger, resolver, respuestas_automaticas_activas=False)

        assert asyncio.run(engine.handle(message())) is None
        assert asyncio.run(engine.handle(message("!bot estado", customer_id=OWNER))) == "ok"
        assert asyncio.run(engine.handle(message("!bot activar", source=MessageSource.HUMAN))) == "ok"
        assert [m.customer_id for m in resolver.received] == [OWNER, CUSTOMER]

    def test_rate_limit_warns_once_then_ignores(self, messenger):
        clock = FakeClock()
        resolver = ScriptedResolver("ok")
        limiter = RateLimiter(max_messages=3, window=timedelta(seconds=60), clock=clock)
        engine = self.engine(messenger, resolver, rate_limiter=limiter)

        async def burst(count):
            return [await engine.handle(message(str(n))) for n in range(count)]

        replies = asyncio.run(burst(5))

        assert replies == ["ok", "ok", "ok", resp.LIMITE_MENSAJES, None]
        assert len(resolver.received) == 3
        assert messenger.texts[3] == (CUSTOMER, resp.LIMITE_MENSAJES)

        clock.advance(seconds=61)
        assert asyncio.run(engine.handle(message("de nuevo"))) == "ok"

    def test_limit_is_per_customer(self, messenger):
        limiter = RateLimiter(max_messages=1, window=timedelta(seconds=60), clock=FakeClock())
        engine = self.engine(messenger, rate_limiter=limiter)

        assert asyncio.run(engine.handle(message())) == "ok"
        assert asyncio.run(engine.handle(message(customer_id="5491166667777"))) == "ok"

    def test_limit_from_config(self, messenger):
        engine = self.engine(messenger, limite_mensajes={"cantidad": 4, "ventana_segundos": 30})

        assert engine.rate_limiter.max_messages == 4
        assert engine.rate_limiter.window == timedelta(seconds=30)


class TestEngineWithResolver:

    def test_full_turn_against_real_resolver(self, bot, messenger):
        engine = ConversationEngine(bot.resolver, messenger, started_at=bot.clock() - timedelta(minutes=1))

        reply = asyncio.run(engine.handle(message("quiero 2 cuadernos a4", timestamp=bot.clock())))

        assert "*Cuaderno A4*" in reply
        assert messenger.texts[-1] == (CUSTOMER, reply)
