"""
Tests del almacén de sesiones
"""
from datetime import timedelta
from decimal import Decimal

import pytest

from gestionbot.models.session import Cart, CartLine, PendingConfirmation
from gestionbot.services.session_store import SessionStore


PHONE = "5491155554444"


@pytest.fixture
def store(clock):
    """SessionStore con reloj controlable"""
    return SessionStore(clock=clock)


def line(quantity=1):
    return CartLine(item_key="libreria::cuadernos::cuaderno_a4", display_name="Cuaderno A4",
                    unit_price=Decimal("1000"), quantity=quantity)


class TestSessionStore:

    def test_get_unknown_customer_returns_fresh_state(self, store):
        state = store.get(PHONE)
        assert state.customer_id == PHONE
        assert state.cart.is_empty
        assert state.flow is None

    def test_get_returns_a_copy(self, store):
        state = store.get(PHONE)
        state.cart.items.append(line())
        assert store.get(PHONE).cart.is_empty

        store.put(PHONE, state)
        assert len(store.get(PHONE).cart.items) == 1

    def test_put_stamps_expiry(self, store, clock):
        store.put(PHONE, store.get(PHONE))
        assert store.is_active(PHONE)

    def test_session_expires_after_inactivity(self, store, clock):
        store.set_cart(PHONE, Cart(items=[line()]))
        store.mark_active(PHONE, "busqueda")

        clock.advance(minutes=29)
        assert not store.get_cart(PHONE).is_empty

        clock.advance(minutes=2)
        assert store.get_cart(PHONE).is_empty
        assert not store.is_active(PHONE)

    def test_mark_active_extends_session(self, store, clock):
        store.mark_active(PHONE)
        clock.advance(minutes=20)
        store.mark_active(PHONE, "saludo")
        clock.advance(minutes=20)

        assert store.is_active(PHONE)
        assert store.get(PHONE).kind == "saludo"

    def test_clear_resets_cart_and_flow(self, store):
        state = store.get(PHONE)
        state.cart.items.append(line())
        state.flow = PendingConfirmation(lines=[line()])
        state.last_shown = ["x"]
        store.put(PHONE, state)

        store.clear(PHONE)
        cleared = store.get(PHONE)
        assert cleared.cart.is_empty
        assert cleared.flow is None
        assert cleared.last_shown == []

    def test_delete(self, store):
        store.mark_active(PHONE)
        store.delete(PHONE)
        assert not store.is_active(PHONE)


class TestHumanHandoff:

    def test_mark_and_release(self, store):
        assert not store.is_human_handoff(PHONE)

        store.mark_human_handoff(PHONE)
        assert store.is_human_handoff(PHONE)

        assert store.release_human_handoff(PHONE) is True
        assert not store.is_human_handoff(PHONE)
        assert store.release_human_handoff(PHONE) is False

    def test_handoff_expires(self, store, clock):
        store.mark_human_handoff(PHONE)
        clock.advance(minutes=59)
        assert store.is_human_handoff(PHONE)

        clock.advance(minutes=2)
        assert not store.is_human_handoff(PHONE)
        assert store.handoff_until(PHONE) is None

    def test_custom_ttl(self, store, clock):
        store.mark_human_handoff(PHONE, ttl=timedelta(minutes=5))
        clock.advance(minutes=6)
        assert not store.is_human_handoff(PHONE)

    def test_clear_keeps_handoff(self, store):
        store.mark_human_handoff(PHONE)
        store.clear(PHONE)
        assert store.is_human_handoff(PHONE)


class TestCustomOrderFlow:

    def test_mark_and_clear(self, store):
        store.mark_custom_order_flow(PHONE, "curriculum")
        assert store.is_in_custom_order_flow(PHONE)
        assert store.get(PHONE).collecting_custom_data == "curriculum"

        store.clear_custom_order_flow(PHONE)
        assert not store.is_in_custom_order_flow(PHONE)


class TestMaintenance:

    def test_sweep_removes_expired(self, store, clock):
        store.mark_active("111")
        store.mark_human_handoff("222")
        clock.advance(minutes=45)
        store.mark_active("333")

        removed = store.sweep()

        assert removed == 1
        assert store.stats()["sessions"] == 1
        assert store.stats()["human_handoffs"] == 1

        clock.advance(hours=1)
        assert store.sweep() == 2

    def test_stats(self, store):
        store.set_cart("111", Cart(items=[line()]))
        store.mark_custom_order_flow("222", "tarjeta")
        store.mark_human_handoff("333")

        assert store.stats() == {
            "sessions": 2,
            "carts_with_items": 1,
            "custom_data_flows": 1,
            "human_handoffs": 1,
        }
