"""
Tests del registro de pedidos (memoria y API HTTP)
"""
import json
from decimal import Decimal

import httpx
import pytest

from gestionbot.exceptions import OrderRecordError
from gestionbot.models.order import DeliveryType, OrderDraft, OrderTotals
from gestionbot.models.session import CartLine
from gestionbot.services.order_recorder import HttpOrderRecorder, InMemoryOrderRecorder

from conftest import CUSTOMER


def draft(total="2500", delivery_type=DeliveryType.SHIP):
    return OrderDraft(
        customer_id=CUSTOMER,
        lines=[CartLine(item_key="libreria::cuadernos::cuaderno_a4", display_name="Cuaderno A4",
                        unit_price=Decimal("1000"), quantity=2)],
        delivery_type=delivery_type,
        totals=OrderTotals(subtotal=Decimal("2000"), delivery=Decimal("500"), total=Decimal(total)),
    )


def http_recorder(handler):
    recorder = HttpOrderRecorder("https://pedidos.test/api/", api_key="secreto")
    recorder._client = httpx.Client(transport=httpx.MockTransport(handler))
    return recorder


class TestInMemoryOrderRecorder:

    def test_sequential_numbers(self):
        recorder = InMemoryOrderRecorder()
        assert recorder.record_order(CUSTOMER, draft()).order_id == "PED-0001"
        assert recorder.record_order("111", draft()).order_id == "PED-0002"

    def test_history_newest_first(self):
        recorder = InMemoryOrderRecorder()
        recorder.record_order(CUSTOMER, draft("1000"))
        recorder.record_order(CUSTOMER, draft("2000"))

        orders = recorder.list_orders(CUSTOMER)

        assert [o.order_id for o in orders] == ["PED-0002", "PED-0001"]
        assert orders[0].items == 2
        assert recorder.list_orders("otro") == []


class TestHttpOrderRecorder:

    def test_record_order(self):
        sent = []

        def handler(request):
            sent.append(request)
            return httpx.Response(201, json={"numero": "A-77"})

        result = http_recorder(handler).record_order(CUSTOMER, draft())

        assert result.success
        assert result.order_id == "A-77"
        assert str(sent[0].url) == "https://pedidos.test/api/pedidos"
        body = json.loads(sent[0].content)
        assert body["tipo_entrega"] == "DELIVERY"
        assert body["total"] == "2500"
        assert body["items"][0]["cantidad"] == 2

    def test_server_error_is_reported(self):
        result = http_recorder(lambda request: httpx.Response(500, text="caído")).record_order(CUSTOMER, draft())

        assert not result.success
        assert "500" in result.error

    def test_response_without_number(self):
        result = http_recorder(lambda request: httpx.Response(200, json={})).record_order(CUSTOMER, draft())
        assert not result.success

    def test_list_orders(self):
        def handler(request):
            assert request.url.params["telefono"] == CUSTOMER
            return httpx.Response(200, json={"pedidos": [
                {"numero": "A-77", "total": 2500, "estado": "entregado",
                 "fecha": "2026-03-01T12:00:00", "items": [{}, {}]},
            ]})

        orders = http_recorder(handler).list_orders(CUSTOMER)

        assert orders[0].order_id == "A-77"
        assert orders[0].total == Decimal("2500")
        assert orders[0].status == "entregado"
        assert orders[0].items == 2

    def test_list_orders_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("sin red", request=request)

        with pytest.raises(OrderRecordError):
            http_recorder(handler).list_orders(CUSTOMER)
