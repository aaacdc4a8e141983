"""
Tests del cliente Z-API (requests mockeado)
"""
from unittest.mock import MagicMock, patch

import requests

from gestionbot.services.zapi_client import ZAPIClient


def ok_response(data):
    response = MagicMock()
    response.json.return_value = data
    response.raise_for_status.return_value = None
    return response


class TestZAPIClient:

    def setup_method(self):
        self.client = ZAPIClient("INST123", "TOKEN", client_token="SEGURIDAD")

    @patch("gestionbot.services.zapi_client.requests.post")
    def test_send_text(self, mock_post):
        mock_post.return_value = ok_response({"messageId": "abc"})

        result = self.client.send_text("5491155554444", "¡Hola!")

        assert result == {"success": True, "data": {"messageId": "abc"}}
        url = mock_post.call_args.args[0]
        assert url == "https://api.z-api.io/instances/INST123/token/TOKEN/send-text"
        assert mock_post.call_args.kwargs["json"] == {"phone": "5491155554444", "message": "¡Hola!"}
        assert mock_post.call_args.kwargs["headers"] == {"Client-Token": "SEGURIDAD"}

    @patch("gestionbot.services.zapi_client.requests.post")
    def test_send_media_with_caption(self, mock_post):
        mock_post.return_value = ok_response({})

        self.client.send_media("5491155554444", "https://cdn.test/a4.jpg", "Cuaderno A4")

        assert mock_post.call_args.args[0].endswith("/send-image")
        assert mock_post.call_args.kwargs["json"]["caption"] == "Cuaderno A4"

    @patch("gestionbot.services.zapi_client.requests.post")
    def test_network_error_is_returned(self, mock_post):
        mock_post.side_effect = requests.exceptions.ConnectionError("sin red")

        result = self.client.send_text("5491155554444", "hola")

        assert result["success"] is False
        assert "sin red" in result["error"]
