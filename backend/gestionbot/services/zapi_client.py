"""
Envío de mensajes por WhatsApp vía Z-API
https://developer.z-api.io/
"""
from typing import Any, Dict, Optional, Protocol

import requests
from loguru import logger


class Messenger(Protocol):
    """Lo único que el bot necesita del canal de salida"""

    def send_text(self, customer_id: str, text: str) -> Dict[str, Any]:
        ...

    def send_media(self, customer_id: str, media_url: str, caption: Optional[str] = None) -> Dict[str, Any]:
        ...


class ZAPIClient:
    """
    Cliente para enviar mensajes vía Z-API.

    Los errores de red no se propagan: se registran y se devuelven como
    {"success": False, "error": ...}, igual que las respuestas de la API.
    """

    def __init__(
        self,
        instance_id: Optional[str],
        token: Optional[str],
        client_token: Optional[str] = None,
        base_url: str = "https://api.z-api.io",
        timeout: float = 10
    ):
        """
        Args:
            instance_id: ID de la instancia Z-API
            token: Token de la instancia
            client_token: Token de seguridad de la cuenta (header Client-Token)
            base_url: URL base de la API
            timeout: Timeout de cada request en segundos
        """
        self.instance_id = instance_id
        self.token = token
        self.client_token = client_token
        self.base_url = base_url
        self.timeout = timeout

        if not self.instance_id or not self.token:
            logger.warning("⚠️ Credenciales Z-API no configuradas")
        else:
            logger.info(f"✅ Cliente Z-API inicializado: {self.instance_id[:8]}...")

    def _get_url(self, endpoint: str) -> str:
        return f"{self.base_url}/instances/{self.instance_id}/token/{self.token}/{endpoint}"

    def _headers(self) -> Dict[str, str]:
        return {"Client-Token": self.client_token} if self.client_token else {}

    def _post(self, endpoint: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = requests.post(
                self._get_url(endpoint),
                json=payload,
                headers=self._headers(),
                timeout=self.timeout
            )
            response.raise_for_status()
            return {"success": True, "data": response.json()}

        except requests.exceptions.RequestException as e:
            logger.error(f"❌ Error Z-API en {endpoint}: {e}")
            return {"success": False, "error": str(e)}

    def send_text(self, customer_id: str, text: str) -> Dict[str, Any]:
        """
        Envía un mensaje de texto.

        Example:
            >>> client.send_text("5491155554444", "¡Hola!")
            {"success": True, "data": {"messageId": "..."}}
        """
        logger.info(f"📤 Enviando mensaje a {customer_id[:8]}...")
        result = self._post("send-text", {"phone": customer_id, "message": text})
        if result["success"]:
            logger.info("✅ Mensaje enviado")
        return result

    def send_media(self, customer_id: str, media_url: str, caption: Optional[str] = None) -> Dict[str, Any]:
        """Envía una imagen por URL, con leyenda opcional"""
        payload = {"phone": customer_id, "image": media_url}
        if caption:
            payload["caption"] = caption

        logger.info(f"🖼️ Enviando imagen a {customer_id[:8]}...")
        return self._post("send-image", payload)
