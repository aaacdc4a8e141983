"""
Configuración del negocio y del comportamiento del bot (YAML)

negocio.yaml tiene tres secciones:
- negocio: nombre, dirección, horario, contacto, medios de pago, encargados
- comportamiento: vencimientos, tolerancias, límites del diálogo y filtros de mensajes
- pedidos: costo de envío y descuento
"""
import copy
import re
from datetime import timedelta
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Union

import yaml
from loguru import logger


DEFAULTS: Dict[str, Any] = {
    "negocio": {
        "nombre": "Librería y Kiosco",
        "direccion": "Consultá la dirección por este medio",
        "horario": "Lunes a viernes de 9 a 13 y de 16 a 20 hs. Sábados de 9 a 13 hs.",
        "telefono": None,
        "medios_pago": ["Efectivo", "Transferencia", "Mercado Pago", "Tarjeta de débito y crédito"],
        "encargados": [],
    },
    "comportamiento": {
        "session_ttl_minutes": 30,
        "handoff_ttl_minutes": 60,
        "max_candidates": 10,
        "tolerancia_confirmacion": 0.35,
        "umbral_similitud": 75,
        "max_fotos": 5,
        "respuestas_automaticas_activas": True,
        "contactos_ignorar": [],
        "limite_mensajes": {
            "cantidad": 10,
            "ventana_segundos": 60,
        },
    },
    "pedidos": {
        "costo_envio": 500,
        "descuento_porcentaje": 0,
    },
}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    result = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _merge(result[key], value)
        else:
            result[key] = value
    return result


class BusinessConfig:
    """Acceso a negocio.yaml con valores por defecto"""

    def __init__(self, path: Optional[Union[str, Path]] = None, overrides: Optional[Dict[str, Any]] = None):
        """
        Args:
            path: Ruta de negocio.yaml (opcional, sin archivo se usan los defaults)
            overrides: Valores que pisan lo leído (tests)
        """
        self.path = Path(path) if path else None
        self.args = _merge(DEFAULTS, self._load_file())
        if overrides:
            self.args = _merge(self.args, overrides)

        logger.info(f"⚙️ Configuración del negocio cargada: {self.business_name}")

    def _load_file(self) -> Dict[str, Any]:
        if self.path is None:
            return {}

        if not self.path.exists():
            logger.warning(f"⚠️ {self.path} no encontrado, usando configuración por defecto")
            return {}

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.error(f"❌ Error al leer {self.path}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.error(f"❌ {self.path} debe ser un mapa YAML, usando defaults")
            return {}
        return data

    def get_config(self, path: str, default: Any = None) -> Any:
        """
        Accede a la configuración con dot notation.

        Example:
            >>> config.get_config("comportamiento.max_candidates", 10)
            10
        """
        value = self.args
        for key in path.split("."):
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        return value

    # ==================== Atajos ====================

    @property
    def business_name(self) -> str:
        return self.get_config("negocio.nombre", "")

    @property
    def session_ttl(self) -> timedelta:
        return timedelta(minutes=self.get_config("comportamiento.session_ttl_minutes", 30))

    @property
    def handoff_ttl(self) -> timedelta:
        return timedelta(minutes=self.get_config("comportamiento.handoff_ttl_minutes", 60))

    @property
    def max_candidates(self) -> int:
        return int(self.get_config("comportamiento.max_candidates", 10))

    @property
    def confirmation_tolerance(self) -> float:
        return float(self.get_config("comportamiento.tolerancia_confirmacion", 0.35))

    @property
    def similarity_threshold(self) -> float:
        return float(self.get_config("comportamiento.umbral_similitud", 75))

    @property
    def max_photos(self) -> int:
        return int(self.get_config("comportamiento.max_fotos", 5))

    @property
    def delivery_fee(self) -> Decimal:
        return Decimal(str(self.get_config("pedidos.costo_envio", 500)))

    @property
    def discount_pct(self) -> Decimal:
        return Decimal(str(self.get_config("pedidos.descuento_porcentaje", 0)))

    @property
    def attendant_names(self) -> List[str]:
        """Nombres por los que los clientes piden hablar con una persona"""
        return [str(name) for name in self.get_config("negocio.encargados", []) or []]

    @property
    def auto_replies_enabled(self) -> bool:
        """Con false el bot no contesta a ningún cliente (los comandos del dueño siguen)"""
        return bool(self.get_config("comportamiento.respuestas_automaticas_activas", True))

    @property
    def ignored_contacts(self) -> Set[str]:
        """Teléfonos a los que el bot nunca contesta (solo dígitos)"""
        contacts = self.get_config("comportamiento.contactos_ignorar", []) or []
        return {re.sub(r"\D", "", str(phone)) for phone in contacts} - {""}

    @property
    def rate_limit_messages(self) -> int:
        return int(self.get_config("comportamiento.limite_mensajes.cantidad", 10))

    @property
    def rate_limit_window(self) -> timedelta:
        return timedelta(seconds=self.get_config("comportamiento.limite_mensajes.ventana_segundos", 60))
