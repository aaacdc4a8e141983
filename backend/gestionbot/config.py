"""
Configuración de ejecución (variables de entorno / .env)
"""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent


@dataclass(frozen=True)
class Settings:
    """Credenciales y rutas del bot"""
    zapi_instance_id: Optional[str]
    zapi_token: Optional[str]
    zapi_client_token: Optional[str]
    owner_phone: Optional[str]
    orders_api_url: Optional[str]
    orders_api_key: Optional[str]
    catalog_path: Path
    negocio_config_path: Path
    sweep_interval_seconds: int


def load_settings(env_file: Optional[str] = None) -> Settings:
    """
    Lee la configuración del entorno (y del .env si existe).

    Sin ORDERS_API_URL los pedidos se registran en memoria.
    """
    load_dotenv(env_file or BASE_DIR / ".env")

    return Settings(
        zapi_instance_id=os.getenv("ZAPI_INSTANCE_ID"),
        zapi_token=os.getenv("ZAPI_TOKEN"),
        zapi_client_token=os.getenv("ZAPI_CLIENT_TOKEN"),
        owner_phone=os.getenv("OWNER_PHONE"),
        orders_api_url=os.getenv("ORDERS_API_URL"),
        orders_api_key=os.getenv("ORDERS_API_KEY"),
        catalog_path=Path(os.getenv("CATALOG_PATH", str(BASE_DIR / "data" / "lista_precios.json"))),
        negocio_config_path=Path(os.getenv("NEGOCIO_CONFIG", str(BASE_DIR / "config" / "negocio.yaml"))),
        sweep_interval_seconds=int(os.getenv("SWEEP_INTERVAL_SECONDS", "60")),
    )
