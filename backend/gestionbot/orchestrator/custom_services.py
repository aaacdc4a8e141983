"""
Servicios personalizados (currículum, invitaciones, tarjetas personales)

Un servicio solo se ofrece si figura en la lista de precios; el precio y el
tiempo de entrega publicados salen del catálogo y la plantilla aporta los
datos que hay que pedirle al cliente.
"""
import re
from dataclasses import dataclass, field
from typing import List, Optional

from loguru import logger

from ..models.catalog import CatalogItem
from ..services.catalog_index import CatalogIndex
from ..services.text_normalizer import normalize


MIN_DATA_INDICATORS = 3


@dataclass(frozen=True)
class ServiceTemplate:
    """Plantilla de un servicio personalizado"""
    tag: str
    name: str
    delivery_time: str
    detection: str
    catalog_keywords: List[str]
    fields: List[str]
    steps: List[str]
    data_indicators: List[str] = field(default_factory=list)


TEMPLATES = {
    "curriculum": ServiceTemplate(
        tag="curriculum",
        name="Currículum Vitae",
        delivery_time="24-48 horas",
        detection=r"\b(curriculum|cv|curriculo|hoja de vida|resume|hacer (un|mi) curriculum|armar (un|mi) cv)\b",
        catalog_keywords=["curriculum", "cv", "curriculum vitae", "curriculo", "hoja de vida", "resume"],
        fields=[
            "📌 *DATOS PERSONALES*",
            "• Nombre completo",
            "• Fecha de nacimiento",
            "• DNI",
            "• Dirección",
            "• Teléfono",
            "• Email",
            "",
            "🎓 *EDUCACIÓN*",
            "• Título/s obtenido/s",
            "• Institución",
            "• Año de egreso",
            "",
            "💼 *EXPERIENCIA LABORAL*",
            "• Puesto",
            "• Empresa",
            "• Período (desde-hasta)",
            "• Funciones principales",
            "",
            "🔧 *HABILIDADES*",
            "• Idiomas",
            "• Programas/herramientas",
            "• Competencias",
            "",
            "📷 *FOTO* (opcional)",
            "• Foto tipo carnet",
        ],
        steps=[
            "1️⃣ Enviá los datos por WhatsApp",
            "2️⃣ O traé la información en papel al local",
            "3️⃣ Elegí un diseño (te mostramos opciones)",
            "4️⃣ Revisá y aprobá el diseño",
            "5️⃣ Retirá tu CV impreso",
        ],
        data_indicators=[
            "datos personales", "nombre completo", "fecha de nacimiento", "dni",
            "educacion", "experiencia laboral", "habilidades",
        ],
    ),
    "invitacion": ServiceTemplate(
        tag="invitacion",
        name="Invitaciones Personalizadas",
        delivery_time="48-72 horas",
        detection=r"\b(invitacion|invitaciones|tarjeta de invitacion|hacer invitaciones)\b",
        catalog_keywords=["invitacion", "invitaciones", "tarjeta de invitacion"],
        fields=[
            "🎉 *DATOS DEL EVENTO*",
            "• Tipo de evento (cumpleaños, boda, etc.)",
            "• Nombre del festejado/a",
            "• Edad (si aplica)",
            "• Fecha del evento",
            "• Hora",
            "• Lugar/dirección",
            "",
            "🎨 *DISEÑO*",
            "• Tema/motivo preferido",
            "• Colores",
            "• Texto adicional",
            "",
            "📦 *CANTIDAD*",
            "• Número de invitaciones",
            "",
            "📷 *FOTO* (opcional)",
            "• Foto del festejado/a",
        ],
        steps=[
            "1️⃣ Enviá los datos por WhatsApp",
            "2️⃣ Elegí diseño (te mostramos modelos)",
            "3️⃣ Confirmá cantidad y detalles",
            "4️⃣ Aprobá el diseño final",
            "5️⃣ Retirá tus invitaciones",
        ],
        data_indicators=[
            "tipo de evento", "festejado", "festejada", "edad", "fecha del evento",
            "hora", "lugar", "tema", "colores", "cantidad",
        ],
    ),
    "tarjeta": ServiceTemplate(
        tag="tarjeta",
        name="Tarjetas Personales",
        delivery_time="24-48 horas",
        detection=r"\b(tarjeta personal|tarjeta profesional|tarjetas personales|business card)\b",
        catalog_keywords=["tarjeta personal", "tarjeta profesional", "tarjetas personales", "business card"],
        fields=[
            "👤 *DATOS*",
            "• Nombre completo",
            "• Profesión/cargo",
            "• Empresa/negocio",
            "• Teléfono",
            "• Email",
            "• Dirección (opcional)",
            "• Redes sociales (opcional)",
            "",
            "🎨 *DISEÑO*",
            "• Colores corporativos",
            "• Logo (si tenés)",
            "",
            "📦 *CANTIDAD*",
            "• Número de tarjetas",
        ],
        steps=[
            "1️⃣ Enviá los datos por WhatsApp",
            "2️⃣ Enviá tu logo (si tenés)",
            "3️⃣ Elegí diseño",
            "4️⃣ Confirmá cantidad",
            "5️⃣ Retirá tus tarjetas",
        ],
        data_indicators=[
            "nombre completo", "profesion", "cargo", "empresa", "telefono",
            "email", "direccion", "redes sociales", "logo", "cantidad",
        ],
    ),
}


def detect_service(text: str) -> Optional[str]:
    """Servicio pedido en el mensaje ("curriculum", "invitacion", "tarjeta") o None"""
    normalized = normalize(text)
    for tag, template in TEMPLATES.items():
        if re.search(template.detection, normalized):
            return tag
    return None


def find_service_item(index: CatalogIndex, tag: str) -> Optional[CatalogItem]:
    """
    Producto del catálogo que corresponde al servicio, en cualquier categoría.

    Coincide por nombre exacto o por contención con las palabras clave.
    """
    template = TEMPLATES.get(tag)
    if template is None:
        return None

    keywords = [normalize(keyword) for keyword in template.catalog_keywords]
    for item in index.all_items():
        name = normalize(item.name)
        for keyword in keywords:
            if name == keyword or keyword in name or (len(name) >= 3 and name in keyword):
                logger.info(f"✅ Servicio '{tag}' encontrado: {item.name} en {item.category}/{item.subcategory}")
                return item

    logger.info(f"❌ Servicio '{tag}' no figura en la lista de precios")
    return None


def looks_like_service_data(tag: Optional[str], text: str) -> bool:
    """True si el mensaje trae al menos 3 de los datos que pide el servicio"""
    template = TEMPLATES.get(tag or "")
    if template is None:
        return False

    normalized = normalize(text)
    found = sum(
        1 for indicator in template.data_indicators
        if re.search(rf"\b{re.escape(indicator)}\b", normalized)
    )
    return found >= MIN_DATA_INDICATORS
