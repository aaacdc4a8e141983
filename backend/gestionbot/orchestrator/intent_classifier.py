"""
Intent Classifier - detección de intenciones por reglas

Todas las expresiones se evalúan sobre texto normalizado (sin acentos,
minúsculas, sin signos). Las frases cortas de confirmación (sí/no,
confirmar) se comparan con tolerancia a errores de tipeo.
"""
import re
from typing import Dict, Iterable, List, Optional

from ..services.fuzzy_matcher import words_match_with_tolerance
from ..services.text_normalizer import normalize


YES_PHRASES = ["si", "ok", "dale", "confirmo", "agregar", "anadir", "aceptar", "acepto"]
NO_PHRASES = ["no", "nope", "cancel", "no quiero", "cancelar"]
CANCEL_CANDIDATES_PHRASES = ["cancelar", "no quiero", "olvida"]
CONFIRM_ORDER_PHRASES = ["confirmar", "confirmo", "finalizar", "terminar", "terminar pedido"]

DEFAULT_ATTENDANTS = ["dueno", "duena", "encargado", "encargada", "vendedor", "vendedora"]


class IntentClassifier:
    """Detecta intenciones del cliente con expresiones regulares"""

    # Patrones por intención (sobre texto normalizado)
    INTENT_PATTERNS: Dict[str, List[str]] = {
        "saludo": [
            r"^(hola|holaa|buenas|buen dia|buenos dias|buenas tardes|buenas noches|hey|hi)$",
            r"^(hola|buenas)\s+(que tal|como estas|como va)$",
        ],
        "horario": [
            r"\b(horario|horarios|hora|atencion|abren|cierran|abierto|abierta)\b",
        ],
        "ubicacion": [
            r"\b(ubicacion|direccion|donde|local|negocio|como llego)\b",
        ],
        "pago": [
            r"\b(pago|pagos|pagar|efectivo|tarjeta|transfer\w*|mercadopago|mercado pago|debito|credito)\b",
        ],
        "contacto": [
            r"\b(contacto|telefono|whatsapp|llamar)\b",
        ],
        "catalogo": [
            r"^(lista|la lista|catalogo|el catalogo|que tienen|que venden|productos|menu)$",
            r"\b(ver|mandame|pasame) (la lista|el catalogo|los productos)\b",
        ],
        "consulta_stock": [
            r"\b(stock|hay|tienen|tenes|disponible|queda|quedan)\b",
        ],
        "historial": [
            r"\b(mis pedidos|mi historial|historial|pedidos anteriores|ultimos pedidos)\b",
        ],
        "ver_carrito": [
            r"^(ver )?(carrito|mi carrito|el carrito|pedido|mi pedido)$",
            r"\b(ver|mostrar|mostrame) (el |mi )?(carrito|pedido)\b",
            r"\bque (tengo|llevo) en (el|mi) carrito\b",
        ],
        "vaciar_carrito": [
            r"^(cancelar|vaciar|borrar carrito|limpiar carrito|vaciar carrito)$",
        ],
        "quitar_item": [
            r"\b(quitar|quita|quitame|eliminar|elimina|sacar|saca|sacame|borrar|borra)\b\D*\d+",
        ],
        "foto": [
            r"\b(foto|fotos|imagen|imagenes|pic|pics|fotografia\w*|picture)\b",
            r"\b(como es|como son|mostrame|muestrame|a ver)\b",
        ],
        "fuera_de_tema": [
            r"\b(que onda|sale|vamos|juga\w*|juego|juegos|fortnite|valorant|lol|free fire|"
            r"minecraft|fifa|pes|cod|call of duty|among us|roblox|gta)\b",
        ],
        "negocio": [
            r"\b(precio\w*|cuanto|cuesta\w*|vend\w*|tien\w*|hay|stock|compra\w*|producto\w*|"
            r"catalogo|lista|menu|donde|ubicacion|horario|pago|entrega|delivery|envio|"
            r"servicio|atencion|consulta|necesito|quiero|busco|me interesa)\b",
        ],
        "intencion_compra": [
            r"\b(quiero|quisiera|necesito|busco|buscando|tenes|tienen|tiene|hay|venden|vendes|"
            r"precio|cuanto|cuesta|cuestan|sale|salen|comprar|llevar|dame|pasame|me interesa)\b",
        ],
    }

    HANDOFF_PATTERNS = [
        r"\b(quiero|necesito|quisiera|puedo|me gustaria|podria) (hablar|comunicarme|charlar) con (el |la |un |una )?({names})\b",
        r"\b(hablar|comunicarme) con (alguien|una persona|un humano|una humana)\b",
        r"\batencion personal\w*\b",
        r"\bpersona real\b",
        r"\b(un|una) humano\b",
        r"\b(transferir|transferime|pasar|pasame|pasarme|derivar|derivame|derivarme|comunicame) con\b",
    ]

    def __init__(self, attendant_names: Optional[Iterable[str]] = None, tolerance: float = 0.35):
        """
        Args:
            attendant_names: Nombres del dueño/encargados que los clientes usan
            tolerance: Tolerancia de las frases de confirmación (proporción de la longitud)
        """
        self.tolerance = tolerance
        names = list(DEFAULT_ATTENDANTS) + ["alguien", "una persona", "persona", "humano"]
        names += [normalize(name) for name in attendant_names or [] if normalize(name)]
        alternatives = "|".join(re.escape(name) for name in dict.fromkeys(names))

        self._handoff = [
            re.compile(pattern.format(names=alternatives)) for pattern in self.HANDOFF_PATTERNS
        ]
        self._compiled = {
            intent: [re.compile(pattern) for pattern in patterns]
            for intent, patterns in self.INTENT_PATTERNS.items()
        }

    def matches(self, intent: str, text: str) -> bool:
        """True si el texto (normalizado) dispara la intención"""
        normalized = normalize(text)
        return any(p.search(normalized) for p in self._compiled.get(intent, []))

    def first_match(self, intents: Iterable[str], text: str) -> Optional[str]:
        """Primera intención de la lista que coincide (el orden importa)"""
        for intent in intents:
            if self.matches(intent, text):
                return intent
        return None

    # ==================== Frases de confirmación ====================

    def is_yes(self, text: str) -> bool:
        return words_match_with_tolerance(text, YES_PHRASES, self.tolerance)

    def is_no(self, text: str) -> bool:
        return words_match_with_tolerance(text, NO_PHRASES, self.tolerance)

    def is_cancel_candidates(self, text: str) -> bool:
        return words_match_with_tolerance(text, CANCEL_CANDIDATES_PHRASES, self.tolerance)

    def is_confirm_order(self, text: str) -> bool:
        return words_match_with_tolerance(text, CONFIRM_ORDER_PHRASES, self.tolerance)

    # ==================== Detecciones especiales ====================

    def is_handoff_request(self, text: str) -> bool:
        normalized = normalize(text)
        return any(p.search(normalized) for p in self._handoff)

    @staticmethod
    def extract_ordinal(text: str) -> Optional[int]:
        """Número de opción cuando el mensaje es solo un número ("2", "la 2", "opcion 2")"""
        match = re.fullmatch(r"(?:(?:la|el|opcion|numero|nro)\s+)?(\d{1,3})", normalize(text))
        return int(match.group(1)) if match else None
