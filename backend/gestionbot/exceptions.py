"""
Excepciones del bot
"""


class GestionBotError(Exception):
    """Error base del bot"""


class CatalogSnapshotError(GestionBotError):
    """La lista de precios recibida no se puede indexar"""


class OrderRecordError(GestionBotError):
    """Falla al registrar el pedido en el sistema de pedidos"""
