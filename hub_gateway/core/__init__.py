"""Core module - piezas base del gateway de hubs.

Estructura:
- transport/   → Conexión MQTT (suscripción y publicación)
- domain/      → Mensajes, direcciones MAC y errores de dominio
"""
