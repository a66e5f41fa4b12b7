"""Transports de salida hacia los visores."""
