"""Core - lógica pura del bridge (sin I/O).

Estructura:
- domain/         → Registro canónico y tipos de medición
- normalization/  → Mapeo de claves del firmware al esquema fijo
"""
