from __future__ import annotations

import logging

from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL, Engine, make_url

from .config import Settings


logger = logging.getLogger(__name__)


def build_sqlalchemy_url(settings: Settings) -> URL:
    # La key del store se usa como password cuando la URL no trae credenciales.
    url = make_url(settings.endpoint)
    if url.host and url.password is None:
        url = url.set(password=settings.key)
    return url


def get_engine(settings: Settings) -> Engine:
    url = build_sqlalchemy_url(settings)

    # Log básico de parámetros de conexión (sin contraseña)
    logger.info(
        "[DB] Create engine driver=%s host=%s port=%s db=%s user=%s",
        url.drivername,
        url.host,
        url.port,
        url.database,
        url.username,
    )

    engine = create_engine(url, pool_pre_ping=True, future=True)

    # Test de conexión: deja en logs si el servicio realmente llega a la BD
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("[DB] Connection test OK")
    except Exception:
        logger.exception("[DB] Connection test FAILED")

    return engine
