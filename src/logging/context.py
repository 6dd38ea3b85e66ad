"""
Logging - Correlation Context

Propagation du correlation_id via ContextVar: chaque tâche asyncio
hérite du contexte de la requête qui l'a créée.
"""

import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Mapping, Optional

CORRELATION_HEADER: str = "X-Correlation-ID"

correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> Optional[str]:
    """Retourne le correlation_id du contexte courant."""
    return correlation_id_var.get()


def set_correlation_id(correlation_id: Optional[str]) -> None:
    """Définit (ou efface avec None) le correlation_id du contexte courant."""
    correlation_id_var.set(correlation_id)


def new_correlation_id() -> str:
    """Génère un correlation_id (UUID v4)."""
    return str(uuid.uuid4())


@contextmanager
def correlation_scope(correlation_id: Optional[str] = None) -> Iterator[str]:
    """
    Fixe un correlation_id pour la durée du bloc.

    Args:
        correlation_id: ID existant ou None pour en générer un

    Yields:
        correlation_id actif dans le bloc

    Example:
        with correlation_scope(request_id):
            await service.login(...)
    """
    resolved = correlation_id or new_correlation_id()
    token = correlation_id_var.set(resolved)
    try:
        yield resolved
    finally:
        correlation_id_var.reset(token)


def extract_correlation_id(headers: Mapping[str, str]) -> Optional[str]:
    """
    Extrait le header X-Correlation-ID (nom insensible à la casse).

    Returns:
        Valeur du header ou None si absent/vide
    """
    wanted = CORRELATION_HEADER.lower()
    for name, value in headers.items():
        if name.lower() == wanted and value and value.strip():
            return value.strip()
    return None
