"""
Recruitment Auth Core - Clock
Horloge injectable (UTC, timezone-aware) partagée par tous les composants.
"""

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Horloge système par défaut."""
    return datetime.now(timezone.utc)
