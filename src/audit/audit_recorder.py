"""
Audit Recorder Implementation

Journal d'audit en ajout seul avec hachage SHA-384.

Invariants:
    AUDIT_001: Journal d'audit en ajout seul
    AUDIT_002: Chaque événement haché SHA-384 pour détection d'altération
    AUDIT_003: Métadonnées d'audit nettoyées avant stockage
"""

import hashlib
import json
import uuid
from dataclasses import replace
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..core.clock import Clock, utc_now
from ..logging import StructuredLogger
from .interfaces import AuditAction, AuditEvent, IAuditRecorder

AuditSink = Callable[[AuditEvent], Awaitable[None]]


class AuditRecorderError(Exception):
    """Erreur enregistrement événement audit."""

    pass


class AuditRecorder(IAuditRecorder):
    """
    Journal d'audit en mémoire, en ajout seul.

    Chaque événement est nettoyé, haché puis ajouté au journal. Un sink
    asynchrone optionnel reçoit une copie (persistance externe).

    Example:
        recorder = AuditRecorder()
        event = recorder.build_event(AuditAction.LOGIN, user_id="u-1", success=True)
        await recorder.record(event)
    """

    MAX_KEY_LENGTH = 100
    MAX_STRING_LENGTH = 1000
    MAX_LIST_ITEMS = 50
    MAX_DEPTH = 2

    def __init__(
        self,
        sink: Optional[AuditSink] = None,
        logger: Optional[StructuredLogger] = None,
        clock: Optional[Clock] = None,
    ):
        """
        Args:
            sink: Coroutine appelée avec chaque événement stocké
            logger: Logger structuré
            clock: Horloge injectable (UTC)
        """
        self._events: List[AuditEvent] = []
        self._sink = sink
        self._logger = logger or StructuredLogger("audit.recorder")
        self._clock = clock or utc_now

    def build_event(
        self,
        action: AuditAction,
        user_id: Optional[str] = None,
        success: bool = True,
        error_message: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AuditEvent:
        """Construit un événement horodaté avec un identifiant unique."""
        if not isinstance(action, AuditAction):
            raise AuditRecorderError(f"Action invalide: {action}")

        return AuditEvent(
            event_id=str(uuid.uuid4()),
            action=action,
            user_id=user_id,
            success=success,
            timestamp=self._clock(),
            error_message=error_message,
            ip_address=ip_address,
            user_agent=user_agent,
            metadata=dict(metadata or {}),
        )

    async def record(self, event: AuditEvent) -> AuditEvent:
        """
        Enregistre un événement (AUDIT_001-003).

        L'événement est stocké avant l'appel au sink: un sink en échec
        n'efface jamais l'entrée locale.

        Raises:
            AuditRecorderError: Événement invalide ou sink en échec
        """
        if not isinstance(event, AuditEvent):
            raise AuditRecorderError(f"Événement invalide: {event!r}")

        clean_event = replace(event, metadata=self._sanitize_metadata(event.metadata), hash_value=None)
        stored = replace(clean_event, hash_value=self.compute_event_hash(clean_event))
        self._events.append(stored)

        if self._sink is not None:
            try:
                await self._sink(stored)
            except Exception as e:
                raise AuditRecorderError(f"Sink audit en échec: {e}") from e

        self._logger.debug("Audit event recorded", **self.get_event_summary(stored))
        return stored

    def events(self) -> List[AuditEvent]:
        """Retourne une copie du journal (ordre d'enregistrement)."""
        return list(self._events)

    def query(
        self,
        action: Optional[AuditAction] = None,
        user_id: Optional[str] = None,
        success: Optional[bool] = None,
    ) -> List[AuditEvent]:
        """Filtre le journal; un critère None est ignoré."""
        return [
            e
            for e in self._events
            if (action is None or e.action == action)
            and (user_id is None or e.user_id == user_id)
            and (success is None or e.success == success)
        ]

    def verify_integrity(self, event: AuditEvent) -> bool:
        """
        AUDIT_002: Recalcule le hash et le compare à celui stocké.

        Returns:
            True si l'événement n'a pas été altéré
        """
        if not event.hash_value:
            return False
        return self.compute_event_hash(event) == event.hash_value

    def compute_event_hash(self, event: AuditEvent) -> str:
        """
        Calcule hash SHA-384 événement (AUDIT_002).

        Returns:
            Hash SHA-384 hexadécimal (96 caractères)
        """
        canonical_data = self._create_canonical_event_data(event)
        return hashlib.sha384(canonical_data.encode("utf-8")).hexdigest()

    def _create_canonical_event_data(self, event: AuditEvent) -> str:
        # Tous les champs sauf hash_value, clés triées
        hash_data = {
            "event_id": event.event_id,
            "action": event.action.value,
            "user_id": event.user_id,
            "success": event.success,
            "timestamp": event.timestamp.isoformat(),
            "error_message": event.error_message,
            "ip_address": event.ip_address,
            "user_agent": event.user_agent,
            "metadata": event.metadata,
        }
        return json.dumps(hash_data, sort_keys=True, separators=(",", ":"), default=str)

    def _sanitize_metadata(self, metadata: Dict[str, Any]) -> Dict[str, Any]:
        """
        AUDIT_003: Nettoie métadonnées pour éviter injection/corruption.

        Clés non-str ou trop longues écartées, chaînes tronquées,
        profondeur et longueur des listes bornées.
        """
        clean_metadata: Dict[str, Any] = {}

        for key, value in metadata.items():
            if not isinstance(key, str) or len(key) > self.MAX_KEY_LENGTH:
                continue

            if isinstance(value, str):
                clean_metadata[key] = value[: self.MAX_STRING_LENGTH]
            elif value is None or isinstance(value, (int, float, bool)):
                clean_metadata[key] = value
            elif isinstance(value, dict):
                clean_metadata[key] = self._sanitize_dict(value, max_depth=self.MAX_DEPTH)
            elif isinstance(value, (list, tuple, set, frozenset)):
                clean_metadata[key] = self._sanitize_list(list(value), max_items=self.MAX_LIST_ITEMS)

        return clean_metadata

    def _sanitize_dict(self, data: Dict[str, Any], max_depth: int) -> Dict[str, Any]:
        """Nettoie dictionnaire récursivement."""
        if max_depth <= 0:
            return {}

        clean_dict: Dict[str, Any] = {}
        for k, v in data.items():
            if isinstance(k, str) and len(k) <= 50:
                if isinstance(v, str):
                    clean_dict[k] = v[: self.MAX_STRING_LENGTH]
                elif v is None or isinstance(v, (int, float, bool)):
                    clean_dict[k] = v
                elif isinstance(v, dict):
                    clean_dict[k] = self._sanitize_dict(v, max_depth - 1)

        return clean_dict

    def _sanitize_list(self, data: list, max_items: int) -> list:
        clean_list = []
        for item in data[:max_items]:
            if isinstance(item, str):
                clean_list.append(item[: self.MAX_STRING_LENGTH])
            elif isinstance(item, (int, float, bool)):
                clean_list.append(item)
        return clean_list

    def get_event_summary(self, event: AuditEvent) -> Dict[str, Any]:
        """
        Génère résumé événement pour logging/monitoring.

        Returns:
            Résumé avec informations clés
        """
        return {
            "event_id": event.event_id,
            "action": event.action.value,
            "user": event.user_id,
            "success": event.success,
            "timestamp": event.timestamp.isoformat(),
            "hash": event.hash_value[:16] + "..." if event.hash_value else None,
        }
