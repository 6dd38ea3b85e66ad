"""
Audit & Tracabilité

Invariants couverts:
- AUDIT_001 (Journal en ajout seul)
- AUDIT_002 (Hash SHA-384 par événement)
- AUDIT_003 (Métadonnées nettoyées)
"""
from .interfaces import (
    IAuditRecorder,
    AuditEvent,
    AuditAction,
)
from .audit_recorder import AuditRecorder, AuditRecorderError, AuditSink

__all__ = [
    # Interfaces
    "IAuditRecorder",
    # Data classes
    "AuditEvent",
    "AuditAction",
    "AuditSink",
    # Implementations
    "AuditRecorder",
    # Exceptions
    "AuditRecorderError",
]
