"""
Recruitment Auth Core - Security Invariants
Règles IMMUABLES du coeur authentification / autorisation.
Aucune configuration ne peut les désactiver.
Total: 35 règles
"""

from enum import Enum
from typing import Final


class Severity(Enum):
    """Criticité d'un invariant."""

    BLOCKING = "blocking"
    WARNING = "warning"


class Invariant:
    """Définition d'un invariant de sécurité."""

    def __init__(self, id: str, rule: str, severity: Severity = Severity.BLOCKING):
        self.id = id
        self.rule = rule
        self.severity = severity

    def __repr__(self) -> str:
        return f"Invariant({self.id})"


# ══════════════════════════════════════════════════════════════════════════════
# SESSIONS (SESS_001-008) - 8 règles
# ══════════════════════════════════════════════════════════════════════════════

SESS_001 = Invariant("SESS_001", "Une seule valeur de refresh token valide par session à tout instant")
SESS_002 = Invariant("SESS_002", "expires_at dérivé de created_at/last_activity + TTL fixe (plus long si remember me)")
SESS_003 = Invariant("SESS_003", "Session expirée JAMAIS valide, quel que soit is_active")
SESS_004 = Invariant("SESS_004", "Invalidation idempotente, jamais d'erreur sur session absente")
SESS_005 = Invariant("SESS_005", "Refresh token à usage unique par rotation, aucune fenêtre de grâce")
SESS_006 = Invariant("SESS_006", "Rotation concurrente: un seul gagnant, le perdant reçoit INVALID_REFRESH_TOKEN")
SESS_007 = Invariant("SESS_007", "EXPIRED et REVOKED sont terminaux")
SESS_008 = Invariant("SESS_008", "Nombre de sessions actives par utilisateur plafonné", Severity.WARNING)

# ══════════════════════════════════════════════════════════════════════════════
# TOKENS (TOKEN_001-005) - 5 règles
# ══════════════════════════════════════════════════════════════════════════════

TOKEN_001 = Invariant("TOKEN_001", "Claims access token jamais utilisés après leur propre expiration")
TOKEN_002 = Invariant("TOKEN_002", "Refresh token aléatoire cryptographique, sans donnée utilisateur")
TOKEN_003 = Invariant("TOKEN_003", "Refresh token jamais indexé en clair (HMAC uniquement)")
TOKEN_004 = Invariant("TOKEN_004", "Access token auto-descriptif: sub, role, sid, exp")
TOKEN_005 = Invariant("TOKEN_005", "Token de vérification lié à un usage (purpose) unique")

# ══════════════════════════════════════════════════════════════════════════════
# AUTHENTIFICATION (AUTH_001-005) - 5 règles
# ══════════════════════════════════════════════════════════════════════════════

AUTH_001 = Invariant("AUTH_001", "Erreur générique identique pour utilisateur inconnu et mot de passe faux")
AUTH_002 = Invariant("AUTH_002", "Chaque tentative de login auditée (succès ou échec)")
AUTH_003 = Invariant("AUTH_003", "Échec audit JAMAIS bloquant pour le flux d'authentification")
AUTH_004 = Invariant("AUTH_004", "5 échecs login = verrouillage temporaire 15 minutes")
AUTH_005 = Invariant("AUTH_005", "Seul AuthenticationService crée des sessions")

# ══════════════════════════════════════════════════════════════════════════════
# AUTORISATION (RBAC_001-007) - 7 règles
# ══════════════════════════════════════════════════════════════════════════════

RBAC_001 = Invariant("RBAC_001", "Utilisateur sans rôle ou permission absente = refus, jamais une erreur")
RBAC_002 = Invariant("RBAC_002", "Évaluation des permissions sans cache, sur l'état courant")
RBAC_003 = Invariant("RBAC_003", "Validation existence avant toute écriture, pas d'assignation partielle")
RBAC_004 = Invariant("RBAC_004", "Assignation idempotente: association = relation, pas un journal")
RBAC_005 = Invariant("RBAC_005", "Remplacement des permissions d'un rôle atomique")
RBAC_006 = Invariant("RBAC_006", "Noms de rôle et de permission uniques")
RBAC_007 = Invariant("RBAC_007", "Rôle ou permission référencé non supprimable")

# ══════════════════════════════════════════════════════════════════════════════
# AUDIT (AUDIT_001-003) - 3 règles
# ══════════════════════════════════════════════════════════════════════════════

AUDIT_001 = Invariant("AUDIT_001", "Journal d'audit en ajout seul")
AUDIT_002 = Invariant("AUDIT_002", "Chaque événement haché SHA-384 pour détection d'altération")
AUDIT_003 = Invariant("AUDIT_003", "Métadonnées d'audit nettoyées avant stockage")

# ══════════════════════════════════════════════════════════════════════════════
# LOGGING (LOG_001-004) - 4 règles
# ══════════════════════════════════════════════════════════════════════════════

LOG_001 = Invariant("LOG_001", "Format JSON structuré obligatoire")
LOG_002 = Invariant("LOG_002", "Champs obligatoires: timestamp, level, correlation_id, logger, message")
LOG_003 = Invariant("LOG_003", "Timestamp format ISO 8601 avec timezone UTC")
LOG_004 = Invariant("LOG_004", "Secrets et tokens JAMAIS en clair dans les logs")

# ══════════════════════════════════════════════════════════════════════════════
# CONFIGURATION (CONF_001-003) - 3 règles
# ══════════════════════════════════════════════════════════════════════════════

CONF_001 = Invariant("CONF_001", "TTL access token inférieur ou égal au TTL de session")
CONF_002 = Invariant("CONF_002", "Secret de signature d'au moins 32 caractères")
CONF_003 = Invariant("CONF_003", "Seuil de rafraîchissement strictement entre 0 et 1")


ALL_INVARIANTS: Final[dict[str, Invariant]] = {
    # SESS (8)
    "SESS_001": SESS_001,
    "SESS_002": SESS_002,
    "SESS_003": SESS_003,
    "SESS_004": SESS_004,
    "SESS_005": SESS_005,
    "SESS_006": SESS_006,
    "SESS_007": SESS_007,
    "SESS_008": SESS_008,
    # TOKEN (5)
    "TOKEN_001": TOKEN_001,
    "TOKEN_002": TOKEN_002,
    "TOKEN_003": TOKEN_003,
    "TOKEN_004": TOKEN_004,
    "TOKEN_005": TOKEN_005,
    # AUTH (5)
    "AUTH_001": AUTH_001,
    "AUTH_002": AUTH_002,
    "AUTH_003": AUTH_003,
    "AUTH_004": AUTH_004,
    "AUTH_005": AUTH_005,
    # RBAC (7)
    "RBAC_001": RBAC_001,
    "RBAC_002": RBAC_002,
    "RBAC_003": RBAC_003,
    "RBAC_004": RBAC_004,
    "RBAC_005": RBAC_005,
    "RBAC_006": RBAC_006,
    "RBAC_007": RBAC_007,
    # AUDIT (3)
    "AUDIT_001": AUDIT_001,
    "AUDIT_002": AUDIT_002,
    "AUDIT_003": AUDIT_003,
    # LOG (4)
    "LOG_001": LOG_001,
    "LOG_002": LOG_002,
    "LOG_003": LOG_003,
    "LOG_004": LOG_004,
    # CONF (3)
    "CONF_001": CONF_001,
    "CONF_002": CONF_002,
    "CONF_003": CONF_003,
}

EXPECTED_COUNTS: Final[dict[str, int]] = {
    "SESS": 8,
    "TOKEN": 5,
    "AUTH": 5,
    "RBAC": 7,
    "AUDIT": 3,
    "LOG": 4,
    "CONF": 3,
}

TOTAL_INVARIANTS: Final[int] = len(ALL_INVARIANTS)
