"""
Auth - Request Gate

Résolution de l'identité d'une requête à partir de ses headers,
indépendante de tout framework HTTP. Le gate s'exécute une fois par
requête.

Invariants:
    TOKEN_001: Access token expiré rejeté à la frontière
    SESS_003: Session expirée JAMAIS valide
"""

from typing import Mapping, Optional, Tuple

from ..logging import StructuredLogger, correlation_scope, extract_correlation_id
from .errors import SessionError, TokenValidationError
from .interfaces import AuthContext, IPermissionStore, ISessionStore, ITokenIssuer

AUTHORIZATION_HEADER = "Authorization"
SESSION_HEADER = "X-Session-ID"
BEARER_PREFIX = "bearer "


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted and value and value.strip():
            return value.strip()
    return None


def extract_credentials(headers: Mapping[str, str]) -> Tuple[Optional[str], Optional[str]]:
    """
    Extrait le bearer token et le header X-Session-ID.

    Args:
        headers: Headers de la requête (noms insensibles à la casse)

    Returns:
        (bearer_token, session_id), chaque élément None si absent
    """
    token = None
    authorization = _header(headers, AUTHORIZATION_HEADER)
    if authorization and authorization.lower().startswith(BEARER_PREFIX):
        token = authorization[len(BEARER_PREFIX):].strip() or None
    return token, _header(headers, SESSION_HEADER)


class RequestGate:
    """
    Porte d'entrée authentification/autorisation d'une requête.

    Example:
        gate = RequestGate(issuer, store, permission_store)
        context = await gate.authorize(request.headers, "posts.write")
        with correlation_scope(context.correlation_id):
            ...
    """

    def __init__(
        self,
        token_issuer: ITokenIssuer,
        session_store: ISessionStore,
        permission_store: Optional[IPermissionStore] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        self._issuer = token_issuer
        self._sessions = session_store
        self._permissions = permission_store
        self._logger = logger or StructuredLogger("auth.request_gate")

    async def authenticate(self, headers: Mapping[str, str]) -> AuthContext:
        """
        Vérifie le bearer token puis la session associée.

        La session est celle du claim sid, sinon celle du header
        X-Session-ID. Les deux doivent concorder quand ils sont présents.

        Raises:
            SessionError: SESSION_ID_MISSING ou SESSION_INVALID
        """
        with correlation_scope(extract_correlation_id(headers)) as correlation_id:
            token, header_session_id = extract_credentials(headers)
            if token is None:
                self._logger.warn("Request rejected: missing bearer token")
                raise SessionError("Authentication required", SessionError.SESSION_INVALID)

            try:
                claims = self._issuer.verify_access_token(token)
            except TokenValidationError as e:
                self._logger.warn("Request rejected: invalid access token", code=e.code)
                raise SessionError("Invalid or expired session", SessionError.SESSION_INVALID) from e

            session_id = claims.session_id or header_session_id
            if not session_id:
                raise SessionError("Session ID required", SessionError.SESSION_ID_MISSING)
            if header_session_id and claims.session_id and header_session_id != claims.session_id:
                self._logger.warn("Request rejected: session mismatch", user_id=claims.user_id)
                raise SessionError("Invalid or expired session", SessionError.SESSION_INVALID)

            result = await self._sessions.validate_session(session_id)
            if not result.is_valid or result.session is None or result.session.user_id != claims.user_id:
                self._logger.warn("Request rejected: invalid session", user_id=claims.user_id, reason=result.error)
                raise SessionError("Invalid or expired session", SessionError.SESSION_INVALID)

            self._logger.debug("Request authenticated", user_id=claims.user_id)
            return AuthContext(
                claims=claims,
                session=result.session,
                needs_refresh=result.needs_refresh,
                correlation_id=correlation_id,
            )

    async def authorize(self, headers: Mapping[str, str], permission: str) -> AuthContext:
        """
        Authentifie puis exige une permission.

        Raises:
            SessionError: Authentification échouée
            AuthorizationError: Permission absente
        """
        if self._permissions is None:
            raise RuntimeError("RequestGate configuré sans permission_store")

        context = await self.authenticate(headers)
        with correlation_scope(context.correlation_id):
            await self._permissions.require_permission(context.user_id, permission)
        return context
