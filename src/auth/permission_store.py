"""
Auth - Permission Store

Couche prédicats d'autorisation et gestion des rôles/permissions.

Invariants:
    RBAC_001: Utilisateur sans rôle ou permission absente = refus, jamais une erreur
    RBAC_002: Évaluation des permissions sans cache, sur l'état courant
    RBAC_003: Validation existence avant toute écriture, pas d'assignation partielle
    RBAC_004: Assignation idempotente: association = relation, pas un journal
    RBAC_005: Remplacement des permissions d'un rôle atomique
    RBAC_006: Noms de rôle et de permission uniques
    RBAC_007: Rôle ou permission référencé non supprimable
"""

import re
import uuid
from typing import Any, Dict, FrozenSet, List, Optional

from ..audit.interfaces import AuditAction, IAuditRecorder
from ..logging import StructuredLogger
from .errors import (
    AuthorizationError,
    DuplicateNameError,
    InvalidNameError,
    PermissionInUseError,
    PermissionNotFoundError,
    RoleInUseError,
    RoleManagementError,
    RoleNotFoundError,
)
from .interfaces import (
    IPermissionStore,
    IRoleRepository,
    IUserDirectory,
    Permission,
    PermissionCheckResult,
    Role,
)

ROLE_NAME_PATTERN = re.compile(r"^[a-z_][a-z0-9_]*$")
PERMISSION_NAME_PATTERN = re.compile(r"^[a-z_][a-z0-9_]*([.:][a-z0-9_]+)*$")

ROLE_NAME_LENGTH = (3, 50)
PERMISSION_NAME_LENGTH = (3, 100)
DISPLAY_NAME_LENGTH = (3, 100)
MAX_DESCRIPTION_LENGTH = 500


class PermissionChangeAction:
    """Actions acceptées par apply_permission_change."""

    ADD = "add"
    REMOVE = "remove"
    REPLACE = "replace"

    ALL = (ADD, REMOVE, REPLACE)


class PermissionStore(IPermissionStore):
    """
    Répond à "l'utilisateur X a-t-il la permission Y" sans exposer le
    modèle de rôles à l'appelant.

    Toute écriture sur un rôle est précédée de la validation complète
    des identifiants, puis exécutée sous le verrou du rôle.

    Example:
        store = PermissionStore(InMemoryRoleRepository(), directory)
        editor = await store.create_role("editor", "Editor")
        read = await store.create_permission("posts.read")
        await store.assign_permissions_to_role(editor.role_id, [read.permission_id])
        allowed = await store.check_user_permission(user_id, "posts.read")
    """

    def __init__(
        self,
        repository: IRoleRepository,
        user_directory: IUserDirectory,
        *,
        audit_recorder: Optional[IAuditRecorder] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        """
        Args:
            repository: Stockage rôles/permissions
            user_directory: Résolution utilisateur → rôle
            audit_recorder: Journal des changements de permissions
            logger: Logger structuré
        """
        self._repo = repository
        self._users = user_directory
        self._audit = audit_recorder
        self._logger = logger or StructuredLogger("auth.permission_store")

    # ══════════════════════════════════════════════════════════════════════════
    # VÉRIFICATIONS
    # ══════════════════════════════════════════════════════════════════════════

    async def _current_permission_names(self, user_id: str) -> FrozenSet[str]:
        """RBAC_002: Relu à chaque appel, aucun cache."""
        role_id = await self._users.get_role_id(user_id) if user_id else None
        if role_id is None:
            return frozenset()
        return frozenset(p.name for p in await self.get_permissions_by_role_id(role_id))

    async def check_user_permission(self, user_id: str, permission_name: str) -> bool:
        """
        RBAC_001: False si aucun rôle ou permission absente.
        """
        if not permission_name:
            return False
        return permission_name in await self._current_permission_names(user_id)

    async def check_user_all_permissions(self, user_id: str, permission_names: List[str]) -> PermissionCheckResult:
        """
        ET logique; liste vide = True.

        Returns:
            PermissionCheckResult avec missing renseigné
        """
        held = await self._current_permission_names(user_id)
        granted = [name for name in permission_names if name in held]
        missing = [name for name in permission_names if name not in held]
        return PermissionCheckResult(
            has_permission=not missing,
            checked=list(permission_names),
            granted=granted,
            missing=missing,
        )

    async def check_user_any_permission(self, user_id: str, permission_names: List[str]) -> PermissionCheckResult:
        """
        OU logique; liste vide = False.

        Returns:
            PermissionCheckResult avec granted renseigné
        """
        held = await self._current_permission_names(user_id)
        granted = [name for name in permission_names if name in held]
        return PermissionCheckResult(
            has_permission=bool(granted),
            checked=list(permission_names),
            granted=granted,
            missing=[name for name in permission_names if name not in held],
        )

    async def require_permission(self, user_id: str, permission_name: str) -> None:
        """
        Raises:
            AuthorizationError: Si la permission n'est pas détenue
        """
        if not await self.check_user_permission(user_id, permission_name):
            self._logger.warn("Permission denied", user_id=user_id, permission=permission_name)
            raise AuthorizationError(f"Permission required: {permission_name}", permission=permission_name)

    async def get_permissions_by_role_id(self, role_id: str) -> List[Permission]:
        """Permissions courantes d'un rôle, triées par nom (vide si rôle inconnu)."""
        permissions = []
        for permission_id in await self._repo.get_role_permission_ids(role_id):
            permission = await self._repo.get_permission(permission_id)
            if permission is not None:
                permissions.append(permission)
        return sorted(permissions, key=lambda p: p.name)

    async def get_user_permissions(self, user_id: str) -> List[str]:
        """Noms des permissions de l'utilisateur, triés."""
        return sorted(await self._current_permission_names(user_id))

    # ══════════════════════════════════════════════════════════════════════════
    # RELATION RÔLE ↔ PERMISSION
    # ══════════════════════════════════════════════════════════════════════════

    async def assign_permissions_to_role(
        self, role_id: str, permission_ids: List[str], actor_id: Optional[str] = None
    ) -> List[str]:
        """
        Ajoute des permissions à un rôle.

        RBAC_003: rôle et chaque id validés avant écriture.
        RBAC_004: une permission déjà assignée est ignorée.

        Returns:
            Ids effectivement ajoutés

        Raises:
            RoleNotFoundError: Rôle inconnu
            PermissionNotFoundError: Au moins un id inconnu
        """
        async with self._repo.lock_role(role_id):
            await self._validate_role_and_permissions(role_id, permission_ids)
            added = await self._repo.add_role_permissions(role_id, permission_ids)

        self._logger.info("Permissions assigned to role", role_id=role_id, added=len(added))
        if added:
            await self._audit_change(role_id, PermissionChangeAction.ADD, added, actor_id)
        return added

    async def remove_permissions_from_role(
        self, role_id: str, permission_ids: List[str], actor_id: Optional[str] = None
    ) -> List[str]:
        """
        Retire des permissions d'un rôle; les ids non assignés sont ignorés.

        Returns:
            Ids effectivement retirés
        """
        async with self._repo.lock_role(role_id):
            await self._validate_role_and_permissions(role_id, permission_ids)
            removed = await self._repo.remove_role_permissions(role_id, permission_ids)

        self._logger.info("Permissions removed from role", role_id=role_id, removed=len(removed))
        if removed:
            await self._audit_change(role_id, PermissionChangeAction.REMOVE, removed, actor_id)
        return removed

    async def replace_role_permissions(
        self, role_id: str, permission_ids: List[str], actor_id: Optional[str] = None
    ) -> List[Permission]:
        """
        RBAC_005: Remplace l'ensemble des permissions d'un rôle.

        Validation complète puis remplacement en une seule étape sous le
        verrou du rôle. Liste vide = rôle sans permission.

        Returns:
            Permissions du rôle après remplacement
        """
        async with self._repo.lock_role(role_id):
            await self._validate_role_and_permissions(role_id, permission_ids)
            await self._repo.set_role_permissions(role_id, list(dict.fromkeys(permission_ids)))

        result = await self.get_permissions_by_role_id(role_id)
        self._logger.info("Role permissions replaced", role_id=role_id, count=len(result))
        await self._audit_change(role_id, PermissionChangeAction.REPLACE, [p.permission_id for p in result], actor_id)
        return result

    async def apply_permission_change(
        self, role_id: str, action: str, permission_ids: List[str], actor_id: Optional[str] = None
    ) -> List[Permission]:
        """
        Point d'entrée unique add / remove / replace.

        Returns:
            Permissions du rôle après modification

        Raises:
            RoleManagementError: Action inconnue
        """
        if action == PermissionChangeAction.ADD:
            await self.assign_permissions_to_role(role_id, permission_ids, actor_id)
        elif action == PermissionChangeAction.REMOVE:
            await self.remove_permissions_from_role(role_id, permission_ids, actor_id)
        elif action == PermissionChangeAction.REPLACE:
            return await self.replace_role_permissions(role_id, permission_ids, actor_id)
        else:
            raise RoleManagementError(f"Unknown action '{action}', expected one of {', '.join(PermissionChangeAction.ALL)}")
        return await self.get_permissions_by_role_id(role_id)

    async def _validate_role_and_permissions(self, role_id: str, permission_ids: List[str]) -> None:
        if await self._repo.get_role(role_id) is None:
            raise RoleNotFoundError(f"Role '{role_id}' not found")

        unknown = [pid for pid in permission_ids if await self._repo.get_permission(pid) is None]
        if unknown:
            raise PermissionNotFoundError(f"Permissions not found: {', '.join(unknown)}")

    # ══════════════════════════════════════════════════════════════════════════
    # RÔLES & PERMISSIONS
    # ══════════════════════════════════════════════════════════════════════════

    async def create_role(self, name: str, display_name: str, description: Optional[str] = None) -> Role:
        """
        Crée un rôle.

        Raises:
            InvalidNameError: Nom, libellé ou description invalide
            DuplicateNameError: Nom déjà utilisé (RBAC_006)
        """
        validate_role_name(name)
        _check_length("display_name", display_name, *DISPLAY_NAME_LENGTH)
        _check_description(description)

        if await self._repo.get_role_by_name(name) is not None:
            raise DuplicateNameError(f"Role with name '{name}' already exists")

        role = Role(role_id=str(uuid.uuid4()), name=name, display_name=display_name, description=description)
        await self._repo.add_role(role)
        self._logger.info("Role created", role_name=name)
        return role

    async def delete_role(self, role_id: str) -> None:
        """
        Raises:
            RoleNotFoundError: Rôle inconnu
            RoleInUseError: Rôle encore attribué (RBAC_007)
        """
        role = await self._repo.get_role(role_id)
        if role is None:
            raise RoleNotFoundError(f"Role '{role_id}' not found")

        users = await self._users.count_users_with_role(role_id)
        if users:
            raise RoleInUseError(f"Role '{role.name}' is assigned to {users} user(s)")

        async with self._repo.lock_role(role_id):
            await self._repo.delete_role(role_id)
        self._logger.info("Role deleted", role_name=role.name)

    async def create_permission(self, name: str, description: Optional[str] = None) -> Permission:
        """
        Raises:
            InvalidNameError: Nom ou description invalide
            DuplicateNameError: Nom déjà utilisé (RBAC_006)
        """
        validate_permission_name(name)
        _check_description(description)

        if await self._repo.get_permission_by_name(name) is not None:
            raise DuplicateNameError(f"Permission with name '{name}' already exists")

        permission = Permission(permission_id=str(uuid.uuid4()), name=name, description=description)
        await self._repo.add_permission(permission)
        self._logger.info("Permission created", permission=name)
        return permission

    async def delete_permission(self, permission_id: str) -> None:
        """
        Raises:
            PermissionNotFoundError: Permission inconnue
            PermissionInUseError: Permission encore assignée à un rôle (RBAC_007)
        """
        permission = await self._repo.get_permission(permission_id)
        if permission is None:
            raise PermissionNotFoundError(f"Permission '{permission_id}' not found")

        roles = await self._repo.count_roles_with_permission(permission_id)
        if roles:
            raise PermissionInUseError(f"Permission '{permission.name}' is assigned to {roles} role(s)")

        await self._repo.delete_permission(permission_id)
        self._logger.info("Permission deleted", permission=permission.name)

    async def get_role(self, role_id: str) -> Optional[Role]:
        return await self._repo.get_role(role_id)

    async def list_roles(self) -> List[Role]:
        return await self._repo.list_roles()

    async def list_permissions(self) -> List[Permission]:
        return await self._repo.list_permissions()

    # ══════════════════════════════════════════════════════════════════════════
    # AUDIT
    # ══════════════════════════════════════════════════════════════════════════

    async def _audit_change(
        self, role_id: str, action: str, permission_ids: List[str], actor_id: Optional[str]
    ) -> None:
        if self._audit is None:
            return

        metadata: Dict[str, Any] = {"role_id": role_id, "change": action, "permission_ids": permission_ids}
        try:
            event = self._audit.build_event(
                AuditAction.ROLE_PERMISSIONS_CHANGED, user_id=actor_id, success=True, metadata=metadata
            )
            await self._audit.record(event)
        except Exception as e:
            self._logger.error("Audit recording failed", action=AuditAction.ROLE_PERMISSIONS_CHANGED.value, error=str(e))


# ══════════════════════════════════════════════════════════════════════════════
# VALIDATION DES NOMS
# ══════════════════════════════════════════════════════════════════════════════


def _check_length(label: str, value: Optional[str], minimum: int, maximum: int) -> None:
    if not isinstance(value, str) or not minimum <= len(value) <= maximum:
        raise InvalidNameError(f"{label} must be between {minimum} and {maximum} characters")


def _check_description(description: Optional[str]) -> None:
    if description is not None and len(description) > MAX_DESCRIPTION_LENGTH:
        raise InvalidNameError(f"description must be at most {MAX_DESCRIPTION_LENGTH} characters")


def validate_role_name(name: str) -> None:
    """
    Raises:
        InvalidNameError: Si nom hors format ^[a-z_][a-z0-9_]*$ ou longueur 3-50
    """
    _check_length("Role name", name, *ROLE_NAME_LENGTH)
    if not ROLE_NAME_PATTERN.fullmatch(name):
        raise InvalidNameError(
            "Role name must start with a lowercase letter or underscore and contain only lowercase letters, digits and underscores"
        )


def validate_permission_name(name: str) -> None:
    """
    Raises:
        InvalidNameError: Si nom hors format (segments séparés par '.' ou ':') ou longueur 3-100
    """
    _check_length("Permission name", name, *PERMISSION_NAME_LENGTH)
    if not PERMISSION_NAME_PATTERN.fullmatch(name):
        raise InvalidNameError(
            "Permission name must be lowercase segments separated by '.' or ':' (e.g. posts.read)"
        )
