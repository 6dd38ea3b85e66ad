"""
Auth - Role Repository

Stockage en mémoire des rôles, permissions et de la relation
rôle↔permission.

Invariants:
    RBAC_004: Relation = ensemble de paires, aucun doublon
    RBAC_005: Remplacement en une seule étape
"""

import asyncio
from typing import Dict, FrozenSet, List, Optional, Set

from .interfaces import IRoleRepository, Permission, Role


class InMemoryRoleRepository(IRoleRepository):
    """
    Repository mono-processus.

    Les écritures concurrentes sur un même rôle sont sérialisées par
    l'appelant via lock_role(); le repository ne fait que garantir que
    chaque opération s'applique en une seule étape.

    Example:
        repo = InMemoryRoleRepository()
        await repo.add_role(Role("r-1", "editor", "Editor"))
        async with repo.lock_role("r-1"):
            await repo.set_role_permissions("r-1", ["p-1", "p-2"])
    """

    def __init__(self) -> None:
        self._roles: Dict[str, Role] = {}
        self._permissions: Dict[str, Permission] = {}
        self._role_permissions: Dict[str, FrozenSet[str]] = {}
        self._role_locks: Dict[str, asyncio.Lock] = {}

    def lock_role(self, role_id: str) -> asyncio.Lock:
        lock = self._role_locks.get(role_id)
        if lock is None:
            lock = self._role_locks[role_id] = asyncio.Lock()
        return lock

    # ══════════════════════════════════════════════════════════════════════════
    # RÔLES
    # ══════════════════════════════════════════════════════════════════════════

    async def get_role(self, role_id: str) -> Optional[Role]:
        return self._roles.get(role_id)

    async def get_role_by_name(self, name: str) -> Optional[Role]:
        return next((r for r in self._roles.values() if r.name == name), None)

    async def list_roles(self) -> List[Role]:
        return sorted(self._roles.values(), key=lambda r: r.name)

    async def add_role(self, role: Role) -> None:
        if role.role_id in self._roles:
            raise KeyError(f"Rôle déjà présent: {role.role_id}")
        self._roles[role.role_id] = role
        self._role_permissions[role.role_id] = frozenset()

    async def delete_role(self, role_id: str) -> bool:
        if self._roles.pop(role_id, None) is None:
            return False
        self._role_permissions.pop(role_id, None)
        self._role_locks.pop(role_id, None)
        return True

    # ══════════════════════════════════════════════════════════════════════════
    # PERMISSIONS
    # ══════════════════════════════════════════════════════════════════════════

    async def get_permission(self, permission_id: str) -> Optional[Permission]:
        return self._permissions.get(permission_id)

    async def get_permission_by_name(self, name: str) -> Optional[Permission]:
        return next((p for p in self._permissions.values() if p.name == name), None)

    async def list_permissions(self) -> List[Permission]:
        return sorted(self._permissions.values(), key=lambda p: p.name)

    async def add_permission(self, permission: Permission) -> None:
        if permission.permission_id in self._permissions:
            raise KeyError(f"Permission déjà présente: {permission.permission_id}")
        self._permissions[permission.permission_id] = permission

    async def delete_permission(self, permission_id: str) -> bool:
        return self._permissions.pop(permission_id, None) is not None

    # ══════════════════════════════════════════════════════════════════════════
    # RELATION RÔLE ↔ PERMISSION
    # ══════════════════════════════════════════════════════════════════════════

    async def get_role_permission_ids(self, role_id: str) -> FrozenSet[str]:
        return self._role_permissions.get(role_id, frozenset())

    async def add_role_permissions(self, role_id: str, permission_ids: List[str]) -> List[str]:
        current = self._role_permissions.get(role_id, frozenset())
        added: List[str] = []
        seen: Set[str] = set(current)
        for permission_id in permission_ids:
            if permission_id not in seen:
                seen.add(permission_id)
                added.append(permission_id)
        self._role_permissions[role_id] = frozenset(seen)
        return added

    async def remove_role_permissions(self, role_id: str, permission_ids: List[str]) -> List[str]:
        current = self._role_permissions.get(role_id, frozenset())
        removed = [pid for pid in dict.fromkeys(permission_ids) if pid in current]
        self._role_permissions[role_id] = current.difference(removed)
        return removed

    async def set_role_permissions(self, role_id: str, permission_ids: List[str]) -> None:
        # RBAC_005: un seul assignement, aucun état intermédiaire observable
        self._role_permissions[role_id] = frozenset(permission_ids)

    async def count_roles_with_permission(self, permission_id: str) -> int:
        return sum(1 for ids in self._role_permissions.values() if permission_id in ids)
