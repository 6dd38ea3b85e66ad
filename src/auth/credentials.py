"""
Auth - Credentials

Hachage des mots de passe (bcrypt) et annuaire utilisateur en mémoire.

Invariant:
    AUTH_001: Même chemin (et même coût) pour email inconnu et mot de passe faux
"""

import uuid
from dataclasses import replace
from typing import Dict, Optional

import bcrypt

from .interfaces import ICredentialVerifier, IRoleRepository, IUserDirectory, UserRecord


class PasswordHasher:
    """
    Hachage bcrypt.

    Example:
        hasher = PasswordHasher()
        hashed = hasher.hash("s3cret-pass")
        assert hasher.verify("s3cret-pass", hashed)
    """

    DEFAULT_ROUNDS: int = 12

    def __init__(self, rounds: int = DEFAULT_ROUNDS):
        """
        Args:
            rounds: Facteur de coût bcrypt (4 minimum)
        """
        if rounds < 4:
            raise ValueError("rounds doit être >= 4")
        self._rounds = rounds
        self._dummy_hash: Optional[bytes] = None

    def hash(self, password: str) -> str:
        """
        Raises:
            ValueError: Si mot de passe vide ou trop long pour bcrypt
        """
        if not password:
            raise ValueError("Mot de passe vide")
        hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=self._rounds))
        return hashed.decode("utf-8")

    def verify(self, password: str, hashed: str) -> bool:
        """Ne lève jamais: False sur hash malformé ou mot de passe invalide."""
        if not password or not hashed:
            return False
        try:
            return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
        except (ValueError, TypeError):
            return False

    def dummy_verify(self, password: str) -> bool:
        """
        AUTH_001: Vérification factice pour email inconnu.

        Consomme le même coût bcrypt qu'une vraie vérification et
        retourne toujours False.
        """
        if self._dummy_hash is None:
            self._dummy_hash = bcrypt.hashpw(uuid.uuid4().bytes, bcrypt.gensalt(rounds=self._rounds))
        # bcrypt refuse au-delà de 72 octets
        bcrypt.checkpw((password or "").encode("utf-8")[:72], self._dummy_hash)
        return False


class InMemoryUserDirectory(ICredentialVerifier, IUserDirectory):
    """
    Annuaire utilisateur mono-processus.

    Sert à la fois de vérificateur d'identifiants (email + mot de passe)
    et de résolution utilisateur → rôle. Les noms de rôle sont relus
    dans le repository à chaque appel.

    Example:
        directory = InMemoryUserDirectory(PasswordHasher(rounds=4), roles)
        user = await directory.add_user("alice@example.com", "pass-1234", role_id=editor.role_id)
    """

    def __init__(self, hasher: Optional[PasswordHasher] = None, role_repository: Optional[IRoleRepository] = None):
        self._hasher = hasher or PasswordHasher()
        self._roles = role_repository
        self._users: Dict[str, UserRecord] = {}
        self._by_email: Dict[str, str] = {}  # email normalisé -> user_id

    @staticmethod
    def normalize_email(email: str) -> str:
        return (email or "").strip().lower()

    async def add_user(
        self,
        email: str,
        password: str,
        role_id: Optional[str] = None,
        user_id: Optional[str] = None,
        is_active: bool = True,
    ) -> UserRecord:
        """
        Enregistre un utilisateur.

        Raises:
            ValueError: Email vide ou déjà utilisé
        """
        key = self.normalize_email(email)
        if not key:
            raise ValueError("Email requis")
        if key in self._by_email:
            raise ValueError(f"Email déjà utilisé: {key}")

        record = UserRecord(
            user_id=user_id or str(uuid.uuid4()),
            email=key,
            password_hash=self._hasher.hash(password),
            role_id=role_id,
            is_active=is_active,
        )
        self._users[record.user_id] = record
        self._by_email[key] = record.user_id
        return await self._resolve(record)

    async def assign_role(self, user_id: str, role_id: Optional[str]) -> None:
        record = self._require(user_id)
        record.role_id = role_id

    async def set_active(self, user_id: str, is_active: bool) -> None:
        record = self._require(user_id)
        record.is_active = is_active

    # ══════════════════════════════════════════════════════════════════════════
    # ICredentialVerifier
    # ══════════════════════════════════════════════════════════════════════════

    async def verify(self, email: str, password: str) -> Optional[UserRecord]:
        user_id = self._by_email.get(self.normalize_email(email))
        if user_id is None:
            self._hasher.dummy_verify(password)
            return None

        record = self._users[user_id]
        if not self._hasher.verify(password, record.password_hash):
            return None
        return await self._resolve(record)

    # ══════════════════════════════════════════════════════════════════════════
    # IUserDirectory
    # ══════════════════════════════════════════════════════════════════════════

    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        record = self._users.get(user_id)
        return await self._resolve(record) if record else None

    async def get_role_id(self, user_id: str) -> Optional[str]:
        record = self._users.get(user_id)
        return record.role_id if record else None

    async def get_role_name(self, user_id: str) -> Optional[str]:
        role_id = await self.get_role_id(user_id)
        if role_id is None or self._roles is None:
            return None
        role = await self._roles.get_role(role_id)
        return role.name if role else None

    async def count_users_with_role(self, role_id: str) -> int:
        return sum(1 for u in self._users.values() if u.role_id == role_id)

    def _require(self, user_id: str) -> UserRecord:
        record = self._users.get(user_id)
        if record is None:
            raise KeyError(f"Utilisateur inconnu: {user_id}")
        return record

    async def _resolve(self, record: UserRecord) -> UserRecord:
        role_name = None
        if record.role_id is not None and self._roles is not None:
            role = await self._roles.get_role(record.role_id)
            role_name = role.name if role else None
        return replace(record, role_name=role_name)
