"""Session store: login, registration and the persisted session record."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from pydantic import TypeAdapter, ValidationError

from funkos.client import CatalogClient
from funkos.config import StoreConfig
from funkos.events import ChangeNotifier, Listener
from funkos.exceptions import BackendError
from funkos.models import RegisteredUser, SessionRecord
from funkos.roles import AuthState, Role, parse_role_tag
from funkos.storage import KeyValueStorage

logger = logging.getLogger(__name__)

NAME_MAX_LENGTH = 16
LASTNAME_MAX_LENGTH = 80
PASSWORD_MAX_LENGTH = 32
EMAIL_MAX_LENGTH = 255
DEFAULT_LASTNAME = "Usuario"
MIXTO_ROLE_ID = 4


@dataclass(frozen=True)
class DemoAccount:
    """Offline account available only in mock mode."""

    id: int
    username: str
    email: str
    password: str
    name: str
    role: Role
    role_id: int

    def to_session(self) -> SessionRecord:
        return SessionRecord(
            id=self.id,
            username=self.username,
            email=self.email,
            name=self.name,
            role=self.role.value,
            role_id=self.role_id,
        )


DEMO_ACCOUNTS: tuple[DemoAccount, ...] = (
    DemoAccount(1, "admin", "admin@funkopop.com", "admin123", "Admin", Role.ADMIN, 1),
    DemoAccount(2, "vendedor", "vendedor@funkopop.com", "vendedor123", "Vendedor", Role.VENDEDOR, 2),
    DemoAccount(3, "comprador", "comprador@funkopop.com", "comprador123", "Comprador", Role.COMPRADOR, 3),
    DemoAccount(4, "mixto", "mixto@funkopop.com", "mixto123", "Mixto", Role.MIXTO, 4),
    DemoAccount(5, "user", "user@funkopop.com", "user123", "Usuario", Role.COMPRADOR, 3),
)

_registered_users_adapter = TypeAdapter(list[RegisteredUser])


@dataclass(frozen=True)
class RegistrationResult:
    success: bool
    message: str


def split_full_name(username: str) -> tuple[str, str]:
    """Split "First Last Names" into name and lastname (default "Usuario")."""
    parts = username.split(" ")
    name = parts[0] or username
    lastname = " ".join(parts[1:]) or DEFAULT_LASTNAME
    return name, lastname


def validate_registration(name: str, lastname: str, email: str, password: str) -> Optional[str]:
    """Client-side field limits mirroring the backend model; returns an error message."""
    if len(name) > NAME_MAX_LENGTH:
        return f"Name must be at most {NAME_MAX_LENGTH} characters"
    if len(lastname) > LASTNAME_MAX_LENGTH:
        return f"Last name must be at most {LASTNAME_MAX_LENGTH} characters"
    if len(password) > PASSWORD_MAX_LENGTH:
        return f"Password must be at most {PASSWORD_MAX_LENGTH} characters"
    if len(email) > EMAIL_MAX_LENGTH:
        return f"Email must be at most {EMAIL_MAX_LENGTH} characters"
    return None


class SessionStore:
    """Holds the current identity and keeps it in sync with storage."""

    def __init__(
        self,
        storage: KeyValueStorage,
        client: CatalogClient,
        config: StoreConfig,
    ) -> None:
        self._storage = storage
        self._client = client
        self.config = config
        self._notifier = ChangeNotifier("session")
        self._session = self._load()

    def _load(self) -> Optional[SessionRecord]:
        raw = self._storage.get(self.config.session_storage_key)
        if raw is None:
            return None
        try:
            return SessionRecord.model_validate_json(raw)
        except ValidationError as e:
            error = e

        # Identity fields are broken; a readable role tag still keeps the session.
        try:
            data = json.loads(raw)
        except ValueError:
            data = None
        role = parse_role_tag(data.get("role")) if isinstance(data, dict) else None
        if role is None:
            logger.warning("Stored session is malformed, continuing as guest: %s", error)
            return None

        logger.warning("Stored session has malformed identity fields, keeping role %s", role.value)
        return SessionRecord(role=role.value)

    @property
    def user(self) -> Optional[SessionRecord]:
        return self._session

    @property
    def state(self) -> AuthState:
        return AuthState.from_session(self._session)

    @property
    def role(self) -> Role:
        return self.state.role

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self._notifier.subscribe(listener)

    def _set_session(self, session: Optional[SessionRecord]) -> None:
        self._session = session
        key = self.config.session_storage_key
        if session is None:
            self._storage.remove(key)
        else:
            self._storage.set(key, session.model_dump_json())
        self._notifier.notify()

    def registered_users(self) -> list[RegisteredUser]:
        raw = self._storage.get(self.config.registered_users_key)
        if raw is None:
            return []
        try:
            return _registered_users_adapter.validate_json(raw)
        except ValidationError as e:
            logger.warning("Ignoring malformed registered users list: %s", e)
            return []

    def _remember_user(self, username: str, email: str) -> None:
        users = [u for u in self.registered_users() if u.username != username]
        users.append(RegisteredUser(username=username, email=email))
        self._storage.set(
            self.config.registered_users_key,
            json.dumps([u.model_dump() for u in users]),
        )

    def _match_demo_account(self, identifier: str, password: str) -> Optional[DemoAccount]:
        for account in DEMO_ACCOUNTS:
            if identifier in (account.username, account.email) and password == account.password:
                return account
        return None

    async def login(self, identifier: str, password: str) -> bool:
        """
        Log in with an email, or a username registered on this device.

        Returns False when the credentials are rejected; raises BackendError
        when the backend cannot be reached.
        """
        if self.config.mock:
            account = self._match_demo_account(identifier, password)
            if account is not None:
                logger.info("Logged in with demo account %s", account.username)
                self._set_session(account.to_session())
                return True

        if "@" in identifier:
            email = identifier
        else:
            known = next(
                (u for u in self.registered_users() if u.username == identifier), None
            )
            if known is None:
                logger.info("Unknown username %r and no email given", identifier)
                return False
            email = known.email

        try:
            response = await self._client.login(email, password)
        except BackendError as e:
            if e.code == "HTTP_ERROR":
                logger.info("Backend rejected credentials for %s", email)
                return False
            raise

        role = parse_role_tag(response.role_name)
        if role is None:
            logger.warning("Backend returned unknown role %r for %s", response.role_name, email)
            return False

        self._set_session(
            SessionRecord(
                id=response.user_id or int(time.time() * 1000),
                username=response.name or email.split("@")[0],
                email=email,
                name=response.name,
                lastname=response.lastname,
                role=role.value,
                role_id=response.role_id,
            )
        )
        return True

    async def register(self, username: str, email: str, password: str) -> RegistrationResult:
        """Register a new account (role mixto) and log it in."""
        name, lastname = split_full_name(username)
        error = validate_registration(name, lastname, email, password)
        if error:
            return RegistrationResult(False, error)

        try:
            response = await self._client.register(name, lastname, email, password)
        except BackendError as e:
            logger.warning("Registration failed for %s: %s", email, e.message)
            return RegistrationResult(False, e.message)

        self._remember_user(username, email)
        self._set_session(
            SessionRecord(
                id=response.user_id or int(time.time() * 1000),
                username=username,
                email=email,
                name=name,
                lastname=lastname,
                role=Role.MIXTO.value,
                role_id=response.role_id or MIXTO_ROLE_ID,
            )
        )
        return RegistrationResult(True, "User registered successfully")

    def logout(self) -> None:
        self._set_session(None)
