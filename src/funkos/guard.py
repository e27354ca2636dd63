"""Role-based route authorization."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Union

from funkos.roles import Role

LOGIN_PATH = "/login"
DENIED_PATH = "/productos"
HOME_PATH = "/"


@dataclass(frozen=True)
class Requirement:
    """
    Permission requirement for a guarded route.

    ``Requirement()`` only asks for an identity. ``roles`` restricts the
    allowed roles and ``admin`` demands the admin role. Requirements combine
    with ``&`` as a logical AND.
    """

    admin: bool = False
    roles: Optional[frozenset[Role]] = None

    def __and__(self, other: "Requirement") -> "Requirement":
        if self.roles is None:
            roles = other.roles
        elif other.roles is None:
            roles = self.roles
        else:
            roles = self.roles & other.roles
        return Requirement(admin=self.admin or other.admin, roles=roles)


UNCONDITIONAL = Requirement()


def require_admin() -> Requirement:
    return Requirement(admin=True)


def require_role_in(roles: Iterable[Role]) -> Requirement:
    return Requirement(roles=frozenset(Role(r) for r in roles))


@dataclass(frozen=True)
class Allow:
    """Render the guarded page."""


@dataclass(frozen=True)
class DenyRedirect:
    """Do not render; navigate to ``target`` instead."""

    target: str


Decision = Union[Allow, DenyRedirect]


def authorize(role: Optional[Role], requirement: Requirement) -> Decision:
    """Decide whether ``role`` satisfies ``requirement`` (first matching rule wins)."""
    if role is None or role is Role.GUEST:
        return DenyRedirect(LOGIN_PATH)

    if requirement.roles is not None and role not in requirement.roles:
        return DenyRedirect(DENIED_PATH)

    if requirement.admin and role is not Role.ADMIN:
        return DenyRedirect(DENIED_PATH)

    return Allow()


@dataclass(frozen=True)
class Route:
    """Storefront page and the requirement guarding it (``None`` = public)."""

    path: str
    title: str
    requirement: Optional[Requirement] = None

    @property
    def is_parametrized(self) -> bool:
        return ":" in self.path

    def matches(self, path: str) -> bool:
        pattern = [p for p in self.path.split("/") if p]
        parts = [p for p in path.split("?", 1)[0].split("/") if p]
        if len(pattern) != len(parts):
            return False
        return all(
            expected.startswith(":") or expected == actual
            for expected, actual in zip(pattern, parts)
        )


_SELLERS = require_role_in([Role.ADMIN, Role.VENDEDOR, Role.MIXTO])
_BUYERS = require_role_in([Role.COMPRADOR, Role.MIXTO])

ROUTES: tuple[Route, ...] = (
    Route("/", "Inicio"),
    Route("/login", "Iniciar sesión"),
    Route("/register", "Registrarse"),
    Route("/productos", "Productos"),
    Route("/productos/:id", "Detalle de producto"),
    Route("/carrito", "Carrito", _BUYERS),
    Route("/admin/productos/list", "Administrar productos", _SELLERS),
    Route("/admin/productos/new", "Nuevo producto", _SELLERS),
    Route("/admin/productos/edit/:id", "Editar producto", _SELLERS),
    Route("/admin/productos/delete/:id", "Eliminar producto", _SELLERS),
    Route("/admin/usuarios", "Usuarios", require_admin()),
    Route("/admin/usuarios/new", "Nuevo usuario", require_admin()),
    Route("/admin/usuarios/edit/:id", "Editar usuario", require_admin()),
    Route("/admin/categorias/new", "Nueva categoría", _SELLERS),
    Route("/admin/licencias/new", "Nueva licencia", _SELLERS),
)

_ANONYMOUS_ONLY = {"/login", "/register"}


def match_route(path: str) -> Optional[Route]:
    for route in ROUTES:
        if route.matches(path):
            return route
    return None


def authorize_path(path: str, role: Optional[Role]) -> Decision:
    """Authorize navigation to ``path``; unknown paths redirect home."""
    route = match_route(path)
    if route is None:
        return DenyRedirect(HOME_PATH)
    if route.requirement is None:
        return Allow()
    return authorize(role, route.requirement)


def accessible_routes(role: Optional[Role]) -> list[Route]:
    """Navigation menu for ``role``: linkable pages it may open."""
    authenticated = role is not None and role is not Role.GUEST
    menu = []
    for route in ROUTES:
        if route.is_parametrized:
            continue
        if authenticated and route.path in _ANONYMOUS_ONLY:
            continue
        if route.requirement is None or isinstance(authorize(role, route.requirement), Allow):
            menu.append(route)
    return menu
