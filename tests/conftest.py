"""Shared test fixtures and the fake storefront backend."""

import copy
from collections.abc import Callable
from pathlib import Path
from typing import Any, Optional

import httpx
import pytest
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from funkos.client import CatalogClient
from funkos.config import StoreConfig
from funkos.models import Product
from funkos.storage import InMemoryStorage

SAMPLE_PRODUCTS: list[dict[str, Any]] = [
    {
        "product_id": 1,
        "product_name": "Darth Vader",
        "price": 10.0,
        "stock": 5,
        "sku": "FK-001",
        "product_description": "Sith lord with lightsaber",
        "image_front": "star-wars/darth-vader-1.webp",
        "licence": {"licence_id": 1, "licence_name": "Star Wars"},
        "category": {"category_id": 2, "category_name": "Funko Pop"},
        "discount": 10,
        "dues": 3,
    },
    {
        "product_id": 2,
        "product_name": "Pikachu",
        "price": 5.0,
        "stock": 3,
        "sku": "FK-002",
        "image_front": "  ",
        "licence": "Pokemon",
    },
    {
        "product_id": 3,
        "product_name": "Harry Potter",
        "price": 12.5,
        "stock": 0,
        "sku": "FK-003",
    },
]


class FakeBackend:
    """In-memory state behind the fake REST backend."""

    def __init__(self) -> None:
        self.products = copy.deepcopy(SAMPLE_PRODUCTS)
        self.categories = [
            {"category_id": 1, "category_name": "Rock Candy"},
            {"category_id": 2, "category_name": "Funko Pop"},
        ]
        self.licences = [
            {"licence_id": 1, "licence_name": "Star Wars"},
            {"licence_id": 2, "licence_name": "Pokemon"},
        ]
        self.roles = [
            {"role_id": 1, "role_name": "admin"},
            {"role_id": 2, "role_name": "vendedor"},
            {"role_id": 3, "role_name": "comprador"},
            {"role_id": 4, "role_name": "mixto"},
        ]
        self.accounts: dict[str, dict[str, Any]] = {
            "ana@funkopop.com": {
                "password": "secret",
                "user_id": 7,
                "name": "Ana",
                "lastname": "Pérez",
                "role_name": "Comprador",
                "role_id": 3,
            },
            "root@funkopop.com": {
                "password": "rootpw",
                "user_id": 8,
                "name": "Root",
                "lastname": "Admin",
                "role_name": "superuser",
                "role_id": 9,
            },
        }
        self.fail_status: Optional[int] = None
        self.received: list[tuple[str, str, Any]] = []

    def email_of(self, user_id: int) -> Optional[str]:
        return next(
            (email for email, a in self.accounts.items() if a["user_id"] == user_id), None
        )

    def role_name(self, role_id: Optional[int]) -> Optional[str]:
        return next(
            (r["role_name"] for r in self.roles if r["role_id"] == role_id), None
        )

    def users(self) -> list[dict[str, Any]]:
        return [
            {
                "user_id": a["user_id"],
                "name": a["name"],
                "lastname": a["lastname"],
                "email": email,
                "role_id": a["role_id"],
                "role_name": a["role_name"],
            }
            for email, a in self.accounts.items()
        ]


def create_backend_app(backend: FakeBackend) -> FastAPI:
    """Build a FastAPI app speaking the storefront backend's REST dialect."""
    app = FastAPI()

    @app.middleware("http")
    async def failure_switch(request: Request, call_next):  # type: ignore[no-untyped-def]
        if backend.fail_status is not None:
            return JSONResponse(
                status_code=backend.fail_status,
                content={"message": "Backend exploded"},
            )
        return await call_next(request)

    @app.get("/product/list/")
    async def list_products() -> list[dict[str, Any]]:
        return backend.products

    @app.get("/product/find/id/{product_id}/")
    async def find_product(product_id: int) -> JSONResponse:
        for product in backend.products:
            if product["product_id"] == product_id:
                return JSONResponse(content=product)
        return JSONResponse(status_code=404, content={"message": "Producto no encontrado"})

    @app.post("/product/create/")
    async def create_product(request: Request) -> dict[str, Any]:
        body = await request.json()
        backend.received.append(("POST", "/product/create/", body))
        product_id = max(p["product_id"] for p in backend.products) + 1
        backend.products.append(
            {
                "product_id": product_id,
                "product_name": body["product_name"],
                "price": body["price"],
                "stock": body["stock"],
                "sku": body["sku"],
                "product_description": body.get("product_description", ""),
                "licence": body.get("licence_name"),
                "category": {"category_id": 99, "category_name": body.get("category_name")}
                if body.get("category_name")
                else None,
            }
        )
        return {"message": "Producto creado", "product_id": product_id}

    @app.put("/product/update/{product_id}/")
    async def update_product(product_id: int, request: Request) -> JSONResponse:
        body = await request.json()
        backend.received.append(("PUT", f"/product/update/{product_id}/", body))
        for product in backend.products:
            if product["product_id"] == product_id:
                product.update(
                    product_name=body["product_name"],
                    price=body["price"],
                    stock=body["stock"],
                    sku=body["sku"],
                    product_description=body.get("product_description", ""),
                )
                if body.get("licence_name"):
                    product["licence"] = body["licence_name"]
                return JSONResponse(content={"message": "Producto actualizado"})
        return JSONResponse(status_code=404, content={"message": "Producto no encontrado"})

    @app.delete("/product/delete/{product_id}/")
    async def delete_product(product_id: int) -> JSONResponse:
        before = len(backend.products)
        backend.products = [p for p in backend.products if p["product_id"] != product_id]
        if len(backend.products) == before:
            return JSONResponse(status_code=404, content={"message": "Producto no encontrado"})
        return JSONResponse(content={"message": "Producto eliminado"})

    @app.get("/category/")
    async def list_categories() -> dict[str, Any]:
        return {"categories": backend.categories}

    @app.post("/category/create/")
    async def create_category(request: Request) -> dict[str, Any]:
        form = await request.form()
        backend.received.append(("POST", "/category/create/", dict(form)))
        backend.categories.append(
            {
                "category_id": len(backend.categories) + 1,
                "category_name": form["category_name"],
                "category_description": form.get("category_description"),
            }
        )
        return {"message": "Categoría creada"}

    @app.get("/licence/")
    async def list_licences() -> list[dict[str, Any]]:
        return backend.licences

    @app.post("/licence/create/")
    async def create_licence(request: Request) -> dict[str, Any]:
        form = await request.form()
        backend.received.append(("POST", "/licence/create/", dict(form)))
        backend.licences.append(
            {"licence_id": len(backend.licences) + 1, "licence_name": form["licence_name"]}
        )
        return {"message": "Licencia creada"}

    @app.get("/useraccount/list/")
    async def list_users() -> dict[str, Any]:
        return {"users": backend.users()}

    @app.get("/useraccount/roles/")
    async def list_roles() -> dict[str, Any]:
        return {"roles": backend.roles}

    @app.post("/useraccount/create/")
    async def create_user(request: Request) -> dict[str, Any]:
        body = await request.json()
        backend.received.append(("POST", "/useraccount/create/", body))
        backend.accounts[body["email"]] = {
            "password": body.get("password"),
            "user_id": 100 + len(backend.accounts),
            "name": body["name"],
            "lastname": body["lastname"],
            "role_name": backend.role_name(body.get("role_id")),
            "role_id": body.get("role_id"),
        }
        return {"message": "Usuario creado"}

    @app.put("/useraccount/update/{user_id}/")
    async def update_user(user_id: int, request: Request) -> JSONResponse:
        body = await request.json()
        backend.received.append(("PUT", f"/useraccount/update/{user_id}/", body))
        email = backend.email_of(user_id)
        if email is None:
            return JSONResponse(status_code=404, content={"message": "Usuario no encontrado"})
        account = backend.accounts.pop(email)
        account.update(
            name=body["name"],
            lastname=body["lastname"],
            role_id=body.get("role_id"),
            role_name=backend.role_name(body.get("role_id")),
        )
        if body.get("password"):
            account["password"] = body["password"]
        backend.accounts[body["email"]] = account
        return JSONResponse(content={"message": "Usuario actualizado"})

    @app.delete("/useraccount/delete/{user_id}/")
    async def delete_user(user_id: int) -> Response:
        backend.received.append(("DELETE", f"/useraccount/delete/{user_id}/", None))
        email = backend.email_of(user_id)
        if email is not None:
            del backend.accounts[email]
        return Response(status_code=204)

    @app.post("/useraccount/login/")
    async def login(request: Request) -> JSONResponse:
        form = await request.form()
        account = backend.accounts.get(str(form.get("email")))
        if account is None or account["password"] != form.get("password"):
            return JSONResponse(status_code=401, content={"message": "Credenciales inválidas"})
        return JSONResponse(
            content={k: v for k, v in account.items() if k != "password"}
        )

    @app.post("/useraccount/register/")
    async def register(request: Request) -> JSONResponse:
        form = await request.form()
        email = str(form["email"])
        if email in backend.accounts:
            return JSONResponse(
                status_code=400, content={"message": "El email ya está registrado"}
            )
        user_id = 100 + len(backend.accounts)
        backend.accounts[email] = {
            "password": form["password"],
            "user_id": user_id,
            "name": form["name"],
            "lastname": form["lastname"],
            "role_name": "mixto",
            "role_id": 4,
        }
        return JSONResponse(
            status_code=201,
            content={"message": "Usuario registrado", "user_id": user_id, "role_id": 4},
        )

    return app


@pytest.fixture
def backend() -> FakeBackend:
    """Provide fresh fake backend state."""
    return FakeBackend()


@pytest.fixture
def make_transport(backend: FakeBackend) -> Callable[[], httpx.AsyncBaseTransport]:
    """Factory of ASGI transports bound to the fake backend."""
    app = create_backend_app(backend)
    return lambda: httpx.ASGITransport(app=app)


@pytest.fixture
def store_config(tmp_path: Path) -> StoreConfig:
    """Provide a test-owned config pointing at the fake backend."""
    return StoreConfig(
        _env_file=None,
        api_url="http://testserver",
        storage_path=tmp_path / "storage.json",
        mock=False,
    )


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def client(
    store_config: StoreConfig, make_transport: Callable[[], httpx.AsyncBaseTransport]
) -> CatalogClient:
    """Catalog client talking to the fake backend."""
    return CatalogClient(store_config, transport=make_transport())


@pytest.fixture
def unreachable_client(store_config: StoreConfig) -> CatalogClient:
    """Catalog client whose every request fails to connect."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    return CatalogClient(store_config, transport=httpx.MockTransport(handler))


@pytest.fixture
def product_factory() -> Callable[..., Product]:
    """Build products with sensible defaults."""

    def _make(product_id: int = 1, *, price: float = 10.0, stock: int = 5, **extra: Any) -> Product:
        return Product(
            product_id=product_id,
            product_name=extra.pop("product_name", f"Funko {product_id}"),
            price=price,
            stock=stock,
            sku=extra.pop("sku", f"FK-{product_id:03d}"),
            **extra,
        )

    return _make
