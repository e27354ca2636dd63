"""Async REST client for the storefront backend."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from funkos.config import StoreConfig
from funkos.exceptions import BackendError
from funkos.models import (
    Category,
    Licence,
    LoginResponse,
    Product,
    ProductInput,
    RegisterResponse,
    RoleOption,
    UserAccount,
    UserAccountInput,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class CatalogClient:
    """
    Thin wrapper over ``httpx.AsyncClient`` for the catalog, user and auth
    endpoints.

    Every failure is raised as :class:`BackendError`: ``HTTP_ERROR`` for
    non-2xx responses (message taken from the payload when present),
    ``BACKEND_UNAVAILABLE`` for transport failures and ``INVALID_RESPONSE``
    for bodies that are not the expected JSON.
    """

    def __init__(
        self,
        config: StoreConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config
        self._client = httpx.AsyncClient(
            base_url=config.api_url,
            timeout=config.request_timeout_sec,
            transport=transport,
        )

    async def __aenter__(self) -> "CatalogClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error("%s %s failed: %s", method, path, e)
            raise BackendError(
                "BACKEND_UNAVAILABLE",
                "Connection error. Check that the server is available.",
                details={"path": path},
            ) from e

        payload = self._decode(response)

        if response.is_error:
            message = payload.get("message") if isinstance(payload, dict) else None
            logger.warning("%s %s returned HTTP %s", method, path, response.status_code)
            raise BackendError(
                "HTTP_ERROR",
                message or f"HTTP error: {response.status_code}",
                status_code=response.status_code,
                details={"path": path},
            )

        return payload

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            if response.is_error:
                return None
            raise BackendError(
                "INVALID_RESPONSE",
                "Error processing the server response",
                status_code=response.status_code,
                details={"path": response.request.url.path},
            )

    @staticmethod
    def _unwrap_list(payload: Any, key: str) -> list[Any]:
        if isinstance(payload, list):
            return payload
        if isinstance(payload, dict) and isinstance(payload.get(key), list):
            return payload[key]
        raise BackendError(
            "INVALID_RESPONSE",
            f"Unexpected {key} payload format",
            details={"type": type(payload).__name__},
        )

    @staticmethod
    def _validate_items(model: type[ModelT], items: list[Any]) -> list[ModelT]:
        valid: list[ModelT] = []
        for item in items:
            try:
                valid.append(model.model_validate(item))
            except ValidationError as e:
                logger.warning(
                    "Skipping malformed %s: %s", model.__name__, e.errors()[0]["msg"]
                )
        return valid

    @staticmethod
    def _validate_one(model: type[ModelT], payload: Any) -> ModelT:
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            raise BackendError(
                "INVALID_RESPONSE",
                f"Malformed {model.__name__} payload",
                details={"errors": e.errors(include_url=False)},
            ) from e

    # Products

    async def list_products(self) -> list[Product]:
        payload = await self._request("GET", "/product/list/")
        return self._validate_items(Product, self._unwrap_list(payload, "products"))

    async def find_product(self, product_id: int) -> Product:
        payload = await self._request("GET", f"/product/find/id/{product_id}/")
        if isinstance(payload, dict) and isinstance(payload.get("product"), dict):
            payload = payload["product"]
        return self._validate_one(Product, payload)

    async def create_product(self, data: ProductInput) -> Any:
        return await self._request("POST", "/product/create/", json=data.to_backend())

    async def update_product(self, product_id: int, data: ProductInput) -> Any:
        return await self._request(
            "PUT", f"/product/update/{product_id}/", json=data.to_backend()
        )

    async def delete_product(self, product_id: int) -> None:
        await self._request("DELETE", f"/product/delete/{product_id}/")

    # Categories and licences

    async def list_categories(self) -> list[Category]:
        payload = await self._request("GET", "/category/")
        return self._validate_items(Category, self._unwrap_list(payload, "categories"))

    async def create_category(
        self, name: str, description: str = "", image: Optional[Path] = None
    ) -> Any:
        data = {"category_name": name, "category_description": description}
        files = self._image_part("image_category", image)
        return await self._request("POST", "/category/create/", data=data, files=files)

    async def list_licences(self) -> list[Licence]:
        payload = await self._request("GET", "/licence/")
        return self._validate_items(Licence, self._unwrap_list(payload, "licences"))

    async def create_licence(
        self, name: str, description: str = "", image: Optional[Path] = None
    ) -> Any:
        data = {"licence_name": name, "licence_description": description}
        files = self._image_part("licence_image", image)
        return await self._request("POST", "/licence/create/", data=data, files=files)

    @staticmethod
    def _image_part(field: str, image: Optional[Path]) -> Optional[dict[str, Any]]:
        if image is None:
            return None
        return {field: (image.name, image.read_bytes())}

    # User accounts

    async def list_users(self) -> list[UserAccount]:
        payload = await self._request("GET", "/useraccount/list/")
        return self._validate_items(UserAccount, self._unwrap_list(payload, "users"))

    async def list_roles(self) -> list[RoleOption]:
        payload = await self._request("GET", "/useraccount/roles/")
        return self._validate_items(RoleOption, self._unwrap_list(payload, "roles"))

    async def create_user(self, data: UserAccountInput) -> Any:
        return await self._request(
            "POST", "/useraccount/create/", json=data.model_dump()
        )

    async def update_user(self, user_id: int, data: UserAccountInput) -> Any:
        # An empty password on update keeps the current one.
        body = data.model_dump(exclude={"password"} if not data.password else set())
        return await self._request("PUT", f"/useraccount/update/{user_id}/", json=body)

    async def delete_user(self, user_id: int) -> None:
        await self._request("DELETE", f"/useraccount/delete/{user_id}/")

    # Authentication

    async def login(self, email: str, password: str) -> LoginResponse:
        payload = await self._request(
            "POST", "/useraccount/login/", data={"email": email, "password": password}
        )
        return self._validate_one(LoginResponse, payload or {})

    async def register(
        self, name: str, lastname: str, email: str, password: str
    ) -> RegisterResponse:
        payload = await self._request(
            "POST",
            "/useraccount/register/",
            data={"name": name, "lastname": lastname, "email": email, "password": password},
        )
        return self._validate_one(RegisterResponse, payload or {})
