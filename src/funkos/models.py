"""Pydantic data models for catalog, cart and session data."""

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator


class NameReference(BaseModel):
    """Licence or category known only by its display name."""

    kind: Literal["name"] = "name"
    name: str = Field(..., min_length=1)


class IdReference(BaseModel):
    """Licence or category known by backend id and name."""

    kind: Literal["ref"] = "ref"
    id: int
    name: str = ""


Reference = Annotated[Union[NameReference, IdReference], Field(discriminator="kind")]


def normalize_reference(value: Any, prefix: str) -> Optional[dict]:
    """
    Normalize a licence/category field into a tagged reference payload.

    The backend sends either a bare name string or an object such as
    ``{"licence_id": 3, "licence_name": "Star Wars"}``. Already-tagged
    payloads (``{"kind": ...}``) pass through unchanged.
    """
    if value is None:
        return None
    if isinstance(value, (NameReference, IdReference)):
        return value.model_dump()
    if isinstance(value, str):
        name = value.strip()
        return {"kind": "name", "name": name} if name else None
    if isinstance(value, dict):
        if "kind" in value:
            return value
        ref_id = value.get(f"{prefix}_id", value.get("id"))
        name = value.get(f"{prefix}_name", value.get("name")) or ""
        if ref_id is None:
            return {"kind": "name", "name": name} if name else None
        return {"kind": "ref", "id": ref_id, "name": name}
    raise ValueError(f"Unsupported {prefix} value: {value!r}")


def reference_name(ref: Optional[Union[NameReference, IdReference]]) -> Optional[str]:
    """Return the display name of a reference, if any."""
    if ref is None:
        return None
    return ref.name or None


class Product(BaseModel):
    """Catalog product as served by the backend."""

    model_config = ConfigDict(extra="allow")

    product_id: int = Field(..., description="Unique, stable product id")
    product_name: str = Field(..., description="Display name")
    price: float = Field(..., ge=0, description="Unit price")
    stock: int = Field(..., ge=0, description="Units available")
    sku: str = Field(..., description="Stock-keeping unit code")
    description: str = Field(default="", description="Product description")
    image_front: Optional[str] = None
    image_back: Optional[str] = None
    category: Optional[Reference] = None
    licence: Optional[Reference] = None
    discount: Optional[float] = Field(None, ge=0, le=100, description="Discount percentage")
    dues: Optional[int] = Field(None, ge=0, description="Installment count")

    @model_validator(mode="before")
    @classmethod
    def normalize_backend_payload(cls, data: Any) -> Any:
        """Map backend field variants onto a single shape."""
        if not isinstance(data, dict):
            return data

        data = dict(data)
        backend_description = data.pop("product_description", None)
        data["description"] = backend_description or data.get("description") or ""

        for key in ("image_front", "image_back"):
            value = data.get(key)
            if isinstance(value, str) and not value.strip():
                data[key] = None

        data["category"] = normalize_reference(data.get("category"), "category")
        data["licence"] = normalize_reference(data.get("licence"), "licence")
        return data

    @property
    def licence_name(self) -> Optional[str]:
        return reference_name(self.licence)

    @property
    def category_name(self) -> Optional[str]:
        return reference_name(self.category)


class ProductInput(BaseModel):
    """Create/update payload for a product."""

    product_name: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    stock: int = Field(..., ge=0)
    sku: str = Field(..., min_length=1)
    description: str = ""
    category_name: Optional[str] = None
    licence_name: Optional[str] = None
    discount: Optional[float] = Field(None, ge=0, le=100)
    dues: Optional[int] = Field(None, ge=0)

    def to_backend(self) -> dict[str, Any]:
        """Build the JSON body the backend expects for product writes."""
        payload = self.model_dump(exclude={"description"}, exclude_none=True)
        payload["product_description"] = self.description
        return payload


class CartLine(BaseModel):
    """Product snapshot plus requested quantity."""

    product: Product
    quantity: int = Field(..., gt=0)

    @model_validator(mode="before")
    @classmethod
    def accept_flat_line(cls, data: Any) -> Any:
        """Accept the flat ``{...product, "quantity": n}`` shape of older carts."""
        if isinstance(data, dict) and "product" not in data and "product_id" in data:
            product = dict(data)
            quantity = product.pop("quantity", None)
            return {"product": product, "quantity": quantity}
        return data

    @model_validator(mode="after")
    def validate_stock_ceiling(self) -> "CartLine":
        if self.quantity > self.product.stock:
            raise ValueError(
                f"quantity {self.quantity} exceeds stock {self.product.stock} "
                f"for product {self.product.product_id}"
            )
        return self

    @property
    def product_id(self) -> int:
        return self.product.product_id

    @property
    def line_total(self) -> float:
        return self.product.price * self.quantity


class SessionRecord(BaseModel):
    """
    Persisted identity of the logged-in user.

    Only ``role`` decides permissions, so records written by older clients
    with missing identity fields still load.
    """

    model_config = ConfigDict(extra="ignore")

    id: Optional[int] = None
    username: str = ""
    email: str = ""
    name: Optional[str] = None
    lastname: Optional[str] = None
    role: Optional[str] = None
    role_id: Optional[int] = Field(
        None, validation_alias=AliasChoices("role_id", "roleId")
    )


class RegisteredUser(BaseModel):
    """Username to email mapping for accounts registered on this device."""

    username: str
    email: str


class Category(BaseModel):
    """Product category."""

    model_config = ConfigDict(extra="allow")

    category_id: int
    category_name: str
    category_description: Optional[str] = None


class Licence(BaseModel):
    """Themed product franchise."""

    model_config = ConfigDict(extra="allow")

    licence_id: int
    licence_name: str
    licence_description: Optional[str] = None


class RoleOption(BaseModel):
    """Role as listed by the backend."""

    role_id: int
    role_name: str


class UserAccount(BaseModel):
    """User account as listed by the admin endpoints."""

    model_config = ConfigDict(extra="allow")

    user_id: int
    name: str = ""
    lastname: str = ""
    email: str
    role_id: Optional[int] = None
    role_name: Optional[str] = None


class UserAccountInput(BaseModel):
    """Create/update payload for a user account."""

    name: str = Field(..., min_length=1, max_length=16)
    lastname: str = Field(..., min_length=1, max_length=80)
    email: str = Field(..., min_length=3, max_length=255)
    role_id: Optional[int] = None
    password: Optional[str] = Field(None, max_length=32)


class LoginResponse(BaseModel):
    """Payload returned by the backend login endpoint."""

    model_config = ConfigDict(extra="ignore")

    user_id: Optional[int] = None
    name: Optional[str] = None
    lastname: Optional[str] = None
    role_name: Optional[str] = None
    role_id: Optional[int] = None


class RegisterResponse(BaseModel):
    """Payload returned by the backend register endpoint."""

    model_config = ConfigDict(extra="ignore")

    user_id: Optional[int] = None
    role_id: Optional[int] = None
    message: Optional[str] = None
