"""Product image path normalization."""

import re
from typing import Optional

from funkos.models import Product

_SLUG_PATTERN = re.compile(r"[^a-z0-9]+")
_WHITESPACE_PATTERN = re.compile(r"\s+")


def slugify(value: str) -> str:
    """Lowercase, collapse non-alphanumerics to '-', strip edge dashes."""
    return _SLUG_PATTERN.sub("-", value.lower()).strip("-")


def normalize_image_path(path: str, prefix: str = "/multimedia") -> str:
    """Place a stored image path under ``prefix`` regardless of its leading form."""
    path = path.strip()
    bare_prefix = prefix.lstrip("/")
    if path.startswith(f"{prefix}/"):
        return path
    if path.startswith("/"):
        return f"{prefix}{path}"
    if path.startswith(f"{bare_prefix}/"):
        return f"/{path}"
    return f"{prefix}/{path}"


def product_image_url(
    image_front: Optional[str],
    licence_name: Optional[str] = None,
    product_name: Optional[str] = None,
    *,
    prefix: str = "/multimedia",
    default: Optional[str] = None,
) -> str:
    """
    Resolve the URL of a product's front image.

    Falls back to ``<prefix>/<licence-folder>/<product-slug>-1.webp`` when
    only the licence and name are known, and to the banner image otherwise.
    """
    if image_front and image_front.strip():
        return normalize_image_path(image_front, prefix)

    if licence_name and product_name:
        folder = _WHITESPACE_PATTERN.sub("-", licence_name.lower())
        return f"{prefix}/{folder}/{slugify(product_name)}-1.webp"

    return default or f"{prefix}/funkos-banner.webp"


def image_for(product: Product, prefix: str = "/multimedia", default: Optional[str] = None) -> str:
    return product_image_url(
        product.image_front,
        product.licence_name,
        product.product_name,
        prefix=prefix,
        default=default,
    )
