"""CLI interface for the storefront."""

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, Optional, TypeVar

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from .config import get_config
from .exceptions import BackendError
from .guard import DenyRedirect, accessible_routes, authorize_path
from .images import image_for
from .models import Product, ProductInput, UserAccountInput
from .resources import StoreResources, build_resources

T = TypeVar("T")

app = typer.Typer(
    name="funkos",
    help="""
    [bold]Tienda Funkos CLI[/bold]

    Browse the collectible figure catalog, manage your cart and administer
    products against the storefront backend.

    [cyan]Examples:[/cyan]
      funkos products
      funkos login comprador@funkopop.com
      funkos cart add 12 --qty 2
      funkos can /admin/usuarios
    """,
    no_args_is_help=True,
)
cart_app = typer.Typer(help="Manage the shopping cart.", no_args_is_help=True)
app.add_typer(cart_app, name="cart")
users_app = typer.Typer(help="Administer user accounts (admin only).", no_args_is_help=True)
app.add_typer(users_app, name="users")

console = Console()
logger = logging.getLogger(__name__)


@app.callback()
def main(
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show detailed logging",
    ),
) -> None:
    """Tienda Funkos storefront client."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _run(action: Callable[[StoreResources], Awaitable[T]]) -> T:
    """Build resources, run ``action`` and map backend failures to exit code 1."""

    async def runner() -> T:
        resources = build_resources(get_config())
        try:
            return await action(resources)
        finally:
            await resources.aclose()

    try:
        return asyncio.run(runner())
    except BackendError as e:
        console.print(f"[bold red]✗ Error:[/bold red] {e.message}")
        raise typer.Exit(code=1)


def _require(resources: StoreResources, path: str) -> None:
    decision = authorize_path(path, resources.session.role)
    if isinstance(decision, DenyRedirect):
        console.print(
            f"[yellow]Access to {path} denied, redirecting to {decision.target}[/yellow]"
        )
        raise typer.Exit(code=1)


async def _load_product(resources: StoreResources, product_id: int) -> Product:
    await resources.catalog.refresh()
    if resources.catalog.error:
        console.print(f"[bold red]✗ Error:[/bold red] {resources.catalog.error}")
        raise typer.Exit(code=1)
    product = resources.catalog.get_by_id(product_id)
    if product is None:
        console.print(f"[bold red]✗ Product {product_id} not found[/bold red]")
        raise typer.Exit(code=1)
    return product


def _money(value: float) -> str:
    return f"${value:,.2f}"


def _pick(value: Optional[T], fallback: Optional[T]) -> Optional[T]:
    return value if value is not None else fallback


@app.command()
def products(
    search: str = typer.Option(
        "", "--search", "-s", help="Filter by name, SKU, licence or category"
    ),
    admin: bool = typer.Option(
        False, "--admin", help="Show the management list with SKU and category"
    ),
) -> None:
    """List the product catalog."""

    async def action(resources: StoreResources) -> None:
        if admin:
            _require(resources, "/admin/productos/list")
        await resources.catalog.refresh()
        if resources.catalog.error:
            console.print(f"[bold red]✗ Error:[/bold red] {resources.catalog.error}")
            raise typer.Exit(code=1)

        found = resources.catalog.search(search)
        if not found:
            console.print(f"No products match '{search}'")
            return

        table = Table(title="Gestión de Productos" if admin else "Productos")
        table.add_column("ID", justify="right")
        table.add_column("Name")
        if admin:
            table.add_column("SKU")
        table.add_column("Licence")
        if admin:
            table.add_column("Category")
        table.add_column("Price", justify="right")
        table.add_column("Stock", justify="right")
        for product in found:
            row = [str(product.product_id), product.product_name]
            if admin:
                row.append(product.sku)
            row.append(product.licence_name or "-")
            if admin:
                row.append(product.category_name or "-")
            row.extend([_money(product.price), str(product.stock)])
            table.add_row(*row)
        console.print(table)

    _run(action)


@app.command()
def product(product_id: int = typer.Argument(..., help="Product id")) -> None:
    """Show a single product."""

    async def action(resources: StoreResources) -> None:
        item = await _load_product(resources, product_id)
        config = resources.config
        console.print(f"[bold]{item.product_name}[/bold] (SKU {item.sku})")
        console.print(f"  Price: {_money(item.price)}")
        console.print(f"  Stock: {item.stock}")
        if item.licence_name:
            console.print(f"  Licence: {item.licence_name}")
        if item.category_name:
            console.print(f"  Category: {item.category_name}")
        if item.discount:
            console.print(f"  Discount: {item.discount:g}%")
        if item.dues:
            console.print(f"  Installments: {item.dues}")
        if item.description:
            console.print(f"  {item.description}")
        image = image_for(item, config.multimedia_prefix, config.get_default_image())
        console.print(f"  [dim]Image: {image}[/dim]")

    _run(action)


@app.command()
def login(
    identifier: str = typer.Argument(..., help="Email, or username registered here"),
    password: str = typer.Option(..., "--password", "-p", prompt=True, hide_input=True),
) -> None:
    """Log in and remember the session."""

    async def action(resources: StoreResources) -> None:
        if not await resources.session.login(identifier, password):
            console.print("[bold red]✗ Invalid credentials[/bold red]")
            raise typer.Exit(code=1)
        state = resources.session.state
        assert state.user is not None
        console.print(
            f"[bold green]✓ Logged in as {state.user.username}[/bold green] ({state.role.value})"
        )

    _run(action)


@app.command()
def register(
    username: str = typer.Argument(..., help='Full name, e.g. "Ana Pérez"'),
    email: str = typer.Argument(...),
    password: str = typer.Option(
        ..., "--password", "-p", prompt=True, hide_input=True, confirmation_prompt=True
    ),
) -> None:
    """Create an account and log it in."""

    async def action(resources: StoreResources) -> None:
        result = await resources.session.register(username, email, password)
        if not result.success:
            console.print(f"[bold red]✗ {result.message}[/bold red]")
            raise typer.Exit(code=1)
        console.print(f"[bold green]✓ {result.message}[/bold green]")

    _run(action)


@app.command()
def logout() -> None:
    """Forget the current session."""

    async def action(resources: StoreResources) -> None:
        resources.session.logout()
        console.print("Logged out")

    _run(action)


@app.command()
def whoami() -> None:
    """Show the current identity and the pages it can open."""

    async def action(resources: StoreResources) -> None:
        state = resources.session.state
        if state.user is None:
            console.print("Not logged in (guest)")
        else:
            console.print(f"{state.user.username} <{state.user.email}> ({state.role.value})")
        console.print("[bold]Menu:[/bold]")
        for route in accessible_routes(state.role):
            console.print(f"  {route.path:<28} {route.title}")

    _run(action)


@app.command()
def can(path: str = typer.Argument(..., help="Storefront path, e.g. /carrito")) -> None:
    """Check whether the current identity may open PATH."""

    async def action(resources: StoreResources) -> None:
        decision = authorize_path(path, resources.session.role)
        if isinstance(decision, DenyRedirect):
            console.print(f"[yellow]denied → {decision.target}[/yellow]")
            raise typer.Exit(code=1)
        console.print("[green]allowed[/green]")

    _run(action)


@app.command()
def categories() -> None:
    """List product categories."""

    async def action(resources: StoreResources) -> None:
        for category in await resources.client.list_categories():
            console.print(f"{category.category_id:>4}  {category.category_name}")

    _run(action)


@app.command()
def licences() -> None:
    """List licences."""

    async def action(resources: StoreResources) -> None:
        for licence in await resources.client.list_licences():
            console.print(f"{licence.licence_id:>4}  {licence.licence_name}")

    _run(action)


@app.command("add-category")
def add_category(
    name: str = typer.Argument(...),
    description: str = typer.Option("", "--description", "-d"),
    image: Optional[Path] = typer.Option(None, "--image", exists=True, dir_okay=False),
) -> None:
    """Create a category (admin, vendedor, mixto)."""

    async def action(resources: StoreResources) -> None:
        _require(resources, "/admin/categorias/new")
        await resources.client.create_category(name, description, image)
        console.print(f"[bold green]✓ Category '{name}' created[/bold green]")

    _run(action)


@app.command("add-licence")
def add_licence(
    name: str = typer.Argument(...),
    description: str = typer.Option("", "--description", "-d"),
    image: Optional[Path] = typer.Option(None, "--image", exists=True, dir_okay=False),
) -> None:
    """Create a licence (admin, vendedor, mixto)."""

    async def action(resources: StoreResources) -> None:
        _require(resources, "/admin/licencias/new")
        await resources.client.create_licence(name, description, image)
        console.print(f"[bold green]✓ Licence '{name}' created[/bold green]")

    _run(action)


@app.command("add-product")
def add_product(
    name: str = typer.Argument(...),
    sku: str = typer.Option(..., "--sku"),
    price: float = typer.Option(..., "--price", min=0),
    stock: int = typer.Option(..., "--stock", min=0),
    category: Optional[str] = typer.Option(None, "--category"),
    licence: Optional[str] = typer.Option(None, "--licence"),
    description: str = typer.Option("", "--description", "-d"),
    discount: Optional[float] = typer.Option(None, "--discount", min=0, max=100),
    dues: Optional[int] = typer.Option(None, "--dues", min=0),
) -> None:
    """Create a product (admin, vendedor, mixto)."""

    async def action(resources: StoreResources) -> None:
        _require(resources, "/admin/productos/new")
        data = ProductInput(
            product_name=name,
            sku=sku,
            price=price,
            stock=stock,
            category_name=category,
            licence_name=licence,
            description=description,
            discount=discount,
            dues=dues,
        )
        await resources.catalog.add_product(data)
        console.print(
            f"[bold green]✓ Product '{name}' created[/bold green] "
            f"({len(resources.catalog.products)} products in catalog)"
        )

    _run(action)


@app.command("update-product")
def update_product(
    product_id: int = typer.Argument(...),
    name: Optional[str] = typer.Option(None, "--name"),
    sku: Optional[str] = typer.Option(None, "--sku"),
    price: Optional[float] = typer.Option(None, "--price", min=0),
    stock: Optional[int] = typer.Option(None, "--stock", min=0),
    category: Optional[str] = typer.Option(None, "--category"),
    licence: Optional[str] = typer.Option(None, "--licence"),
    description: Optional[str] = typer.Option(None, "--description", "-d"),
    discount: Optional[float] = typer.Option(None, "--discount", min=0, max=100),
    dues: Optional[int] = typer.Option(None, "--dues", min=0),
) -> None:
    """Edit a product; options left out keep their current value (admin, vendedor, mixto)."""

    async def action(resources: StoreResources) -> None:
        _require(resources, f"/admin/productos/edit/{product_id}")
        current = await _load_product(resources, product_id)
        data = ProductInput(
            product_name=_pick(name, current.product_name),
            sku=_pick(sku, current.sku),
            price=_pick(price, current.price),
            stock=_pick(stock, current.stock),
            category_name=_pick(category, current.category_name),
            licence_name=_pick(licence, current.licence_name),
            description=_pick(description, current.description),
            discount=_pick(discount, current.discount),
            dues=_pick(dues, current.dues),
        )
        await resources.catalog.update_product(product_id, data)
        console.print(f"[bold green]✓ Product {product_id} updated[/bold green]")

    _run(action)


@app.command("delete-product")
def delete_product(product_id: int = typer.Argument(...)) -> None:
    """Delete a product (admin, vendedor, mixto)."""

    async def action(resources: StoreResources) -> None:
        _require(resources, f"/admin/productos/delete/{product_id}")
        await resources.catalog.delete_product(product_id)
        console.print(f"[bold green]✓ Product {product_id} deleted[/bold green]")

    _run(action)


async def _resolve_role_id(resources: StoreResources, role: Optional[str]) -> Optional[int]:
    """Accept a role id or a role name as listed by the backend."""
    if role is None:
        return None
    if role.strip().isdigit():
        return int(role)
    for option in await resources.client.list_roles():
        if option.role_name.lower() == role.strip().lower():
            return option.role_id
    console.print(f"[bold red]✗ Unknown role '{role}'[/bold red]")
    raise typer.Exit(code=1)


def _user_input(**fields: object) -> UserAccountInput:
    try:
        return UserAccountInput.model_validate(fields)
    except ValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(part) for part in error["loc"])
        console.print(f"[bold red]✗ Invalid {field}:[/bold red] {error['msg']}")
        raise typer.Exit(code=1)


@users_app.command("list")
def users_list() -> None:
    """List user accounts."""

    async def action(resources: StoreResources) -> None:
        _require(resources, "/admin/usuarios")
        table = Table(title="Usuarios")
        table.add_column("ID", justify="right")
        table.add_column("Name")
        table.add_column("Email")
        table.add_column("Role")
        for account in await resources.client.list_users():
            table.add_row(
                str(account.user_id),
                f"{account.name} {account.lastname}".strip(),
                account.email,
                account.role_name or "Sin rol",
            )
        console.print(table)

    _run(action)


@users_app.command("add")
def users_add(
    name: str = typer.Argument(...),
    lastname: str = typer.Argument(...),
    email: str = typer.Argument(...),
    role: Optional[str] = typer.Option(None, "--role", "-r", help="Role name or id"),
    password: str = typer.Option(..., "--password", "-p", prompt=True, hide_input=True),
) -> None:
    """Create a user account."""

    async def action(resources: StoreResources) -> None:
        _require(resources, "/admin/usuarios/new")
        data = _user_input(
            name=name,
            lastname=lastname,
            email=email,
            role_id=await _resolve_role_id(resources, role),
            password=password,
        )
        await resources.client.create_user(data)
        console.print(f"[bold green]✓ User '{email}' created[/bold green]")

    _run(action)


@users_app.command("edit")
def users_edit(
    user_id: int = typer.Argument(...),
    name: Optional[str] = typer.Option(None, "--name"),
    lastname: Optional[str] = typer.Option(None, "--lastname"),
    email: Optional[str] = typer.Option(None, "--email"),
    role: Optional[str] = typer.Option(None, "--role", "-r", help="Role name or id"),
    password: str = typer.Option(
        "", "--password", "-p", help="New password (empty keeps the current one)"
    ),
) -> None:
    """Edit a user account; options left out keep their current value."""

    async def action(resources: StoreResources) -> None:
        _require(resources, f"/admin/usuarios/edit/{user_id}")
        accounts = await resources.client.list_users()
        current = next((a for a in accounts if a.user_id == user_id), None)
        if current is None:
            console.print(f"[bold red]✗ User {user_id} not found[/bold red]")
            raise typer.Exit(code=1)

        role_id = await _resolve_role_id(resources, role)
        data = _user_input(
            name=_pick(name, current.name),
            lastname=_pick(lastname, current.lastname),
            email=_pick(email, current.email),
            role_id=_pick(role_id, current.role_id),
            password=password or None,
        )
        await resources.client.update_user(user_id, data)
        console.print(f"[bold green]✓ User {user_id} updated[/bold green]")

    _run(action)


@users_app.command("delete")
def users_delete(
    user_id: int = typer.Argument(...),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
) -> None:
    """Delete a user account."""

    async def action(resources: StoreResources) -> None:
        _require(resources, "/admin/usuarios")
        if not yes:
            typer.confirm(f"Delete user {user_id}?", abort=True)
        await resources.client.delete_user(user_id)
        console.print(f"[bold green]✓ User {user_id} deleted[/bold green]")

    _run(action)


@app.command()
def roles() -> None:
    """List the roles that can be assigned to users (admin only)."""

    async def action(resources: StoreResources) -> None:
        _require(resources, "/admin/usuarios/new")
        for option in await resources.client.list_roles():
            console.print(f"{option.role_id:>4}  {option.role_name}")

    _run(action)


def _print_cart(resources: StoreResources) -> None:
    cart = resources.cart
    if not cart.items:
        console.print("Your cart is empty")
        return

    table = Table(title="Carrito")
    table.add_column("ID", justify="right")
    table.add_column("Product")
    table.add_column("Unit", justify="right")
    table.add_column("Qty", justify="right")
    table.add_column("Subtotal", justify="right")
    for line in cart.items:
        table.add_row(
            str(line.product_id),
            line.product.product_name,
            _money(line.product.price),
            str(line.quantity),
            _money(line.line_total),
        )
    console.print(table)
    console.print(
        f"[bold]{cart.get_cart_count()} items, total {_money(cart.get_cart_total())}[/bold]"
    )


@cart_app.command("show")
def cart_show() -> None:
    """Show cart lines and totals."""

    async def action(resources: StoreResources) -> None:
        _require(resources, "/carrito")
        _print_cart(resources)

    _run(action)


@cart_app.command("add")
def cart_add(
    product_id: int = typer.Argument(...),
    qty: int = typer.Option(1, "--qty", "-q", min=1),
) -> None:
    """Add units of a product (clamped to stock)."""

    async def action(resources: StoreResources) -> None:
        _require(resources, "/carrito")
        item = await _load_product(resources, product_id)
        resources.cart.add_to_cart(item, qty)
        line = resources.cart.get_line(product_id)
        if line is None:
            console.print(f"[yellow]{item.product_name} is out of stock[/yellow]")
            return
        console.print(f"{item.product_name}: {line.quantity} in cart")
        if line.quantity == item.stock:
            console.print(f"[dim]Limited to available stock ({item.stock})[/dim]")

    _run(action)


@cart_app.command("remove")
def cart_remove(product_id: int = typer.Argument(...)) -> None:
    """Remove a product from the cart."""

    async def action(resources: StoreResources) -> None:
        _require(resources, "/carrito")
        resources.cart.remove_from_cart(product_id)
        _print_cart(resources)

    _run(action)


@cart_app.command("set")
def cart_set(
    product_id: int = typer.Argument(...),
    qty: int = typer.Argument(..., help="New quantity; 0 removes the line"),
) -> None:
    """Set the quantity of a cart line."""

    async def action(resources: StoreResources) -> None:
        _require(resources, "/carrito")
        resources.cart.update_quantity(product_id, qty)
        _print_cart(resources)

    _run(action)


@cart_app.command("clear")
def cart_clear() -> None:
    """Empty the cart."""

    async def action(resources: StoreResources) -> None:
        _require(resources, "/carrito")
        resources.cart.clear_cart()
        console.print("Cart cleared")

    _run(action)


@cart_app.command("checkout")
def cart_checkout() -> None:
    """Simulate the purchase and empty the cart."""

    async def action(resources: StoreResources) -> None:
        _require(resources, "/carrito")
        summary = resources.cart.checkout()
        if summary is None:
            console.print("Your cart is empty")
            return
        console.print(
            f"[bold green]✓ Thank you for your purchase![/bold green] "
            f"{summary.count} items, total {_money(summary.total)}"
        )
        console.print("[dim]Simulated checkout, no payment was processed.[/dim]")

    _run(action)


@app.command()
def version() -> None:
    """Show version information."""
    console.print("funkos version 0.1.0")


if __name__ == "__main__":
    app()
