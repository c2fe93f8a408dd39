"""Operator CLI — provision tenants and reset passwords without the HTTP API.

    tenantry create-tenant acme
    tenantry reset-password acme
    tenantry list-tenants
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from tenantry.core.config import Settings, get_settings
from tenantry.core.errors import TenancyError
from tenantry.services.provisioning import TenantProvisioner
from tenantry.services.registry import RegistryStore
from tenantry.services.store_pool import SqliteStorageEngine, TenantStorePool

app = typer.Typer(
    name="tenantry",
    help="Tenant operator commands",
    no_args_is_help=True,
    add_completion=False,
)
console = Console()

DataDirOption = typer.Option(None, "--data-dir", help="Override DATA_DIR")


def _settings(data_dir: Optional[Path]) -> Settings:
    settings = get_settings()
    if data_dir is not None:
        settings = settings.model_copy(update={"data_dir": data_dir})
    return settings


@asynccontextmanager
async def _provisioner(settings: Settings) -> AsyncIterator[TenantProvisioner]:
    registry = RegistryStore(settings.resolved_registry_url)
    await registry.open()
    pool = TenantStorePool(SqliteStorageEngine(settings.data_dir))
    try:
        yield TenantProvisioner(registry, pool, trial_days=settings.trial_days)
    finally:
        await pool.close()
        await registry.close()


def _run(coro):
    try:
        return asyncio.run(coro)
    except TenancyError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(1)


@app.command("create-tenant")
def create_tenant(
    name: str = typer.Argument(..., help="Tenant name (subdomain)"),
    data_dir: Optional[Path] = DataDirOption,
):
    """Register a tenant and create its store."""
    settings = _settings(data_dir)

    async def _create():
        async with _provisioner(settings) as provisioner:
            return await provisioner.register(name)

    entry = _run(_create())
    console.print(f"[bold green]Created tenant {entry.name}[/bold green]")
    console.print(f"URL: https://{entry.name}.{settings.base_domain}")
    console.print(f"Trial ends: {entry.trial_ends_at:%Y-%m-%d %H:%M} UTC")


@app.command("reset-password")
def reset_password(
    name: str = typer.Argument(..., help="Tenant name"),
    password: Optional[str] = typer.Option(
        None, "--password", help="New password; a temporary one is generated if omitted"
    ),
    data_dir: Optional[Path] = DataDirOption,
):
    """Overwrite a tenant's login password."""
    if password is not None and len(password) < 8:
        console.print("[bold red]Error:[/bold red] Password must be at least 8 characters")
        raise typer.Exit(1)
    settings = _settings(data_dir)

    async def _reset():
        async with _provisioner(settings) as provisioner:
            return await provisioner.reset_password(name, password)

    new_password = _run(_reset())
    console.print(f"[bold green]Password reset for {name}[/bold green]")
    if password is None:
        console.print(f"Temporary password: {new_password}")


@app.command("list-tenants")
def list_tenants(data_dir: Optional[Path] = DataDirOption):
    """Show registered tenants with their status and storage state."""
    settings = _settings(data_dir)

    async def _diagnose():
        async with _provisioner(settings) as provisioner:
            return await provisioner.diagnose()

    report = _run(_diagnose())
    if not report.tenants:
        console.print("No tenants found.")
        return

    table = Table(title=f"Tenants in {report.data_dir}")
    table.add_column("Name")
    table.add_column("Store")
    for tenant in report.tenants:
        table.add_row(tenant.name, "ok" if tenant.has_db else "[red]missing[/red]")
    console.print(table)


if __name__ == "__main__":
    app()
