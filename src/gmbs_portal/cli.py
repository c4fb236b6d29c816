"""Typer CLI for GMBS Portal."""

import asyncio
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(name="gmbs-portal", help="GMBS Portal: artisan portal and CRM sync API")
console = Console()


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Bind host (default from GMBS_HOST)"),
    port: Optional[int] = typer.Option(None, help="Bind port (default from GMBS_PORT)"),
):
    """Start the GMBS Portal API server."""
    import uvicorn
    from gmbs_portal.app import create_app
    from gmbs_portal.common.config import get_settings

    settings = get_settings()
    host = host or settings.host
    port = port or settings.port
    console.print(f"[bold green]Starting GMBS Portal on {host}:{port}[/bold green]")
    uvicorn.run(create_app(settings), host=host, port=port)


async def _create_tenant(name: str, plan: str, allowed_artisans: Optional[int], status: str):
    from gmbs_portal.deps import ServiceContainer
    from gmbs_portal.common.config import get_settings

    container = ServiceContainer.build(get_settings())
    await container.init()
    try:
        async with container.db.get_session() as session:
            return await container.tenants.create_tenant(
                session,
                name=name,
                plan=plan,
                subscription_status=status,
                allowed_artisans=allowed_artisans,
                actor="cli",
            )
    finally:
        await container.close()


@app.command("create-tenant")
def create_tenant(
    name: str = typer.Argument(..., help="Tenant display name"),
    plan: str = typer.Option("basic", help="basic, pro or enterprise"),
    allowed_artisans: Optional[int] = typer.Option(None, help="Override the plan's artisan quota"),
    status: str = typer.Option("active", help="Initial subscription status"),
):
    """Create a tenant and print its first API key pair."""
    from gmbs_portal.common.exceptions import PortalError

    try:
        tenant, api_key, secret = asyncio.run(_create_tenant(name, plan, allowed_artisans, status))
    except PortalError as e:
        console.print(f"[bold red]{e.code}[/bold red]: {e.message}")
        raise typer.Exit(1)

    table = Table(title=f"Tenant {tenant.name}")
    table.add_column("Field")
    table.add_column("Value")
    table.add_row("tenant_id", tenant.id)
    table.add_row("plan", tenant.subscription_plan)
    table.add_row("allowed_artisans", str(tenant.allowed_artisans))
    table.add_row("key_id", api_key.key_id)
    table.add_row("secret", secret)
    console.print(table)
    console.print("[yellow]The secret is shown once; store it now.[/yellow]")


async def _issue_key(tenant_id: str, label: str, scopes: Optional[list[str]]):
    from gmbs_portal.common.exceptions import NotFound
    from gmbs_portal.deps import ServiceContainer
    from gmbs_portal.common.config import get_settings

    container = ServiceContainer.build(get_settings())
    await container.init()
    try:
        async with container.db.get_session() as session:
            if await container.tenants.get_by_id(session, tenant_id) is None:
                raise NotFound("Tenant not found")
            return await container.tenants.issue_api_key(
                session, tenant_id, scopes=scopes, label=label, actor="cli",
            )
    finally:
        await container.close()


@app.command("issue-key")
def issue_key(
    tenant_id: str = typer.Argument(..., help="Tenant id"),
    label: str = typer.Option("Production", help="Key label"),
    scope: Optional[list[str]] = typer.Option(None, "--scope", help="Scope (repeatable)"),
):
    """Issue an additional API key for a tenant."""
    from gmbs_portal.common.exceptions import PortalError

    try:
        api_key, secret = asyncio.run(_issue_key(tenant_id, label, scope or None))
    except PortalError as e:
        console.print(f"[bold red]{e.code}[/bold red]: {e.message}")
        raise typer.Exit(1)

    console.print(f"[bold]key_id:[/bold] {api_key.key_id}")
    console.print(f"[bold]secret:[/bold] {secret}")
    console.print(f"[bold]scopes:[/bold] {', '.join(api_key.scopes)}")


@app.command()
def health(
    url: str = typer.Option("http://localhost:8080", help="Server URL"),
):
    """Check GMBS Portal server health."""
    import httpx

    try:
        resp = httpx.get(f"{url}/health", timeout=5)
        data = resp.json()
        console.print(f"[bold green]{data['status']}[/bold green]: v{data['version']}")
    except (httpx.HTTPError, ValueError, KeyError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
