"""
Server management commands.
"""
from typing import Optional

import typer

from ..utils import print_info, print_success

app = typer.Typer(help="Server management commands")


@app.command("run")
def run_server(
    host: Optional[str] = typer.Option(None, help="Bind address (defaults to SWELLGUARD_HOST)"),
    port: Optional[int] = typer.Option(None, help="Port (defaults to SWELLGUARD_PORT)"),
    reload: bool = False,
) -> None:
    """Run the API server."""
    # Import uvicorn only when needed
    import uvicorn

    from ...core.config import get_settings

    settings = get_settings()
    host = host or settings.HOST
    port = port or settings.PORT

    print_success(f"Starting SwellGuard server at http://{host}:{port}")
    # One worker only: sessions, rate limits and lockouts live in process memory
    uvicorn.run(
        "swellguard:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=settings.LOG_LEVEL.lower(),
    )


@app.command("status")
def server_status() -> None:
    """Show the effective configuration."""
    from ...core.config import get_settings

    settings = get_settings()
    print_info("Server configuration:")
    print_info(f"  Environment: {settings.ENV}")
    print_info(f"  Debug mode: {settings.DEBUG}")
    print_info(f"  Audit sink: {settings.AUDIT_SINK}")
    print_info(f"  Identity file: {settings.IDENTITY_FILE or 'not configured'}")
    print_info(f"  Emergency access: {'configured' if settings.EMERGENCY_ACCESS_CODE_HASH else 'disabled'}")
