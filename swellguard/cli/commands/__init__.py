"""
Main CLI command registration.

Sets up the main command group and registers all subcommands. Command modules
import the application code only when a command actually runs.
"""
import typer

# Create the main command group
app = typer.Typer(help="SwellGuard admin security CLI")


@app.callback()
def main_callback():
    """SwellGuard command line interface."""
    pass


from . import server as server_module  # noqa: E402
from . import secrets as secrets_module  # noqa: E402
from . import audit as audit_module  # noqa: E402

app.add_typer(server_module.app, name="server", help="Server management commands")
app.add_typer(secrets_module.app, name="secrets", help="Password, emergency code and MFA enrollment helpers")
app.add_typer(audit_module.app, name="audit", help="Inspect and verify the audit trail")

__all__ = ['app']
