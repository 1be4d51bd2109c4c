"""
Secret management commands: hashing passwords and emergency codes, MFA enrollment.
"""
import json

import typer

from ..utils import console, print_info, print_success, print_warning

app = typer.Typer(help="Password, emergency code and MFA enrollment helpers")


@app.command("hash")
def hash_command(
    secret: str = typer.Option(
        ..., prompt=True, hide_input=True, confirmation_prompt=True,
        help="Password or emergency code to hash"
    ),
) -> None:
    """Print the passlib hash of a secret, for identity files or SWELLGUARD_EMERGENCY_ACCESS_CODE_HASH."""
    from ...core.security import hash_secret

    # Plain echo so the hash is never wrapped
    typer.echo(hash_secret(secret))


@app.command("mfa-enroll")
def mfa_enroll(
    email: str = typer.Argument(..., help="Account to enroll"),
    issuer: str = typer.Option("SwellGuard", help="Issuer shown in the authenticator app"),
    backup_codes: int = typer.Option(10, min=0, help="Number of backup codes to generate"),
    qr: bool = typer.Option(True, help="Render the provisioning URI as a QR code"),
) -> None:
    """Generate a TOTP secret and backup codes for an admin account."""
    from ...auth.two_factor import TwoFactorService
    from ...core.security import hash_secret

    secret = TwoFactorService.generate_secret()
    uri = TwoFactorService.provisioning_uri(secret, email, issuer=issuer)
    codes = TwoFactorService.generate_backup_codes(backup_codes)

    print_success(f"TOTP secret generated for {email}")
    console.print(f"Secret: [bold]{secret}[/bold]")
    console.print(f"URI: {uri}")
    if qr:
        console.print(TwoFactorService.render_qr_ascii(uri))

    if codes:
        print_warning("Backup codes are shown once. Store them offline.")
        for code in codes:
            console.print(f"  {code}")

    print_info("Identity file entry fields:")
    console.print(json.dumps(
        {"totp_secret": secret, "backup_code_hashes": [hash_secret(code) for code in codes]},
        indent=2,
    ))
