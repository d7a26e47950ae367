"""Profile commands -- create, inspect and select saved Okapi profiles.

Provides the ``okapiconn profile`` sub-command group. Each profile stores
one Okapi base URI / tenant pair, its auth configuration and request
settings (:class:`~okapiconn.models.Profile`). Secrets are stored only as
credential sources, never as values.
"""

from __future__ import annotations

from typing import Optional

import typer

from okapiconn.output import error, format_response, get_output, info, success, suggest


profile_app = typer.Typer(no_args_is_help=True)


@profile_app.command("add")
def profile_add(
    name: str = typer.Argument(help="Profile name."),
    base_url: str = typer.Option(..., "--base-url", help="Okapi base URI."),
    tenant: str = typer.Option(..., "--tenant", help="Okapi tenant id."),
    auth_type: Optional[str] = typer.Option(
        None,
        "--auth",
        "-a",
        help="Auth type: cli_credentials, dialog_credentials, fixed_credentials, "
        "fixed_token, browser_token.",
    ),
    username: Optional[str] = typer.Option(None, "--username", help="Login user name."),
    user_id: Optional[str] = typer.Option(None, "--user-id", help="Login user id."),
    password_source: Optional[str] = typer.Option(
        None, "--password-source", help="Password source: env:VAR, file:/path, prompt."
    ),
    token_source: Optional[str] = typer.Option(
        None, "--token-source", help="Token source: env:VAR, file:/path, prompt."
    ),
    login_url: Optional[str] = typer.Option(
        None, "--login-url", help="UI login page opened by browser_token."
    ),
    token_dir: Optional[str] = typer.Option(
        None, "--token-dir", help="Directory browser tokens are forwarded to."
    ),
    timeout: float = typer.Option(30, "--timeout", help="Request timeout in seconds."),
    no_verify_ssl: bool = typer.Option(
        False, "--no-verify-ssl", help="Do not verify TLS certificates."
    ),
    make_default: bool = typer.Option(
        False, "--default", help="Make this the default profile."
    ),
) -> None:
    """Create or overwrite a profile.

    The profile and its auth section are validated before anything is
    written; an invalid combination exits with code 2.

    Example::

        okapiconn profile add diku --base-url https://okapi.example.org --tenant diku \\
            --auth fixed_credentials --username diku_admin --password-source env:OKAPI_PW
    """
    from pydantic import ValidationError

    from okapiconn.auth import create_default_manager
    from okapiconn.config import (
        load_global_config,
        profile_exists,
        save_global_config,
        save_profile,
    )
    from okapiconn.models import AuthConfig, Profile, RequestConfig

    try:
        auth = None
        if auth_type is not None:
            auth = AuthConfig(
                type=auth_type,
                username=username,
                user_id=user_id,
                password_source=password_source,
                token_source=token_source,
                login_url=login_url,
                token_dir=token_dir,
            )
        profile = Profile(
            name=name,
            base_url=base_url,
            tenant=tenant,
            auth=auth,
            request=RequestConfig(timeout=timeout, verify_ssl=not no_verify_ssl),
        )
    except ValidationError as exc:
        error(f"Invalid profile: {exc}")
        raise typer.Exit(code=2) from None

    if auth is not None:
        problems = create_default_manager().get_strategy_class(auth.type).validate_config(auth)
        if problems:
            error(f"Invalid '{auth.type}' auth config: " + "; ".join(problems))
            raise typer.Exit(code=2)

    if profile_exists(name):
        info(f'Profile "{name}" already exists and will be overwritten.')
    save_profile(profile)

    if make_default:
        config = load_global_config()
        config.default_profile = name
        save_global_config(config)

    success(f'Profile "{name}" saved.')
    if not make_default:
        suggest(f"Make it the default: okapiconn profile use {name}")


@profile_app.command("list")
def profile_list() -> None:
    """List all profiles with base URI, tenant and auth type.

    Profiles that fail to load are shown with an ``error`` status.

    Example::

        okapiconn profile list
        okapiconn --json profile list
    """
    from okapiconn.config import list_profiles, load_global_config, load_profile

    names = list_profiles()
    if not names:
        info("No profiles configured.")
        suggest("Create one: okapiconn profile add <name> --base-url <url> --tenant <tenant>")
        return

    default = load_global_config().default_profile
    rows: list[list[str]] = []
    for name in names:
        marker = "*" if name == default else ""
        try:
            profile = load_profile(name)
        except Exception:
            rows.append([marker, name, "error", "-", "-"])
            continue
        auth_type = profile.auth.type if profile.auth else "none"
        rows.append([marker, name, profile.base_url, profile.tenant, auth_type])

    get_output().print_table(
        ["Default", "Profile", "Base URL", "Tenant", "Auth"], rows, title="Okapi Profiles"
    )


@profile_app.command("show")
def profile_show(
    ctx: typer.Context,
    name: Optional[str] = typer.Argument(None, help="Profile name (default: active profile)."),
) -> None:
    """Show a profile as JSON.

    Without *name* the active profile is shown, resolved the same way
    ``okapiconn request`` resolves it.

    Example::

        okapiconn profile show diku
    """
    from okapiconn.config import get_config_dir, load_profile, resolve_profile

    if name is None:
        cli_profile = ctx.obj.get("profile") if ctx.obj else None
        profile = resolve_profile(cli_profile)
        if profile is None:
            error("No active profile.")
            raise typer.Exit(code=2)
    else:
        profile = load_profile(name)

    info(f"Config directory: {get_config_dir()}")
    format_response(profile.model_dump(mode="json", exclude_none=True))


@profile_app.command("remove")
def profile_remove(
    name: str = typer.Argument(help="Profile name to remove."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
) -> None:
    """Delete a profile.

    Clears the default profile setting if it pointed at the removed
    profile. Asks for confirmation unless ``--yes`` is given.

    Example::

        okapiconn profile remove diku --yes
    """
    from okapiconn.config import (
        delete_profile,
        load_global_config,
        profile_exists,
        save_global_config,
    )

    if not profile_exists(name):
        error(f'Profile "{name}" does not exist.')
        raise typer.Exit(code=2)

    if not yes:
        confirmed = typer.confirm(f'Remove profile "{name}"?')
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    delete_profile(name)
    config = load_global_config()
    if config.default_profile == name:
        config.default_profile = None
        save_global_config(config)
    success(f'Profile "{name}" removed.')


@profile_app.command("use")
def profile_use(
    name: str = typer.Argument(help="Profile to make the default."),
) -> None:
    """Make *name* the default profile.

    Example::

        okapiconn profile use diku
    """
    from okapiconn.config import load_global_config, profile_exists, save_global_config

    if not profile_exists(name):
        error(f'Profile "{name}" does not exist.')
        raise typer.Exit(code=2)

    config = load_global_config()
    config.default_profile = name
    save_global_config(config)
    success(f'Default profile set to "{name}".')
