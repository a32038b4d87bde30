"""
Admin commands registered on the `flask` CLI by create_app().

Usage:
    flask set-admin <user_id>                 # Grant admin rights
    flask set-admin <user_id> --revoke        # Revoke admin rights
    flask trust-status <user_id>              # Show trust counters
    flask moderation-check "some text"        # Run the classifier locally
    flask moderation-check "text" --link URL  # ...and the link checker
"""

from __future__ import annotations

import click
from flask.cli import with_appcontext


@click.command("set-admin")
@click.argument("user_id")
@click.option("--revoke", is_flag=True, default=False, help="Remove admin rights instead of granting them.")
@with_appcontext
def set_admin_command(user_id: str, revoke: bool) -> None:
    """Grant or revoke admin privileges for an existing user."""
    from roadway.services import supabase_client
    from roadway.utils.errors import StoreUnavailable

    if not supabase_client.is_configured():
        click.echo("Error: store not configured (set SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY).")
        raise SystemExit(1)

    try:
        profile = supabase_client.set_admin_flag(user_id, not revoke)
    except StoreUnavailable:
        click.echo("Error: could not reach the database.")
        raise SystemExit(1)

    if not profile:
        click.echo(f"No user found with id {user_id}.")
        raise SystemExit(1)

    state = "revoked" if revoke else "granted"
    click.echo(f"Admin rights {state} for {user_id}.")


@click.command("trust-status")
@click.argument("user_id")
@with_appcontext
def trust_status_command(user_id: str) -> None:
    """Print a user's trust record."""
    from roadway.services import trust
    from roadway.utils.errors import ModerationError

    try:
        record = trust.get_trust_record(user_id)
    except ModerationError as e:
        click.echo(f"Error: {e.message}")
        raise SystemExit(1)

    click.echo(f"User:            {record['userId']}")
    click.echo(f"Clean streak:    {record['cleanPostCount']}")
    click.echo(f"Violations:      {record['postViolations']}")
    click.echo(f"Trusted:         {'yes' if record['isTrusted'] else 'no'}")


@click.command("moderation-check")
@click.argument("text")
@click.option("--link", default=None, help="Also run the link safety checker on this URL.")
@with_appcontext
def moderation_check_command(text: str, link: str | None) -> None:
    """Classify text (and optionally a link) without storing anything."""
    from roadway.services import ai, link_safety, moderation

    ai.AI_LAST_ERROR = None
    verdict = moderation.classify(text, link)
    click.echo(f"Content: {verdict.to_dict()}")
    if ai.AI_LAST_ERROR:
        click.echo(f"  (classifier failed open: {ai.AI_LAST_ERROR})")

    if link:
        ai.AI_LAST_ERROR = None
        link_verdict = link_safety.check_link(link)
        click.echo(f"Link:    {link_verdict.to_dict()}")
        if ai.AI_LAST_ERROR:
            click.echo(f"  (link check failed open: {ai.AI_LAST_ERROR})")
