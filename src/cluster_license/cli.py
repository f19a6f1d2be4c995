"""CLI for verifying, fetching and loading engine licenses."""

from __future__ import annotations

import logging
from pathlib import Path

import click

from cluster_license.config import Settings, get_settings, load_config
from cluster_license.docker import DockerClusterClient
from cluster_license.hub import HubClient, HubError
from cluster_license.licensing import (
    EntitlementRecord,
    LicenseError,
    Placement,
    load_license,
    parse_license,
)

logger = logging.getLogger("cluster_license")


def _print_entitlement(record: EntitlementRecord) -> None:
    for key, value in record.to_dict().items():
        click.echo(f"{key + ':':<18} {value}")


def _verify_or_exit(data: bytes) -> EntitlementRecord:
    try:
        return parse_license(data)
    except LicenseError as exc:
        click.echo(f"Error: license rejected ({exc})", err=True)
        raise SystemExit(1) from exc


def _store(data: bytes, settings: Settings, root_dir: str | None, cluster: bool) -> Placement:
    root = root_dir or settings.distribution.root_dir
    client = DockerClusterClient.from_config(settings.docker) if cluster else None
    try:
        return load_license(data, client, root)
    except LicenseError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc
    finally:
        if client is not None:
            client.close()


@click.group()
@click.option("--config", "config_path", type=click.Path(dir_okay=False), default=None,
              help="Path to a YAML configuration file")
@click.option("--debug", is_flag=True, default=False, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, debug: bool) -> None:
    """Verify, fetch and distribute engine licenses."""
    settings = load_config(config_path) if config_path else get_settings()
    logging.basicConfig(
        level=logging.DEBUG if debug or settings.debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


@cli.command("verify")
@click.argument("license_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def verify(license_file: Path) -> None:
    """Verify a license file and show its entitlement."""
    record = _verify_or_exit(license_file.read_bytes())
    _print_entitlement(record)


@cli.command("load")
@click.argument("license_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--root-dir", default=None, help="Engine root directory for standalone hosts")
@click.option("--no-cluster", is_flag=True, default=False,
              help="Always write the license file, never a cluster config")
@click.pass_context
def load(ctx: click.Context, license_file: Path, root_dir: str | None, no_cluster: bool) -> None:
    """Verify a license file and store it on the host or the cluster."""
    data = license_file.read_bytes()
    _verify_or_exit(data)
    placement = _store(data, ctx.obj["settings"], root_dir, not no_cluster)
    click.echo(f"License stored ({placement.mode.value}): {placement.location}")


@cli.command("subscriptions")
@click.option("--username", prompt=True, help="Hub username")
@click.option("--password", prompt=True, hide_input=True, help="Hub password")
@click.pass_context
def subscriptions(ctx: click.Context, username: str, password: str) -> None:
    """List the subscriptions a license can be downloaded from."""
    settings: Settings = ctx.obj["settings"]
    with HubClient(settings.hub) as hub:
        try:
            token = hub.login(username, password)
            user = hub.get_user(username)
            subs = hub.list_subscriptions(token, user.id)
        except HubError as exc:
            click.echo(f"Error: {exc}", err=True)
            raise SystemExit(1) from exc

    if not subs:
        click.echo("No licenses found.")
        return
    for sub in subs:
        click.echo(f"{sub.subscription_id}  {sub.state:<8} ({sub.product_id}) {sub.name}")


@cli.command("fetch")
@click.option("--username", prompt=True, help="Hub username")
@click.option("--password", prompt=True, hide_input=True, help="Hub password")
@click.option("--subscription", "subscription_id", default=None,
              help="Subscription to download the license of")
@click.option("--trial", "trial_name", default=None,
              help="Generate a new trial subscription with this name instead")
@click.option("--output", type=click.Path(dir_okay=False, path_type=Path), default=None,
              help="Save the license file here")
@click.option("--load", "load_after", is_flag=True, default=False,
              help="Store the verified license on the host or cluster")
@click.option("--root-dir", default=None, help="Engine root directory for standalone hosts")
@click.pass_context
def fetch(
    ctx: click.Context,
    username: str,
    password: str,
    subscription_id: str | None,
    trial_name: str | None,
    output: Path | None,
    load_after: bool,
    root_dir: str | None,
) -> None:
    """Download a license from the store and verify it."""
    if bool(subscription_id) == bool(trial_name):
        raise click.UsageError("Pass exactly one of --subscription or --trial")

    settings: Settings = ctx.obj["settings"]
    with HubClient(settings.hub) as hub:
        try:
            token = hub.login(username, password)
            if trial_name:
                user = hub.get_user(username)
                subscription_id = hub.create_trial(token, user.id, trial_name).subscription_id
            data, meta = hub.download_license(token, subscription_id)
        except HubError as exc:
            click.echo(f"Error: {exc}", err=True)
            raise SystemExit(1) from exc

    logger.info("Downloaded license for subscription %s (%s)", meta.subscription_id, meta.name)
    record = _verify_or_exit(data)
    _print_entitlement(record)

    if output is not None:
        try:
            output.write_bytes(data)
        except OSError as exc:
            click.echo(f"Error: failed to save license to {output}: {exc}", err=True)
            raise SystemExit(1) from exc
        click.echo(f"License saved to {output}")
    if load_after:
        placement = _store(data, settings, root_dir, cluster=True)
        click.echo(f"License stored ({placement.mode.value}): {placement.location}")


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
