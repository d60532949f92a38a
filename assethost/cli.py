"""CLI commands for assethost."""

import asyncio
import logging
import sys

import click

from assethost.lib.exceptions import ConfigurationError, GatewayError

EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2


def _load_config():
    from assethost.config import load_config

    try:
        return load_config()
    except ConfigurationError as exc:
        click.echo(f"Configuration error: {exc}", err=True)
        sys.exit(EXIT_CONFIG_ERROR)


@click.group()
@click.version_option(package_name="assethost")
@click.option(
    "-f",
    "--config-file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Path to the config file (default: ./assethost.yaml)",
)
def cli(config_file):
    """assethost - publish fingerprinted static assets to an object store."""
    if config_file:
        from assethost.config import set_config_path

        set_config_path(config_file)


@cli.command()
@click.option("--dry-run", is_flag=True, help="Show what would be uploaded without uploading")
@click.option("--force", is_flag=True, help="Upload every key even if it already exists")
@click.option("-v", "--verbose", is_flag=True, help="List every key and whether it is uploaded")
@click.option(
    "--log-level",
    default="warning",
    type=click.Choice(["debug", "info", "warning", "error"]),
    help="Logging level",
)
def publish(dry_run, force, verbose, log_level):
    """Fingerprint, rewrite, compress and upload all assets."""
    from assethost.config import load_credentials
    from assethost.lib.publisher import Publisher
    from assethost.lib.storage import create_object_store

    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = _load_config()
    try:
        config.validate_setup()
        credentials = load_credentials(config) if config.store.backend == "s3" else None
        store = create_object_store(config, credentials)
    except ConfigurationError as exc:
        click.echo(f"Configuration error: {exc}", err=True)
        sys.exit(EXIT_CONFIG_ERROR)

    async def run():
        publisher = Publisher(config, store)
        try:
            plan = await publisher.prepare(force=force)
            if verbose:
                _echo_plan(plan)
            return await publisher.execute(plan, dry_run=dry_run)
        finally:
            await store.close()

    try:
        report = asyncio.run(run())
    except GatewayError as exc:
        click.echo(f"Could not list existing keys: {exc}", err=True)
        sys.exit(EXIT_FAILURE)

    for error in report.local_failures:
        click.echo(f"! {error}", err=True)
    for key, error in sorted(report.failed.items()):
        click.echo(f"! {key}: {error}", err=True)

    prefix = "Would upload" if dry_run else "Uploaded"
    click.echo(
        f"{prefix} {len(report.uploaded)} keys, "
        f"{len(report.skipped)} already present, "
        f"{len(report.failed) + len(report.local_failures)} failed"
    )
    sys.exit(report.exit_code)


def _echo_plan(plan):
    plain = [d for d in plan.decisions if not d.gzip]
    compressed = [d for d in plan.decisions if d.gzip]

    click.echo("-- Updating uncompressed files")
    for decision in plain:
        click.echo(f"{'+' if decision.needs_upload else '='} {decision.key}")

    if compressed:
        click.echo("-- Updating compressed files")
        for decision in compressed:
            click.echo(f"{'+' if decision.needs_upload else '='} {decision.key}")


def _client_hints(user_agent, accept_encoding):
    from assethost.lib.host import ClientHints

    if user_agent is None and accept_encoding is None:
        return None
    return ClientHints(user_agent=user_agent or "", accept_encoding=accept_encoding or "")


@cli.command()
@click.argument("reference")
@click.option("--user-agent", default=None, help="Client User-Agent header")
@click.option("--accept-encoding", default=None, help="Client Accept-Encoding header")
@click.option("--shard", default=None, type=int, help="Shard index for a %d CNAME")
def host(reference, user_agent, accept_encoding, shard):
    """Print the host an asset REFERENCE is served from."""
    from assethost.lib.host import HostResolver

    config = _load_config()
    resolved = HostResolver(config).resolve_host(
        reference, _client_hints(user_agent, accept_encoding), shard
    )
    click.echo(resolved)


@cli.command()
@click.argument("source")
@click.option("--user-agent", default=None, help="Client User-Agent header")
@click.option("--accept-encoding", default=None, help="Client Accept-Encoding header")
@click.option("--shard", default=None, type=int, help="Shard index for a %d CNAME")
def url(source, user_agent, accept_encoding, shard):
    """Print the full published URL for an asset SOURCE."""
    from assethost.lib.asset_url import AssetURLResolver

    config = _load_config()
    resolved = AssetURLResolver(config).url_for(
        source, _client_hints(user_agent, accept_encoding), shard
    )
    click.echo(resolved)


if __name__ == "__main__":
    cli()
