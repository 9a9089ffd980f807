"""CLI entry point for the testnet faucet."""

from __future__ import annotations

import asyncio
import json
import logging
import sys

import click

from testnet_faucet.config import load_config
from testnet_faucet.coordinator import ClaimCoordinator, build_coordinator
from testnet_faucet.errors import ConfigurationError, FaucetError
from testnet_faucet.scoring.passport import PassportScorer


def _echo_json(payload: dict) -> None:
    click.echo(json.dumps(payload, indent=2))


def _coordinator(ctx: click.Context) -> ClaimCoordinator:
    """Build the coordinator or exit if the configuration is incomplete."""
    cfg = load_config(ctx.obj["config_path"])
    try:
        return build_coordinator(cfg)
    except ConfigurationError as exc:
        click.echo(f"Error: server configuration error: {exc}", err=True)
        sys.exit(1)


@click.group()
@click.option("-c", "--config", "config_path", default=None, help="Path to config TOML file")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """testnet-faucet - rate-limited testnet funds dispenser."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose

    if verbose:
        level = logging.DEBUG
    else:
        cfg = load_config(config_path)
        level = getattr(logging, cfg.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


# ── Info ───────────────────────────────────────────────


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show faucet configuration."""
    cfg = load_config(ctx.obj["config_path"])
    click.echo(f"Cooldown:    {cfg.cooldown_hours:g} hours")
    click.echo(f"Amount:      {cfg.faucet_amount}")
    click.echo(f"Key prefix:  {cfg.key_prefix}")
    click.echo(f"Networks:    {len(cfg.networks)}")
    click.echo(f"Store URL:   {cfg.store.url or '(not set)'}")
    click.echo(f"Store token: {'***configured***' if cfg.store.token else '(not set)'}")
    click.echo(f"Private key: {'***configured***' if cfg.private_key else '(not set)'}")
    click.echo(f"Passport:    {'enabled' if cfg.passport.enabled else 'disabled'}")


@cli.command()
@click.pass_context
def networks(ctx: click.Context) -> None:
    """List configured networks."""
    cfg = load_config(ctx.obj["config_path"])
    for n in cfg.networks:
        amount = n.faucet_amount or cfg.faucet_amount
        click.echo(f"{n.id:<20} chain {n.chain_id:<10} {amount} {n.symbol:<6} {n.rpc_url}")


# ── Claims ─────────────────────────────────────────────


@cli.command()
@click.argument("address")
@click.argument("network_id")
@click.pass_context
def check(ctx: click.Context, address: str, network_id: str) -> None:
    """Check whether ADDRESS may claim on NETWORK_ID now."""
    coordinator = _coordinator(ctx)

    async def _check():
        try:
            result = await coordinator.check(address, network_id)
            _echo_json(result.to_dict())
            return True
        except FaucetError as exc:
            _echo_json(exc.to_dict())
            return False
        finally:
            await coordinator.close()

    if not asyncio.run(_check()):
        sys.exit(1)


@cli.command()
@click.argument("address")
@click.argument("network_id")
@click.option("--amount", default=None, help="Requested amount (capped at the faucet amount)")
@click.pass_context
def claim(ctx: click.Context, address: str, network_id: str, amount: str | None) -> None:
    """Send faucet funds to ADDRESS on NETWORK_ID."""
    coordinator = _coordinator(ctx)

    async def _claim():
        try:
            outcome = await coordinator.execute(address, network_id, amount)
            _echo_json(outcome.to_dict())
            return True
        except FaucetError as exc:
            _echo_json(exc.to_dict())
            return False
        finally:
            await coordinator.close()

    if not asyncio.run(_claim()):
        sys.exit(1)


@cli.command()
@click.argument("address")
@click.pass_context
def score(ctx: click.Context, address: str) -> None:
    """Look up the passport score for ADDRESS."""
    cfg = load_config(ctx.obj["config_path"])
    if not cfg.passport.api_url or not cfg.passport.api_key:
        click.echo("Error: passport API url/key not configured.", err=True)
        click.echo("Set GITCOIN_PASSPORT_API_URL and GITCOIN_PASSPORT_API_KEY.", err=True)
        sys.exit(1)

    async def _score():
        scorer = PassportScorer(
            cfg.passport.api_url,
            cfg.passport.api_key,
            cfg.passport.threshold,
            cfg.passport.timeout,
        )
        try:
            result = await scorer.score(address)
            _echo_json(result.to_dict())
            return True
        except FaucetError as exc:
            _echo_json(exc.to_dict())
            return False
        finally:
            await scorer.close()

    if not asyncio.run(_score()):
        sys.exit(1)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
