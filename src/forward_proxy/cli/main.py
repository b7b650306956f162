#!/usr/bin/env python3
"""
Forward Proxy CLI

Commands:
- layout: show the storage slots the proxies use
- demo: deploy a permissioned proxy in a fresh VM and relay a call
"""

from __future__ import annotations

import json
import logging
import sys

import click
from rich import box
from rich.console import Console
from rich.table import Table

from forward_proxy.core import config
from forward_proxy.core.contracts import (
    CALLER_ECHO_SELECTORS,
    CallerEcho,
    ProxyClient,
    ProxyFactory,
    storage_layout,
    ward_slot,
)
from forward_proxy.core.logging_config import setup_logging
from forward_proxy.core.vm import Executor
from forward_proxy.core.vm.abi import decode_address, decode_uint, normalize_address

logger = logging.getLogger(__name__)
console = Console()

DEMO_OWNER = "0x" + "a1" * 20
DEMO_WARD = "0x" + "b2" * 20
DEMO_VALUE = 1_000


def _cli_fail(exc: Exception, exit_code: int = 1) -> None:
    """Centralized CLI error handler for consistent messaging."""
    logger.error("CLI error: %s", exc, exc_info=True)
    console.print(f"[bold red]Error:[/] {exc}")
    sys.exit(exit_code)


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None,
    help="Logging level [default: FORWARD_PROXY_LOG_LEVEL or INFO]",
)
@click.option("--json-logs", is_flag=True, help="Emit JSON log lines (also FORWARD_PROXY_LOG_JSON)")
@click.option("--json-output", is_flag=True, help="Output raw JSON")
@click.pass_context
def cli(ctx: click.Context, log_level: str | None, json_logs: bool, json_output: bool):
    """
    Forward Proxy - caller identity emulation for contracts.
    """
    ctx.ensure_object(dict)
    try:
        settings = config.ProxyConfig.from_env()
    except config.ConfigurationError as exc:
        _cli_fail(exc)
    setup_logging(
        name="forward_proxy",
        level=log_level,
        json_format=json_logs or settings.log_json,
        settings=settings,
    )
    ctx.obj["settings"] = settings
    ctx.obj["json_output"] = json_output


@cli.command("layout")
@click.option("--ward", "wards", multiple=True, help="Also show the ward entry slot for ADDRESS")
@click.pass_context
def layout(ctx: click.Context, wards: tuple[str, ...]):
    """
    Show the storage layout of the proxies.

    Every field lives at keccak256(label); ward entries at
    keccak256(pad32(address) ++ pad32(wards slot)).
    """
    try:
        rows = [(label, f"0x{slot:064x}") for label, slot in storage_layout().items()]
        for ward in wards:
            address = normalize_address(ward)
            rows.append((f"wards[{address}]", f"0x{ward_slot(address):064x}"))
    except ValueError as exc:
        _cli_fail(exc)

    if ctx.obj["json_output"]:
        click.echo(json.dumps(dict(rows), indent=2))
        return

    table = Table(title="Forward Proxy Storage Layout", box=box.ROUNDED)
    table.add_column("Field", style="cyan")
    table.add_column("Slot", style="green")
    for label, slot in rows:
        table.add_row(label, slot)
    console.print(table)


@cli.command("demo")
@click.option("--value", default=DEMO_VALUE, type=click.IntRange(min=0), show_default=True,
              help="Value attached to the relayed call")
@click.pass_context
def demo(ctx: click.Context, value: int):
    """
    Deploy a permissioned proxy and a caller-echo target, then relay a call.

    Shows that the target sees the proxy, not the original caller.
    """
    executor = Executor(settings=ctx.obj["settings"])
    executor.state.create_account(DEMO_OWNER, balance=10 * (value + 1))
    executor.state.create_account(DEMO_WARD, balance=10 * (value + 1))

    factory = ProxyFactory(executor)
    proxy_address = factory.deploy_permissioned_proxy(DEMO_OWNER)
    target_address = executor.deploy(CallerEcho(), DEMO_OWNER)
    proxy = ProxyClient(executor, proxy_address)

    steps = [
        ("add_ward", proxy.add_ward(DEMO_OWNER, DEMO_WARD)),
        ("set_target", proxy.set_target(DEMO_WARD, target_address)),
    ]
    relayed = proxy.relay(DEMO_WARD, CALLER_ECHO_SELECTORS["whoami()"], value=value)
    steps.append(("relay whoami()", relayed))

    failed = [(name, result) for name, result in steps if not result.success]
    if failed:
        name, result = failed[0]
        _cli_fail(click.ClickException(f"{name} failed: {result.revert_reason or result.return_data.hex()}"))

    report = {
        "proxy": proxy_address,
        "target": target_address,
        "caller": normalize_address(DEMO_WARD),
        "target_saw_sender": decode_address(relayed.return_data, 0),
        "target_saw_value": decode_uint(relayed.return_data, 32),
        "target_balance": executor.state.get_balance(target_address),
        "gas_used": relayed.gas_used,
    }

    if ctx.obj["json_output"]:
        click.echo(json.dumps(report, indent=2))
        return

    table = Table(title="Relay Demo", box=box.ROUNDED)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    for key, item in report.items():
        table.add_row(key, str(item))
    console.print(table)


def main():
    """Main CLI entry point"""
    try:
        cli(obj={})
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/]")
        sys.exit(130)


if __name__ == "__main__":
    main()
