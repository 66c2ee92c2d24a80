"""
permit7702 command-line interface.

Usage:
    permit7702 [--env-file PATH] [--log-level LEVEL] COMMAND [ARGS]...

Commands:
    balance   Show the smart account's USDC balance
    transfer  Send USDC, paying gas in USDC through the permit paymaster
    swap      Swap MXNB for USDC through the hook pool
"""

import asyncio

import click

from .adapters.evm.constants import amount_to_value
from .config import Settings
from .engine.exceptions import Permit7702Error
from .flows import (
    DEFAULT_SWAP_AMOUNT_IN,
    DEFAULT_TRANSFER_AMOUNT,
    UserOperationResult,
    check_balance,
    send_swap,
    send_transfer,
)
from .utils import setup_logger


def _run(coro):
    try:
        return asyncio.run(coro)
    except (Permit7702Error, ValueError) as e:
        raise click.ClickException(str(e)) from e


def _echo_result(result: UserOperationResult) -> None:
    click.echo(f"UserOperation hash {result.user_op_hash}")
    click.echo(f"Transaction hash {result.transaction_hash}")
    if not result.success:
        raise click.ClickException(f"UserOperation reverted: {result.reason or 'unknown reason'}")


@click.group()
@click.option("--env-file", type=click.Path(dir_okay=False), default=None, help="Path to a .env file")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="INFO",
    show_default=True,
    help="Logging level",
)
@click.pass_context
def cli(ctx, env_file, log_level):
    """Send ERC-4337 user operations from an EIP-7702 account, paying gas in USDC."""
    setup_logger(log_level)
    ctx.ensure_object(dict)
    try:
        ctx.obj["settings"] = Settings.from_env(env_file)
    except Permit7702Error as e:
        raise click.ClickException(str(e)) from e


@cli.command()
@click.pass_context
def balance(ctx):
    """Show the USDC balance of the smart account."""
    settings: Settings = ctx.obj["settings"]
    report = _run(check_balance(settings))
    click.echo(report.address)
    click.echo(f"USDC balance: {report.amount}")
    click.echo(report.message)


@cli.command()
@click.option(
    "--amount",
    type=str,
    default=None,
    help="USDC amount to send (default 0.01)",
)
@click.option("--to", "recipient", default=None, help="Recipient (defaults to RECIPIENT_ADDRESS)")
@click.pass_context
def transfer(ctx, amount, recipient):
    """Transfer USDC from the smart account."""
    settings: Settings = ctx.obj["settings"]
    value = DEFAULT_TRANSFER_AMOUNT
    if amount is not None:
        try:
            value = amount_to_value(amount=amount, decimals=settings.usdc_decimals)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="--amount") from e
    result = _run(send_transfer(settings, amount=value, recipient=recipient))
    _echo_result(result)


@cli.command()
@click.option(
    "--amount-in",
    type=int,
    default=DEFAULT_SWAP_AMOUNT_IN,
    show_default=True,
    help="Input amount of MXNB in smallest units",
)
@click.option("--approve", is_flag=True, help="Approve the router for both pool tokens first")
@click.pass_context
def swap(ctx, amount_in, approve):
    """Swap MXNB for USDC through the hook pool."""
    settings: Settings = ctx.obj["settings"]
    result = _run(send_swap(settings, amount_in=amount_in, approve=approve))
    _echo_result(result)


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
