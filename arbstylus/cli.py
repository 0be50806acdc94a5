"""
Command-line entry point.

    arbstylus l2balance [addr1] [addr2]
    arbstylus l2transfer [amount|addr ...]
    arbstylus l1deposit [amount] [addr]
    arbstylus callstylus "name(args)" [value]
    arbstylus l1tostylus "name(args)" [value]
"""
import logging
from typing import List, Optional

import typer

from .config import Settings
from .exceptions import (
    ArbStylusError,
    CrossLayerFailure,
    InsufficientFundsError,
    WaitTimeoutError,
)
from .router import CommandRouter
from .version import __version__

app = typer.Typer(
    help="Arbitrum L1/L2 wallet and Stylus contract tool",
    no_args_is_help=True,
    add_completion=False
)

# Free-form tokens such as "-1" or "increment()" must reach the router untouched
COMMAND_SETTINGS = {"ignore_unknown_options": True}


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"arbstylus {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True,
        help="Show the version and exit"
    )
):
    """Arbitrum L1/L2 wallet and Stylus contract tool"""


def _router(ctx: typer.Context) -> CommandRouter:
    """Router injected through ``ctx.obj``, else built from the environment"""
    if ctx.obj is None:
        try:
            settings = Settings.from_env()
            logging.basicConfig(
                level=getattr(logging, settings.log_level.upper(), logging.WARNING),
                format="%(asctime)s %(levelname)s %(name)s: %(message)s"
            )
            ctx.obj = CommandRouter(settings)
        except ArbStylusError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(code=1)
    return ctx.obj


def _dispatch(ctx: typer.Context, command: str, args: Optional[List[str]]) -> None:
    router = _router(ctx)
    reporter = router.reporter
    try:
        outcome = router.dispatch(command, args or [])
    except InsufficientFundsError as e:
        reporter.insufficient_funds(e)
        raise typer.Exit(code=1)
    except (CrossLayerFailure, WaitTimeoutError) as e:
        reporter.error(f"Error: {e}")
        reporter.outcome(e.outcome)
        raise typer.Exit(code=1)
    except ArbStylusError as e:
        reporter.error(f"Error: {e}")
        raise typer.Exit(code=1)

    if outcome is not None:
        reporter.outcome(outcome)


@app.command(context_settings=COMMAND_SETTINGS)
def l2balance(ctx: typer.Context, args: Optional[List[str]] = typer.Argument(None, help="[addr1] [addr2]")):
    """Display the L2 balance of the source and target addresses."""
    _dispatch(ctx, "l2balance", args)


@app.command(context_settings=COMMAND_SETTINGS)
def l2transfer(ctx: typer.Context, args: Optional[List[str]] = typer.Argument(None, help="[amount] [target]")):
    """Transfer ETH between two L2 addresses (default amount 0.01)."""
    _dispatch(ctx, "l2transfer", args)


@app.command(context_settings=COMMAND_SETTINGS)
def l1deposit(ctx: typer.Context, args: Optional[List[str]] = typer.Argument(None, help="[amount] [target]")):
    """Deposit ETH from L1 to L2 (target defaults to the source address)."""
    _dispatch(ctx, "l1deposit", args)


@app.command(context_settings=COMMAND_SETTINGS)
def callstylus(ctx: typer.Context, args: Optional[List[str]] = typer.Argument(None, help='"name(args)" [value]')):
    """Call a Counter contract function directly on L2."""
    _dispatch(ctx, "callstylus", args)


@app.command(context_settings=COMMAND_SETTINGS)
def l1tostylus(ctx: typer.Context, args: Optional[List[str]] = typer.Argument(None, help='"name(args)" [value]')):
    """Call a state-changing Counter function on L2 from L1."""
    _dispatch(ctx, "l1tostylus", args)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
