"""Main CLI entry point for declutter."""

import logging

import click

from declutter.config import configure_logging


def get_version() -> str:
    """Get the current version."""
    try:
        from declutter import __version__

        return __version__
    except ImportError:
        return "unknown"


@click.group()
@click.version_option(version=get_version(), prog_name="declutter")
@click.option("--debug", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, debug: bool) -> None:
    """declutter - prune stale tool output from LLM conversations.

    \b
    Examples:
        declutter inspect body.json            Show tool calls in a request body
        declutter rewrite body.json -o out.json  Apply automatic pruning
    """
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    if debug:
        logging.basicConfig(format="%(levelname)s %(name)s: %(message)s")
    configure_logging(debug)


def _register_commands() -> None:
    """Register all subcommands."""
    from . import body  # noqa: F401


_register_commands()

if __name__ == "__main__":
    main()
