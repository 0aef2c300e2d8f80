"""Commands that operate on a saved request body."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import click

from ..config import DeclutterConfig
from ..exceptions import ConfigurationError, FormatError
from ..formats import require_format
from ..interceptor import RequestInterceptor
from ..state import SessionState, SessionStateStore
from ..tokenizer import estimate_tokens_batch, format_token_count
from ._utils.formatting import (
    console,
    print_error,
    print_stats,
    print_success,
    print_table,
    print_warning,
    truncate,
)
from .main import main


def _load_body(path: str) -> dict[str, Any]:
    try:
        body = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        print_error(f"{path} is not valid JSON: {e}")
        raise SystemExit(1) from e
    if not isinstance(body, dict):
        print_error(f"{path} must contain a JSON object")
        raise SystemExit(1)
    return body


@main.command()
@click.argument("body_path", metavar="BODY.json", type=click.Path(exists=True, dir_okay=False))
def inspect(body_path: str) -> None:
    """Show the detected format and tool calls of a request body."""
    body = _load_body(body_path)
    try:
        descriptor = require_format(body)
    except FormatError as e:
        print_error(str(e))
        raise SystemExit(1) from e

    state = SessionState(session_id="inspect")
    messages = descriptor.get_messages(body)
    descriptor.cache_tool_calls(messages, state)
    sizes = {ref.id: ref.output_chars for ref in descriptor.list_tool_results(messages, state)}

    console.print(f"[bold]Format:[/bold] {descriptor.name}")
    if not state.tool_calls:
        console.print("No tool calls found.")
        return

    rows = [
        [
            call_id,
            meta.tool_name,
            meta.status.value,
            str(sizes.get(call_id, "-")),
            truncate(json.dumps(meta.parameters, sort_keys=True, default=str)),
        ]
        for call_id, meta in state.tool_calls.items()
    ]
    print_table(["ID", "Tool", "Status", "Result chars", "Parameters"], rows, title="Tool calls")


@main.command()
@click.argument("body_path", metavar="BODY.json", type=click.Path(exists=True, dir_okay=False))
@click.option("--session", "session_id", default="cli", show_default=True, help="Session id.")
@click.option("--age-window", type=int, default=None, help="Recent calls exempt from pruning.")
@click.option("--protect", multiple=True, help="Extra protected tool name (repeatable).")
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, writable=True),
    default=None,
    help="Write the rewritten body here instead of stdout.",
)
def rewrite(
    body_path: str,
    session_id: str,
    age_window: int | None,
    protect: tuple[str, ...],
    output: str | None,
) -> None:
    """Apply deduplication and error pruning to a request body."""
    body = _load_body(body_path)

    try:
        config = DeclutterConfig.from_env()
        if age_window is not None:
            config.age_window = age_window
        config.protected_tools |= {name.lower() for name in protect}
        config.validate()
    except ConfigurationError as e:
        print_error(str(e))
        raise SystemExit(1) from e

    store = SessionStateStore()
    result = RequestInterceptor(store=store, config=config).rewrite(body, session_id)
    if result.format is None:
        print_warning("Unknown request format, body left unchanged")

    rendered = json.dumps(result.body, indent=2, ensure_ascii=False)
    if output:
        Path(output).write_text(rendered + "\n", encoding="utf-8")
        print_success(f"Wrote {output}")
    else:
        click.echo(rendered)

    stats = store.stats(session_id)
    before, after = estimate_tokens_batch([json.dumps(body), json.dumps(result.body)])
    print_stats(
        {
            "Format": result.format or "unknown",
            "Newly pruned": len(result.newly_pruned),
            "Outputs replaced": result.outputs_replaced,
            "Inputs replaced": result.inputs_replaced,
            "Note injected": "yes" if result.note_injected else "no",
            "Tokens saved (est.)": format_token_count(stats.total_tokens_saved),
            "Body tokens": f"{format_token_count(before)} -> {format_token_count(after)}",
        },
        title="Pruning",
        stderr=output is None,
    )
