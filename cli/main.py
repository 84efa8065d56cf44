#!/usr/bin/env python3
"""
CLI for the incremental workflow builder.

Usage:
    wfbuild start "Nightly sync"
    wfbuild add-node --id fetch --type http --input '{"url": "https://example.com"}'
    wfbuild add-node --id shape --type transform --depends-on fetch
    wfbuild graph --ascii
    wfbuild validate
    wfbuild commit

Every command prints one envelope: ``{ok: true, type, payload}`` on success,
``{ok: false, code, message, hint?, details?}`` on failure (non-zero exit).
"""
import functools
import json
import logging
from contextlib import closing
from typing import Any, Callable, Dict, Optional, Tuple

import click
from dotenv import load_dotenv
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

# Load .env before importing builder modules
load_dotenv()

from shared.error_handling import create_error_response, create_success_response, exit_code_for
from shared.logger import get_logger, set_level
from workflow_builder import __version__
from workflow_builder.builder import (
    abort_session,
    add_node,
    commit_session,
    connect,
    describe_diff,
    describe_status,
    disconnect,
    generate_ascii_graph,
    generate_graph,
    remove_node,
    resolve_session,
    start_session,
    update_node,
    validate_session,
)
from workflow_builder.client import get_workflow_client
from workflow_builder.errors import InvalidInputError, WorkflowBuilderError
from workflow_builder.schema.payloads import dump_payload
from workflow_builder.store.session_store import SessionStore, get_session_store

console = Console()
logger = get_logger("cli")

CommandOutput = Tuple[Dict[str, Any], Any]


class CliState:
    """Per-invocation options and collaborators, stored on ``ctx.obj``."""

    def __init__(
        self,
        fmt: str,
        verbose: bool,
        session_id: Optional[str],
        store: Optional[SessionStore] = None,
        client_factory: Optional[Callable[[], Any]] = None,
    ) -> None:
        self.fmt = fmt
        self.verbose = verbose
        self.session_id = session_id
        self._store = store
        self.client_factory = client_factory or get_workflow_client

    @property
    def store(self) -> SessionStore:
        if self._store is None:
            self._store = get_session_store()
        return self._store

    def session(self):
        return resolve_session(self.store, self.session_id)


@click.group()
@click.version_option(version=__version__, prog_name="wfbuild")
@click.option('--format', '-f', 'fmt', type=click.Choice(['json', 'pretty']), default='pretty', help='Output format')
@click.option('--verbose', '-v', is_flag=True, help='Debug logging and full error tracebacks')
@click.option('--session', 'session_id', default=None, help='Operate on this session instead of the current one')
@click.pass_context
def cli(ctx: click.Context, fmt: str, verbose: bool, session_id: Optional[str]):
    """
    Build a workflow graph one command at a time, validate it and commit it.

    \b
    Commands:
      start        - Open a new builder session
      add-node     - Add a node (id, type, input, dependsOn)
      connect      - Add a dependency edge FROM -> TO
      graph        - Show edges, roots, leaves and execution order
      validate     - Check the draft (ids, dependencies, cycles)
      commit       - Create the workflow from a validated draft
    """
    injected = ctx.obj if isinstance(ctx.obj, dict) else {}
    ctx.obj = CliState(
        fmt=fmt,
        verbose=verbose,
        session_id=session_id,
        store=injected.get("store"),
        client_factory=injected.get("client_factory"),
    )
    if verbose:
        set_level(logging.DEBUG)


def builder_command(response_type: str):
    """Run a command body and render its result (or error) as one envelope."""

    def decorator(func: Callable[..., CommandOutput]):
        @functools.wraps(func)
        @click.pass_obj
        def wrapper(state: CliState, *args, **kwargs):
            try:
                payload, pretty = func(state, *args, **kwargs)
            except click.ClickException:
                raise
            except WorkflowBuilderError as exc:
                _fail(state, exception=exc, **exc.to_dict())
                return
            except Exception as exc:
                logger.error(f"{response_type} failed unexpectedly: {exc}")
                _fail(state, "INTERNAL_ERROR", str(exc) or type(exc).__name__, exception=exc)
                return
            _emit(state, create_success_response(response_type, payload), pretty)

        return wrapper

    return decorator


# ── Session lifecycle ──


@cli.command()
@click.argument('name')
@click.option('--description', '-d', default=None, help='Workflow description')
@click.option('--tag', '-t', 'tags', multiple=True, help='Tag to attach (repeatable)')
@click.option('--owner', default=None, help='Owner recorded in workflow metadata')
@click.option('--force', is_flag=True, help='Abort the open session instead of refusing')
@builder_command("builder.start")
def start(state: CliState, name: str, description: Optional[str], tags, owner: Optional[str], force: bool):
    """Open a new builder session for workflow NAME."""
    session = start_session(state.store, name, description=description, tags=tags, owner=owner, force=force)
    payload = describe_status(session)
    pretty = Panel.fit(
        f"[bold cyan]Started[/bold cyan] {escape(session.draft.name)}\n[dim]session {session.id}[/dim]",
        border_style="cyan",
    )
    return payload, pretty


@cli.command()
@builder_command("builder.status")
def status(state: CliState):
    """Show the current session."""
    session = state.store.load(state.session_id) if state.session_id else state.store.get_current()
    payload = describe_status(session)
    return payload, _status_table(payload)


@cli.command()
@builder_command("builder.abort")
def abort(state: CliState):
    """Abandon the current session."""
    session = abort_session(state.session(), state.store)
    return describe_status(session), f"[yellow]Aborted[/yellow] session {session.id}"


@cli.command()
@builder_command("builder.sessions")
def sessions(state: CliState):
    """List every stored session."""
    current = state.store.current_session_id()
    items = [
        {
            "id": s.id,
            "name": s.draft.name,
            "state": s.state.value,
            "nodeCount": len(s.draft.nodes),
            "updatedAt": s.updated_at.isoformat(),
            "current": s.id == current,
        }
        for s in state.store.list_all()
    ]
    table = Table(title="Builder sessions", box=box.ROUNDED)
    table.add_column("", justify="center")
    table.add_column("Session", style="cyan")
    table.add_column("Name")
    table.add_column("State")
    table.add_column("Nodes", justify="right")
    for item in items:
        table.add_row(
            "[green]●[/green]" if item["current"] else "",
            item["id"],
            escape(item["name"]),
            item["state"],
            str(item["nodeCount"]),
        )
    return {"sessions": items, "currentSessionId": current}, table


# ── Mutations ──


@cli.command('add-node')
@click.option('--json', 'raw_json', default=None, help='Full node as JSON: {"id", "type", "input", "dependsOn"}')
@click.option('--id', 'node_id', default=None, help='Node id (unique in the draft)')
@click.option('--type', 'node_type', default=None, help='Executor type tag')
@click.option('--input', 'input_json', default=None, help='Node input as a JSON object')
@click.option('--depends-on', 'depends_on', multiple=True, help='Prerequisite node id (repeatable)')
@builder_command("builder.add-node")
def add_node_command(state: CliState, raw_json, node_id, node_type, input_json, depends_on):
    """Add a node to the draft."""
    if raw_json is not None:
        if node_id or node_type or input_json or depends_on:
            raise InvalidInputError("--json cannot be combined with --id/--type/--input/--depends-on")
        raw: Any = raw_json
    else:
        raw = {}
        if node_id is not None:
            raw["id"] = node_id
        if node_type is not None:
            raw["type"] = node_type
        if input_json is not None:
            raw["input"] = _parse_json_option(input_json, "--input")
        if depends_on:
            raw["dependsOn"] = list(depends_on)

    result = add_node(state.session(), state.store, raw)
    return dump_payload(result), _diff_line(result.diff)


@cli.command('update-node')
@click.argument('node_id')
@click.option('--type', 'node_type', default=None, help='New executor type tag')
@click.option('--input', 'input_json', default=None, help='Replacement input as a JSON object')
@click.option('--depends-on', 'depends_on', multiple=True, help='Replacement prerequisite id (repeatable)')
@click.option('--clear-deps', is_flag=True, help='Remove every dependency of the node')
@builder_command("builder.update-node")
def update_node_command(state: CliState, node_id, node_type, input_json, depends_on, clear_deps):
    """Replace fields of node NODE_ID."""
    if clear_deps and depends_on:
        raise InvalidInputError("--clear-deps cannot be combined with --depends-on")
    patch: Dict[str, Any] = {}
    if node_type is not None:
        patch["type"] = node_type
    if input_json is not None:
        patch["input"] = _parse_json_option(input_json, "--input")
    if depends_on:
        patch["dependsOn"] = list(depends_on)
    if clear_deps:
        patch["dependsOn"] = []

    result = update_node(state.session(), state.store, node_id, patch)
    return dump_payload(result), _diff_line(result.diff)


@cli.command('remove-node')
@click.argument('node_id')
@builder_command("builder.remove-node")
def remove_node_command(state: CliState, node_id):
    """Remove node NODE_ID and every reference to it."""
    result = remove_node(state.session(), state.store, node_id)
    line = _diff_line(result.diff)
    if result.cleaned_deps:
        line += f"\n  [dim]dependencies cleaned on: {escape(', '.join(result.cleaned_deps))}[/dim]"
    return dump_payload(result), line


@cli.command('connect')
@click.argument('from_id')
@click.argument('to_id')
@builder_command("builder.connect")
def connect_command(state: CliState, from_id, to_id):
    """Make TO_ID depend on FROM_ID."""
    result = connect(state.session(), state.store, from_id, to_id)
    return dump_payload(result), _diff_line(result.diff)


@cli.command('disconnect')
@click.argument('from_id')
@click.argument('to_id')
@builder_command("builder.disconnect")
def disconnect_command(state: CliState, from_id, to_id):
    """Remove the dependency of TO_ID on FROM_ID."""
    result = disconnect(state.session(), state.store, from_id, to_id)
    return dump_payload(result), _diff_line(result.diff)


# ── Inspection, validation, commit ──


@cli.command()
@click.option('--ascii', 'as_ascii', is_flag=True, help='Include a plain-text rendering in execution order')
@builder_command("builder.graph")
def graph(state: CliState, as_ascii: bool):
    """Show the draft as a graph."""
    session = state.session()
    payload = dump_payload(generate_graph(session))
    if as_ascii:
        text = generate_ascii_graph(session)
        payload["ascii"] = text
        return payload, _PlainText(text)
    return payload, _graph_table(payload)


@cli.command()
@builder_command("builder.validate")
def validate(state: CliState):
    """Validate the draft; a valid draft becomes committable."""
    session = state.session()
    result = validate_session(session, state.store)
    if not result.ok:
        raise WorkflowBuilderError(
            f"Workflow has {len(result.errors)} validation error(s)",
            code="VALIDATION_ERROR",
            hint="Fix the reported problems and run validate again",
            details={
                "state": session.state.value,
                "errors": [e.model_dump(mode="json", by_alias=True, exclude_none=True) for e in result.errors],
            },
        )
    payload = {"state": session.state.value, **result.model_dump(mode="json", by_alias=True, exclude_none=True)}
    return payload, f"[green]✓[/green] Workflow is valid ([bold]{session.state.value}[/bold])"


@cli.command()
@builder_command("builder.commit")
def commit(state: CliState):
    """Create the workflow from the validated draft."""
    session = state.session()
    with closing(state.client_factory()) as client:
        result = commit_session(session, state.store, client)
    pretty = Panel.fit(
        f"[bold green]Committed[/bold green] {escape(result.name)}\n"
        f"workflow [bold]{result.workflow_id}[/bold]\n"
        "[dim]Start a new session to build another workflow.[/dim]",
        border_style="green",
    )
    return dump_payload(result), pretty


# ── Rendering ──


class _PlainText:
    """Marker for output that must be printed verbatim (no rich markup)."""

    def __init__(self, text: str) -> None:
        self.text = text


def _emit(state: CliState, envelope: Dict[str, Any], pretty: Any) -> None:
    if state.fmt == 'json':
        click.echo(json.dumps(envelope, indent=2, default=str))
        return
    if isinstance(pretty, _PlainText):
        console.print(pretty.text, markup=False, highlight=False)
    elif pretty is not None:
        console.print(pretty)


def _fail(
    state: CliState,
    code: str,
    message: str,
    *,
    hint: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    exception: Optional[Exception] = None,
) -> None:
    envelope = create_error_response(
        code,
        message,
        hint=hint,
        details=details,
        exception=exception if state.verbose else None,
    )
    if state.fmt == 'json':
        click.echo(json.dumps(envelope, indent=2, default=str))
    else:
        console.print(f"[bold red]❌ {escape(code)}:[/bold red] {escape(message)}")
        if code == "VALIDATION_ERROR":
            for issue in (details or {}).get("errors", []):
                node = f" [cyan]{escape(issue['nodeId'])}[/cyan]" if issue.get("nodeId") else ""
                console.print(f"  • [yellow]{issue['code']}[/yellow]{node} {escape(issue['message'])}")
        if hint:
            console.print(f"[dim]{escape(hint)}[/dim]")
        if envelope.get("traceback"):
            console.print(envelope["traceback"], markup=False, highlight=False)
    click.get_current_context().exit(exit_code_for(code))


def _diff_line(diff) -> str:
    return f"[green]✓[/green] {escape(describe_diff(diff))}"


def _parse_json_option(value: str, option: str) -> Any:
    try:
        return json.loads(value)
    except json.JSONDecodeError as exc:
        raise InvalidInputError(f"{option} is not valid JSON: {exc}") from exc


def _status_table(payload: Dict[str, Any]) -> Table:
    table = Table(title="Builder status", box=box.ROUNDED, show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("State", f"[bold]{payload['state']}[/bold]")
    session = payload.get("session")
    if session is None:
        table.add_row("Session", "[dim]none (run `wfbuild start <name>`)[/dim]")
        return table
    table.add_row("Session", session["id"])
    table.add_row("Workflow", escape(session["name"] or ""))
    table.add_row("Nodes", str(payload["nodeCount"]))
    table.add_row("Edges", str(payload["edgeCount"]))
    validation = payload["validation"]
    if validation.get("ok"):
        table.add_row("Validation", "[green]passed[/green]")
    elif validation.get("errors"):
        table.add_row("Validation", f"[red]{len(validation['errors'])} error(s)[/red]")
    else:
        table.add_row("Validation", "[dim]not run[/dim]")
    if payload.get("commit"):
        table.add_row("Workflow id", payload["commit"]["workflowId"])
    return table


def _graph_table(payload: Dict[str, Any]) -> Table:
    stats = payload["stats"]
    roots = set(stats["rootNodes"])
    leaves = set(stats["leafNodes"])
    table = Table(
        title=f"{stats['nodeCount']} nodes, {stats['edgeCount']} edges"
        + ("" if stats["isAcyclic"] else " [red](not acyclic)[/red]"),
        box=box.ROUNDED,
    )
    table.add_column("Node", style="cyan")
    table.add_column("Type")
    table.add_column("Depends on")
    table.add_column("Role", justify="center")
    for node in payload["nodes"]:
        role = " ".join(r for r, on in (("root", node["id"] in roots), ("leaf", node["id"] in leaves)) if on)
        table.add_row(
            escape(node["id"]),
            escape(node["type"]),
            escape(", ".join(node.get("dependsOn", []))),
            role,
        )
    return table


def main():
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
