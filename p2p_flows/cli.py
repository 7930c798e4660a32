"""CLI for the ``p2p_flows`` package.

Every command operates on the persisted session (see
:mod:`p2p_flows.session`): it loads the workspace, applies one transition or
prints one derived view, and saves the workspace back when it changed.

Command logic lives in ``cmd_*`` handlers that return a process exit code and
report failures as ``Error: ...`` on stderr; the Typer commands below only
translate options and exit with the handler's code. ``.env`` in the current
directory is loaded (without overriding existing variables) before any
command runs.
"""

from __future__ import annotations

import os
import sys
from datetime import date
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from typer.models import OptionInfo

from .aggregator import filter_transactions
from .aliases import (
    DEFAULT_SUGGESTION_THRESHOLD,
    apply_alias,
    build_alias_map,
    mapping_from_suggestion,
    suggest_aliases,
)
from .export import (
    EXPORT_FORMATS,
    EXPORT_KINDS,
    export_filename,
    flows_to_csv,
    flows_to_json,
    transactions_to_csv,
    transactions_to_json,
)
from .logging_setup import configure_logging
from .merchants import merchant_stats
from .models import AliasMapping
from .normalizers import format_amount
from .query import query_transactions
from .session import clear_session, load_session, save_session
from .workspace import (
    SourceFile,
    Workspace,
    add_alias,
    add_files,
    derive_views,
    from_envelope,
    remove_alias,
    remove_file,
    set_filters,
    to_envelope,
)

# ---- Small module-level helpers used by CLI commands -------------------------


def _resolve_alias_threshold() -> float:
    """Suggestion threshold from ``P2P_FLOWS_ALIAS_THRESHOLD``.

    Falls back to the library default when unset, unparseable or outside
    ``[0, 1]``.
    """

    raw = os.getenv("P2P_FLOWS_ALIAS_THRESHOLD")
    try:
        value = float(raw) if raw else None
    except ValueError:
        value = None
    if value is not None and 0.0 <= value <= 1.0:
        return value
    return DEFAULT_SUGGESTION_THRESHOLD


def _load_workspace() -> Workspace:
    envelope = load_session()
    return from_envelope(envelope) if envelope is not None else Workspace()


def _save_workspace(ws: Workspace) -> int:
    if not save_session(to_envelope(ws)):
        print("Error: failed to save session.", file=sys.stderr)
        return 1
    return 0


def _parse_day(value: str) -> date:
    try:
        return date.fromisoformat(value.strip())
    except ValueError as e:
        raise ValueError(f"invalid date {value!r}; expected YYYY-MM-DD") from e


# ---- Command handlers --------------------------------------------------------


def cmd_ingest(csv_paths: list[str]) -> int:
    """Parse CSV exports and append their transactions to the session.

    Every file is read before the session is touched; an unreadable file
    aborts the whole command. Parse diagnostics are printed as warnings on
    stderr and never change the exit status.
    """

    sources: list[SourceFile] = []
    for csv_path in csv_paths:
        path = Path(csv_path)
        try:
            content = path.read_text(encoding="utf-8")
            size = path.stat().st_size
        except FileNotFoundError:
            print(f"Error: File not found: {csv_path}", file=sys.stderr)
            return 1
        except PermissionError:
            print(f"Error: Permission denied: {csv_path}", file=sys.stderr)
            return 1
        except UnicodeDecodeError as e:
            print(f"Error: Failed to decode '{csv_path}' as UTF-8: {e}", file=sys.stderr)
            return 1
        sources.append(SourceFile(name=path.name, content=content, size=size))

    before = _load_workspace()
    ws, errors = add_files(before, sources)
    for err in errors:
        print(f"Warning: {err}", file=sys.stderr)

    added = len(ws.transactions) - len(before.transactions)
    files = len(ws.uploaded_files) - len(before.uploaded_files)
    rc = _save_workspace(ws)
    if rc:
        return rc
    print(f"Loaded {added} transactions from {files} file(s).")
    return 0


def cmd_remove_file(name: str) -> int:
    ws = _load_workspace()
    if name not in ws.file_names():
        print(f"Error: File not in session: {name}", file=sys.stderr)
        return 1
    rc = _save_workspace(remove_file(ws, name))
    if rc:
        return rc
    print(f"Removed {name}.")
    return 0


def cmd_clear() -> int:
    try:
        clear_session()
    except OSError as e:
        print(f"Error: failed to clear session: {e}", file=sys.stderr)
        return 1
    print("Session cleared.")
    return 0


def cmd_alias(canonical: str, aliases: list[str]) -> int:
    try:
        mapping = AliasMapping.create(canonical, aliases)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    if not mapping.aliases:
        print(
            "Error: provide at least one alias different from the canonical name.",
            file=sys.stderr,
        )
        return 1
    rc = _save_workspace(add_alias(_load_workspace(), mapping))
    if rc:
        return rc
    print(f"{mapping.canonical} <- {', '.join(mapping.aliases)}")
    return 0


def cmd_aliases() -> int:
    ws = _load_workspace()
    if not ws.aliases:
        print("No alias mappings.")
        return 0
    for i, m in enumerate(ws.aliases):
        print(f"[{i}] {m.canonical} <- {', '.join(m.aliases)}")
    return 0


def cmd_unalias(index: int) -> int:
    try:
        ws = remove_alias(_load_workspace(), index)
    except IndexError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return _save_workspace(ws)


def cmd_suggest_aliases(threshold: float | None, *, accept: bool) -> int:
    ws = _load_workspace()
    people = derive_views(ws).original_people
    try:
        suggestions = suggest_aliases(
            people, ws.aliases, threshold if threshold is not None else _resolve_alias_threshold()
        )
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if not suggestions:
        print("No alias suggestions.")
        return 0
    for s in suggestions:
        print(f"{s.suggested}: {', '.join(s.names)}")

    if accept:
        for s in suggestions:
            ws = add_alias(ws, mapping_from_suggestion(s))
        rc = _save_workspace(ws)
        if rc:
            return rc
        print(f"Accepted {len(suggestions)} suggestion(s).")
    return 0


def cmd_filters(
    *,
    hide_merchants: bool | None,
    start_date: str | None,
    end_date: str | None,
    clear_dates: bool,
) -> int:
    ws = _load_workspace()
    try:
        if clear_dates:
            ws = set_filters(ws, start_date=None, end_date=None)
        if start_date is not None:
            ws = set_filters(ws, start_date=_parse_day(start_date))
        if end_date is not None:
            ws = set_filters(ws, end_date=_parse_day(end_date))
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    ws = set_filters(ws, hide_merchants=hide_merchants)

    rc = _save_workspace(ws)
    if rc:
        return rc
    print(f"hide_merchants={ws.hide_merchants}")
    print(f"start_date={ws.start_date.isoformat() if ws.start_date else '-'}")
    print(f"end_date={ws.end_date.isoformat() if ws.end_date else '-'}")
    return 0


def cmd_flows() -> int:
    views = derive_views(_load_workspace())
    for f in views.flows:
        print(f"{f.source}\t{f.target}\t{format_amount(f.value)}\t{f.sentiment}")
    return 0


def cmd_stats() -> int:
    stats = derive_views(_load_workspace()).stats
    print(f"Total sent: {format_amount(stats.total_sent)}")
    print(f"Total received: {format_amount(stats.total_received)}")
    print(f"Transactions: {stats.total_transactions}")
    print(f"People: {stats.unique_people}")
    print("Top payees:")
    for p in stats.top_payees:
        print(f"  {p.name}\t{format_amount(p.amount)}")
    print("Top payers:")
    for p in stats.top_payers:
        print(f"  {p.name}\t{format_amount(p.amount)}")
    return 0


def cmd_transactions(
    *,
    person: str | None,
    type_filter: str | None,
    search: str | None,
    sort_field: str,
    descending: bool,
) -> int:
    ws = _load_workspace()
    alias_map = build_alias_map(ws.aliases)
    try:
        rows = query_transactions(
            derive_views(ws).transactions,
            alias_map=alias_map,
            person=person,
            type_filter=type_filter,
            search=search,
            sort_field=sort_field,
            descending=descending,
        )
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    for tx in rows:
        print(
            "\t".join(
                (
                    tx.datetime.strftime("%Y-%m-%d"),
                    apply_alias(tx.sender, alias_map),
                    apply_alias(tx.recipient, alias_map),
                    format_amount(tx.amount),
                    tx.type,
                    tx.note,
                )
            )
        )
    return 0


def cmd_export(kind: str, fmt: str, output: str | None) -> int:
    try:
        filename = export_filename(kind, fmt)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    views = derive_views(_load_workspace())
    if kind == "transactions":
        text = (
            transactions_to_csv(views.transactions)
            if fmt == "csv"
            else transactions_to_json(views.transactions)
        )
    else:
        text = (
            flows_to_csv(views.flows)
            if fmt == "csv"
            else flows_to_json(views.flows, views.stats)
        )

    target = Path(output) if output else Path.cwd() / filename
    try:
        target.write_text(text + "\n", encoding="utf-8")
    except OSError as e:
        print(f"Error: failed to write '{target}': {e}", file=sys.stderr)
        return 1
    print(f"Wrote {target}")
    return 0


def cmd_merchants(*, by_cluster: bool) -> int:
    ws = _load_workspace()
    in_range = filter_transactions(
        ws.transactions, start_date=ws.start_date, end_date=ws.end_date
    )
    for s in merchant_stats(in_range, by_cluster=by_cluster):
        label = s.name if by_cluster else f"{s.name} ({s.cluster})"
        print(f"{label}\t{format_amount(s.total_amount)}\t{s.transaction_count}")
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Turn peer-to-peer payment CSV exports into money-flow views. "
        "State persists between commands in a local session file."
    ),
)


# Module-level option objects to satisfy ruff B008 (no calls in parameter
# defaults).
CSV_PATH_OPTION: OptionInfo = typer.Option(
    ...,  # required
    "--csv-path",
    help="Path to a payment-app CSV export (repeat for several files)",
    dir_okay=False,
    file_okay=True,
    exists=False,  # missing files are reported by cmd_ingest
)


@app.command("ingest")
def ingest_cmd(csv_path: Annotated[list[Path], CSV_PATH_OPTION]) -> None:
    """Parse CSV exports and add their transactions to the session."""
    raise typer.Exit(cmd_ingest([str(p) for p in csv_path]))


@app.command("remove-file")
def remove_file_cmd(name: str) -> None:
    """Drop an uploaded file and its transactions."""
    raise typer.Exit(cmd_remove_file(name))


@app.command("clear")
def clear_cmd() -> None:
    """Discard the saved session."""
    raise typer.Exit(cmd_clear())


@app.command("alias")
def alias_cmd(canonical: str, aliases: list[str]) -> None:
    """Treat ALIASES as the same person as CANONICAL."""
    raise typer.Exit(cmd_alias(canonical, aliases))


@app.command("aliases")
def aliases_cmd() -> None:
    """List alias mappings with their indexes."""
    raise typer.Exit(cmd_aliases())


@app.command("unalias")
def unalias_cmd(index: int) -> None:
    """Remove the alias mapping at INDEX (see ``aliases``)."""
    raise typer.Exit(cmd_unalias(index))


@app.command("suggest-aliases")
def suggest_aliases_cmd(
    *,
    threshold: float | None = typer.Option(
        None, help="Similarity threshold in [0, 1] (env P2P_FLOWS_ALIAS_THRESHOLD)."
    ),
    accept: bool = typer.Option(False, help="Add every suggestion as an alias mapping."),
) -> None:
    """Suggest name variants that probably refer to the same person."""
    raise typer.Exit(cmd_suggest_aliases(threshold, accept=accept))


@app.command("filters")
def filters_cmd(
    *,
    hide_merchants: bool | None = typer.Option(
        None, "--hide-merchants/--show-merchants", help="Exclude merchant transactions."
    ),
    start_date: str | None = typer.Option(None, help="Inclusive start day (YYYY-MM-DD)."),
    end_date: str | None = typer.Option(None, help="Inclusive end day (YYYY-MM-DD)."),
    clear_dates: bool = typer.Option(False, help="Remove both date bounds first."),
) -> None:
    """Show or update the view filters."""
    raise typer.Exit(
        cmd_filters(
            hide_merchants=hide_merchants,
            start_date=start_date,
            end_date=end_date,
            clear_dates=clear_dates,
        )
    )


@app.command("flows")
def flows_cmd() -> None:
    """Print aggregated flows: source, target, total, sentiment."""
    raise typer.Exit(cmd_flows())


@app.command("stats")
def stats_cmd() -> None:
    """Print summary totals and top payees/payers."""
    raise typer.Exit(cmd_stats())


@app.command("transactions")
def transactions_cmd(
    *,
    person: str | None = typer.Option(None, help="Only rows involving this person."),
    type_filter: str | None = typer.Option(None, "--type", help="Exact transaction type."),
    search: str | None = typer.Option(None, help="Case-insensitive text search."),
    sort: str = typer.Option("datetime", help="datetime, from, to, amount or type."),
    descending: bool = typer.Option(True, "--desc/--asc", help="Sort direction."),
) -> None:
    """Print filtered transactions."""
    raise typer.Exit(
        cmd_transactions(
            person=person,
            type_filter=type_filter,
            search=search,
            sort_field=sort,
            descending=descending,
        )
    )


@app.command("export")
def export_cmd(
    *,
    kind: str = typer.Option("transactions", help=f"One of {', '.join(EXPORT_KINDS)}."),
    fmt: str = typer.Option("csv", "--format", help=f"One of {', '.join(EXPORT_FORMATS)}."),
    output: str | None = typer.Option(None, help="Output path (default: dated file in CWD)."),
) -> None:
    """Write transactions or flows as CSV or JSON."""
    raise typer.Exit(cmd_export(kind, fmt, output))


@app.command("merchants")
def merchants_cmd(
    *,
    by_cluster: bool = typer.Option(False, help="Group totals by merchant category."),
) -> None:
    """Print merchant totals within the current date range."""
    raise typer.Exit(cmd_merchants(by_cluster=by_cluster))


@app.callback(invoke_without_command=True)
def _root(ctx: typer.Context) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures package logging.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)

    # Central logging setup so child loggers inherit configuration
    configure_logging()

    if ctx.invoked_subcommand is None:
        typer.echo("No subcommand provided. Use --help to see available commands.")
        raise typer.Exit(1)


if __name__ == "__main__":  # pragma: no cover
    app()
