"""Session state as an immutable value with pure transitions.

A :class:`Workspace` holds the loaded transactions, which files contributed
them, the user's alias mappings and the view filters. Each transition returns
a new instance; callers persist the result through :mod:`p2p_flows.session`
and re-derive views with :func:`derive_views` after every change.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import date, datetime

from .aggregator import Views, build_views
from .aliases import build_alias_map
from .logging_setup import get_logger
from .models import AliasMapping, Transaction, UploadedFile
from .parser import parse_csv
from .session import (
    CURRENT_VERSION,
    AliasMappingModel,
    SessionEnvelope,
    TransactionModel,
    UploadedFileModel,
)

_logger = get_logger("p2p_flows.workspace")

# Sentinel distinguishing "leave as is" from an explicit ``None`` (clear).
_UNSET: object = object()


@dataclass(frozen=True, slots=True)
class SourceFile:
    """A file handed to :func:`add_files`: display name, decoded text, byte size."""

    name: str
    content: str
    size: int


@dataclass(frozen=True, slots=True)
class Workspace:
    transactions: tuple[Transaction, ...] = ()
    uploaded_files: tuple[UploadedFile, ...] = ()
    aliases: tuple[AliasMapping, ...] = ()
    hide_merchants: bool = False
    start_date: date | None = None
    end_date: date | None = None

    def file_names(self) -> set[str]:
        return {f.name for f in self.uploaded_files}


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


def add_files(
    ws: Workspace, files: Iterable[SourceFile], *, now: datetime | None = None
) -> tuple[Workspace, list[str]]:
    """Parse ``files`` and append their transactions.

    A file whose name is already loaded (or repeats within ``files``) is
    rejected with ``File "<name>" already uploaded``. Every other file is
    recorded as uploaded, even when it yields no transactions, and its parse
    diagnostics are passed through unchanged.
    """

    seen = ws.file_names()
    new_transactions: list[Transaction] = []
    new_files: list[UploadedFile] = []
    errors: list[str] = []

    for f in files:
        if f.name in seen:
            errors.append(f'File "{f.name}" already uploaded')
            continue

        result = parse_csv(f.content, f.name, now=now)
        errors.extend(result.errors)
        seen.add(f.name)
        new_transactions.extend(result.transactions)
        new_files.append(
            UploadedFile(name=f.name, size=f.size, transaction_count=len(result.transactions))
        )

    _logger.info(
        "workspace:add_files accepted=%d transactions=%d diagnostics=%d",
        len(new_files),
        len(new_transactions),
        len(errors),
    )
    updated = replace(
        ws,
        transactions=ws.transactions + tuple(new_transactions),
        uploaded_files=ws.uploaded_files + tuple(new_files),
    )
    return updated, errors


def remove_file(ws: Workspace, name: str) -> Workspace:
    """Drop ``name`` and every transaction it contributed (no-op when unknown)."""
    return replace(
        ws,
        transactions=tuple(tx for tx in ws.transactions if tx.source_file != name),
        uploaded_files=tuple(f for f in ws.uploaded_files if f.name != name),
    )


def clear_all(ws: Workspace) -> Workspace:
    """Forget every file and transaction; aliases and filters are kept."""
    return replace(ws, transactions=(), uploaded_files=())


# ---------------------------------------------------------------------------
# Aliases and filters
# ---------------------------------------------------------------------------


def add_alias(ws: Workspace, mapping: AliasMapping) -> Workspace:
    return replace(ws, aliases=(*ws.aliases, mapping))


def remove_alias(ws: Workspace, index: int) -> Workspace:
    """Remove the mapping at ``index``; ``IndexError`` when out of range."""
    if not 0 <= index < len(ws.aliases):
        raise IndexError(f"alias index {index} out of range (have {len(ws.aliases)})")
    return replace(ws, aliases=ws.aliases[:index] + ws.aliases[index + 1 :])


def set_filters(
    ws: Workspace,
    *,
    hide_merchants: bool | None = None,
    start_date: date | None | object = _UNSET,
    end_date: date | None | object = _UNSET,
) -> Workspace:
    """Update view filters. Omitted arguments keep their value; ``None`` dates clear."""

    changes: dict[str, object] = {}
    if hide_merchants is not None:
        changes["hide_merchants"] = hide_merchants
    if start_date is not _UNSET:
        changes["start_date"] = start_date
    if end_date is not _UNSET:
        changes["end_date"] = end_date
    return replace(ws, **changes)


# ---------------------------------------------------------------------------
# Views and persistence
# ---------------------------------------------------------------------------


def derive_views(ws: Workspace) -> Views:
    return build_views(
        ws.transactions,
        hide_merchants=ws.hide_merchants,
        alias_map=build_alias_map(ws.aliases),
        start_date=ws.start_date,
        end_date=ws.end_date,
    )


def to_envelope(ws: Workspace, *, saved_at: datetime | None = None) -> SessionEnvelope:
    return SessionEnvelope(
        version=CURRENT_VERSION,
        saved_at=saved_at if saved_at is not None else datetime.now(),
        transactions=[TransactionModel.from_record(tx) for tx in ws.transactions],
        uploaded_files=[UploadedFileModel.from_record(f) for f in ws.uploaded_files],
        aliases=[AliasMappingModel.from_record(m) for m in ws.aliases],
        hide_merchants=ws.hide_merchants,
        start_date=ws.start_date,
        end_date=ws.end_date,
    )


def from_envelope(envelope: SessionEnvelope) -> Workspace:
    return Workspace(
        transactions=tuple(t.to_record() for t in envelope.transactions),
        uploaded_files=tuple(f.to_record() for f in envelope.uploaded_files),
        aliases=tuple(m.to_record() for m in envelope.aliases),
        hide_merchants=envelope.hide_merchants,
        start_date=envelope.start_date,
        end_date=envelope.end_date,
    )


__all__ = [
    "SourceFile",
    "Workspace",
    "add_files",
    "remove_file",
    "clear_all",
    "add_alias",
    "remove_alias",
    "set_filters",
    "derive_views",
    "to_envelope",
    "from_envelope",
]
