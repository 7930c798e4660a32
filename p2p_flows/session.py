"""Session persistence: a versioned JSON envelope behind a pluggable store.

The envelope carries everything needed to restore a working session
(transactions, uploaded-file bookkeeping, alias mappings and view filters).
JSON keys are camelCase::

    {"version": 1, "savedAt": "...", "transactions": [...],
     "uploadedFiles": [...], "aliases": [...], "hideMerchants": false,
     "startDate": null, "endDate": null}

Stores implement :class:`SessionStore`. :class:`FileSessionStore` writes a
``.tmp`` sibling first and then ``os.replace``-s it into place, so a crash
mid-write never leaves a truncated session behind. The default location is
``./.p2p_flows/session.json``; override it with ``P2P_FLOWS_SESSION_PATH``.

Loading is forgiving by contract: a missing, corrupt or schema-mismatched
session yields ``None``. A session written under a different ``version`` is
discarded from the store before returning ``None``.
"""

from __future__ import annotations

import contextlib
import json
import os
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from .logging_setup import get_logger
from .models import AliasMapping, Transaction, UploadedFile

# Bump only when the on-disk envelope shape changes.
CURRENT_VERSION: int = 1

_SESSION_PATH_ENV_VAR = "P2P_FLOWS_SESSION_PATH"

_logger = get_logger("p2p_flows.session")


# ---------------------------------------------------------------------------
# Envelope schema
# ---------------------------------------------------------------------------

_ENVELOPE_CONFIG = ConfigDict(
    strict=True,
    extra="forbid",
    alias_generator=to_camel,
    populate_by_name=True,
)


class TransactionModel(BaseModel):
    model_config = _ENVELOPE_CONFIG

    id: str
    occurred_at: datetime = Field(alias="datetime")
    type: str
    status: str
    note: str
    sender: str = Field(alias="from")
    recipient: str = Field(alias="to")
    amount: Decimal
    source_file: str
    tip: Decimal | None = None
    tax: Decimal | None = None
    fee: Decimal | None = None

    @classmethod
    def from_record(cls, tx: Transaction) -> TransactionModel:
        return cls(
            id=tx.id,
            occurred_at=tx.datetime,
            type=tx.type,
            status=tx.status,
            note=tx.note,
            sender=tx.sender,
            recipient=tx.recipient,
            amount=tx.amount,
            source_file=tx.source_file,
            tip=tx.tip,
            tax=tx.tax,
            fee=tx.fee,
        )

    def to_record(self) -> Transaction:
        return Transaction(
            id=self.id,
            datetime=self.occurred_at,
            type=self.type,
            status=self.status,
            note=self.note,
            sender=self.sender,
            recipient=self.recipient,
            amount=self.amount,
            source_file=self.source_file,
            tip=self.tip,
            tax=self.tax,
            fee=self.fee,
        )


class UploadedFileModel(BaseModel):
    model_config = _ENVELOPE_CONFIG

    name: str
    size: int
    transaction_count: int

    @classmethod
    def from_record(cls, f: UploadedFile) -> UploadedFileModel:
        return cls(name=f.name, size=f.size, transaction_count=f.transaction_count)

    def to_record(self) -> UploadedFile:
        return UploadedFile(
            name=self.name, size=self.size, transaction_count=self.transaction_count
        )


class AliasMappingModel(BaseModel):
    model_config = _ENVELOPE_CONFIG

    canonical: str
    aliases: list[str]

    @classmethod
    def from_record(cls, m: AliasMapping) -> AliasMappingModel:
        return cls(canonical=m.canonical, aliases=list(m.aliases))

    def to_record(self) -> AliasMapping:
        return AliasMapping.create(self.canonical, self.aliases)


class SessionEnvelope(BaseModel):
    """Top-level schema for a persisted session."""

    model_config = _ENVELOPE_CONFIG

    version: int
    saved_at: datetime
    transactions: list[TransactionModel]
    uploaded_files: list[UploadedFileModel]
    aliases: list[AliasMappingModel]
    hide_merchants: bool
    start_date: date | None = None
    end_date: date | None = None

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


class SessionStore(Protocol):
    def read(self) -> str | None: ...

    def write(self, text: str) -> None: ...

    def clear(self) -> None: ...

    def exists(self) -> bool: ...


def _get_session_path() -> Path:
    """Return the session file path.

    Default: ``./.p2p_flows/session.json`` under the current working directory.
    Override: ``P2P_FLOWS_SESSION_PATH`` environment variable.
    """

    raw = os.getenv(_SESSION_PATH_ENV_VAR)
    if raw and raw.strip():
        return Path(raw).expanduser().resolve()
    return (Path.cwd() / ".p2p_flows" / "session.json").resolve()


class FileSessionStore:
    """Session text in a single file, replaced atomically on write."""

    def __init__(self, path: Path | str | None = None) -> None:
        self.path = Path(path) if path is not None else _get_session_path()

    def read(self) -> str | None:
        if not self.path.exists():
            return None
        return self.path.read_text(encoding="utf-8")

    def write(self, text: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            tmp.write_text(text, encoding="utf-8")
            os.replace(tmp, self.path)
        except Exception:
            with contextlib.suppress(FileNotFoundError):
                tmp.unlink()
            raise

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)

    def exists(self) -> bool:
        return self.path.exists()


class MemorySessionStore:
    """In-process store; handy for embedding and tests."""

    def __init__(self, text: str | None = None) -> None:
        self.text = text

    def read(self) -> str | None:
        return self.text

    def write(self, text: str) -> None:
        self.text = text

    def clear(self) -> None:
        self.text = None

    def exists(self) -> bool:
        return self.text is not None


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SessionInfo:
    saved_at: datetime
    transaction_count: int


def save_session(envelope: SessionEnvelope, store: SessionStore | None = None) -> bool:
    """Serialize ``envelope`` into ``store``; ``False`` (logged) on I/O failure."""

    store = store if store is not None else FileSessionStore()
    try:
        store.write(envelope.to_json())
    except OSError:
        _logger.exception("session:save_failed")
        return False
    _logger.info(
        "session:saved transactions=%d files=%d aliases=%d",
        len(envelope.transactions),
        len(envelope.uploaded_files),
        len(envelope.aliases),
    )
    return True


def load_session(store: SessionStore | None = None) -> SessionEnvelope | None:
    """Return the stored envelope, or ``None`` when absent or unusable."""

    store = store if store is not None else FileSessionStore()
    try:
        text = store.read()
    except (OSError, UnicodeDecodeError):
        _logger.warning("session:read_failed", exc_info=True)
        return None
    if not text:
        return None

    try:
        raw = json.loads(text)
    except json.JSONDecodeError:
        _logger.warning("session:corrupt; ignoring stored session", exc_info=True)
        return None

    if not isinstance(raw, dict):
        _logger.warning("session:corrupt; expected a JSON object, got %s", type(raw).__name__)
        return None

    version = raw.get("version")
    if version != CURRENT_VERSION:
        _logger.warning(
            "session:version_mismatch found=%r expected=%d; discarding",
            version,
            CURRENT_VERSION,
        )
        store.clear()
        return None

    try:
        envelope = SessionEnvelope.model_validate_json(text)
    except ValidationError:
        _logger.warning("session:invalid; ignoring stored session", exc_info=True)
        return None

    _logger.info(
        "session:loaded transactions=%d saved_at=%s",
        len(envelope.transactions),
        envelope.saved_at.isoformat(),
    )
    return envelope


def clear_session(store: SessionStore | None = None) -> None:
    store = store if store is not None else FileSessionStore()
    store.clear()
    _logger.info("session:cleared")


def has_session(store: SessionStore | None = None) -> bool:
    store = store if store is not None else FileSessionStore()
    return store.exists()


def session_info(store: SessionStore | None = None) -> SessionInfo | None:
    """Saved-at timestamp and transaction count without a full validation pass."""

    store = store if store is not None else FileSessionStore()
    try:
        text = store.read()
        if not text:
            return None
        raw = json.loads(text)
        return SessionInfo(
            saved_at=datetime.fromisoformat(raw["savedAt"]),
            transaction_count=len(raw["transactions"]),
        )
    except (OSError, ValueError, KeyError, TypeError):
        _logger.debug("session:info_unavailable", exc_info=True)
        return None


__all__ = [
    "CURRENT_VERSION",
    "TransactionModel",
    "UploadedFileModel",
    "AliasMappingModel",
    "SessionEnvelope",
    "SessionStore",
    "FileSessionStore",
    "MemorySessionStore",
    "SessionInfo",
    "save_session",
    "load_session",
    "clear_session",
    "has_session",
    "session_info",
]
