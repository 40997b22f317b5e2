"""Fake store and embedding providers for testing.

FakeRestStore is an in-memory emulation of the PostgREST subset the
service speaks, served through ``httpx.MockTransport`` so the real
StoreClient, codec and service run unmodified. FakeEmbeddingProvider
produces 8-dimensional vectors derived from text hashing, so identical
inputs always produce identical vectors.

Design principles:
- Never mock the StoreClient itself; fake the HTTP boundary instead
- Deterministic: same input -> same output, always
- Inspectable: tests can read ``tables`` and ``requests`` directly
"""
import hashlib
import json
import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import httpx
import numpy as np

from zettelstore_mcp.exceptions import EmbeddingError

RESERVED_PARAMS = ("select", "order", "limit", "offset", "or")
TABLES = ("notes", "tags", "note_tags", "links")
# Tables whose rows get a generated ``id``
ID_TABLES = ("notes", "tags", "links")


def _split_top_level(text: str) -> List[str]:
    """Split on commas that are outside double quotes."""
    parts, current, quoted, escaped = [], [], False, False
    for ch in text:
        if escaped:
            current.append(ch)
            escaped = False
        elif ch == "\\" and quoted:
            current.append(ch)
            escaped = True
        elif ch == '"':
            current.append(ch)
            quoted = not quoted
        elif ch == "," and not quoted:
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
    parts.append("".join(current))
    return parts


def _unquote(value: str) -> str:
    """Strip PostgREST double quotes, resolving backslash escapes."""
    if len(value) >= 2 and value[0] == '"' and value[-1] == '"':
        out, escaped = [], False
        for ch in value[1:-1]:
            if escaped:
                out.append(ch)
                escaped = False
            elif ch == "\\":
                escaped = True
            else:
                out.append(ch)
        return "".join(out)
    return value


def _like_to_regex(pattern: str) -> str:
    """LIKE pattern (with ``*`` as ``%``) to a regex; backslash escapes."""
    out, escaped = [], False
    for ch in pattern:
        if escaped:
            out.append(re.escape(ch))
            escaped = False
        elif ch == "\\":
            escaped = True
        elif ch in ("%", "*"):
            out.append(".*")
        elif ch == "_":
            out.append(".")
        else:
            out.append(re.escape(ch))
    return "".join(out)


def _as_text(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _matches(row: Dict[str, Any], column: str, expression: str) -> bool:
    op, _, raw = expression.partition(".")
    actual = _as_text(row.get(column))
    if op == "eq":
        return actual == _unquote(raw)
    if op == "neq":
        return actual != _unquote(raw)
    if op == "ilike":
        if actual is None:
            return False
        regex = _like_to_regex(_unquote(raw))
        return re.fullmatch(regex, actual, re.IGNORECASE | re.DOTALL) is not None
    if op == "in":
        inner = raw[1:-1] if raw.startswith("(") and raw.endswith(")") else raw
        values = [_unquote(v) for v in _split_top_level(inner) if v]
        return actual in values
    raise ValueError(f"Unsupported filter operator: {op}")


def _matches_or(row: Dict[str, Any], expression: str) -> bool:
    inner = expression[1:-1] if expression.startswith("(") else expression
    for condition in _split_top_level(inner):
        column, _, rest = condition.partition(".")
        if _matches(row, column, rest):
            return True
    return False


@dataclass
class _Failure:
    method: str
    table: str
    status: int
    message: str
    predicate: Optional[Callable[[Dict[str, str], Any], bool]]
    connect_error: bool
    remaining: Optional[int]


class FakeRestStore:
    """In-memory PostgREST emulator.

    Supports ``eq``, ``neq``, ``ilike``, ``in`` and ``or=(...)`` filters,
    ``select`` projection, ``order``, ``limit`` and ``offset``. Written rows
    are echoed back only when the client sends
    ``Prefer: return=representation`` and ``echo_writes`` is on.
    Deleting a note cascades to its ``note_tags`` and ``links`` rows, as
    foreign keys with ON DELETE CASCADE would.

    Args:
        echo_writes: Honour ``return=representation``. Turn off to emulate
            a store that answers writes with an empty body.
        vector_as_text: Return embeddings as pgvector text (``"[...]"``),
            the way PostgREST serializes ``vector`` columns.
    """

    def __init__(self, echo_writes: bool = True, vector_as_text: bool = True) -> None:
        self.tables: Dict[str, List[Dict[str, Any]]] = {t: [] for t in TABLES}
        self.requests: List[Dict[str, Any]] = []
        self.echo_writes = echo_writes
        self.vector_as_text = vector_as_text
        self._failures: List[_Failure] = []

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    # ----- test helpers -----

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return self.tables[table]

    def seed(self, table: str, **row: Any) -> Dict[str, Any]:
        """Insert a row directly, bypassing the HTTP layer."""
        row = dict(row)
        if table in ID_TABLES:
            row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", datetime.now(timezone.utc).isoformat())
        if table == "notes":
            row.setdefault("updated_at", row["created_at"])
            row.setdefault("note_type", "permanent")
        self.tables[table].append(row)
        return row

    def fail_when(
        self,
        method: str,
        table: str,
        status: int = 500,
        message: str = "internal error",
        predicate: Optional[Callable[[Dict[str, str], Any], bool]] = None,
        connect_error: bool = False,
        times: Optional[int] = None,
    ) -> None:
        """Make matching requests fail.

        Args:
            method: HTTP verb to intercept.
            table: Collection name (``notes``, ``tags``...).
            status: Response status for the failure.
            message: Value of the ``message`` field in the error body.
            predicate: Optional ``(params, body) -> bool`` narrowing the match.
            connect_error: Raise ``httpx.ConnectError`` instead of responding.
            times: Fail this many times, then behave normally.
        """
        self._failures.append(
            _Failure(method.upper(), table, status, message, predicate, connect_error, times)
        )

    def requests_for(self, method: str, table: str) -> List[Dict[str, Any]]:
        return [
            r for r in self.requests if r["method"] == method and r["table"] == table
        ]

    # ----- transport -----

    def handle(self, request: httpx.Request) -> httpx.Response:
        method = request.method
        table = request.url.path.rstrip("/").rsplit("/", 1)[-1]
        params = dict(request.url.params.multi_items())
        body = json.loads(request.content) if request.content else None
        self.requests.append(
            {"method": method, "table": table, "params": params, "body": body}
        )

        failure = self._match_failure(method, table, params, body)
        if failure is not None:
            if failure.connect_error:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(
                failure.status,
                json={"message": failure.message, "code": "XX000", "details": None, "hint": None},
            )

        if table not in self.tables:
            return httpx.Response(
                404, json={"message": f'relation "public.{table}" does not exist'}
            )

        echo = (
            self.echo_writes
            and request.headers.get("Prefer") == "return=representation"
        )
        if method == "GET":
            return httpx.Response(200, json=self._select(table, params))
        if method == "POST":
            return self._insert(table, body, echo)
        if method == "PATCH":
            return self._update(table, params, body, echo)
        if method == "DELETE":
            return self._delete(table, params, echo)
        return httpx.Response(405, json={"message": "method not allowed"})

    def _match_failure(self, method, table, params, body) -> Optional[_Failure]:
        for failure in self._failures:
            if failure.method != method or failure.table != table:
                continue
            if failure.remaining is not None and failure.remaining <= 0:
                continue
            if failure.predicate is not None and not failure.predicate(params, body):
                continue
            if failure.remaining is not None:
                failure.remaining -= 1
            return failure
        return None

    def _filtered(self, table: str, params: Dict[str, str]) -> List[Dict[str, Any]]:
        rows = self.tables[table]
        for column, expression in params.items():
            if column in RESERVED_PARAMS:
                continue
            rows = [r for r in rows if _matches(r, column, expression)]
        if "or" in params:
            rows = [r for r in rows if _matches_or(r, params["or"])]
        return rows

    def _render(self, row: Dict[str, Any]) -> Dict[str, Any]:
        out = dict(row)
        if self.vector_as_text and isinstance(out.get("embedding"), list):
            out["embedding"] = json.dumps(out["embedding"])
        return out

    def _select(self, table: str, params: Dict[str, str]) -> List[Dict[str, Any]]:
        rows = list(self._filtered(table, params))
        if "order" in params:
            for term in reversed(params["order"].split(",")):
                column, _, direction = term.partition(".")
                present = [r for r in rows if r.get(column) is not None]
                missing = [r for r in rows if r.get(column) is None]
                present.sort(key=lambda r: r[column], reverse=direction == "desc")
                rows = present + missing
        offset = int(params.get("offset", 0))
        rows = rows[offset:]
        if "limit" in params:
            rows = rows[: int(params["limit"])]
        select = params.get("select", "*")
        rendered = [self._render(r) for r in rows]
        if select != "*":
            columns = select.split(",")
            rendered = [{c: r.get(c) for c in columns} for r in rendered]
        return rendered

    def _insert(self, table: str, body: Any, echo: bool) -> httpx.Response:
        records = body if isinstance(body, list) else [body]
        created = []
        for record in records:
            row = dict(record)
            if table in ID_TABLES:
                row.setdefault("id", str(uuid.uuid4()))
            row.setdefault("created_at", datetime.now(timezone.utc).isoformat())
            self.tables[table].append(row)
            created.append(self._render(row))
        if echo:
            return httpx.Response(201, json=created)
        return httpx.Response(201)

    def _update(self, table: str, params, body: Any, echo: bool) -> httpx.Response:
        updated = []
        for row in self._filtered(table, params):
            row.update(body or {})
            updated.append(self._render(row))
        if echo:
            return httpx.Response(200, json=updated)
        return httpx.Response(204)

    def _delete(self, table: str, params, echo: bool) -> httpx.Response:
        doomed = self._filtered(table, params)
        doomed_ids = {id(r) for r in doomed}
        self.tables[table] = [r for r in self.tables[table] if id(r) not in doomed_ids]
        if table == "notes":
            note_ids = {r["id"] for r in doomed}
            self.tables["note_tags"] = [
                r for r in self.tables["note_tags"] if r["note_id"] not in note_ids
            ]
            self.tables["links"] = [
                r
                for r in self.tables["links"]
                if r["source_id"] not in note_ids and r["target_id"] not in note_ids
            ]
        if echo:
            return httpx.Response(200, json=[self._render(r) for r in doomed])
        return httpx.Response(204)


class FakeEmbeddingProvider:
    """Deterministic 8-dimensional embedding provider for testing.

    Produces L2-normalized vectors derived from a hash of the input text,
    so the same text always yields the same vector and different texts
    yield different ones.
    """

    def __init__(self, dim: int = 8, model: str = "fake-embedding") -> None:
        self._dim = dim
        self._model = model
        self.embed_count = 0
        self.inputs: List[str] = []

    @property
    def model(self) -> str:
        return self._model

    def embed(self, text: str) -> List[float]:
        self.embed_count += 1
        self.inputs.append(text)
        chunks: List[bytes] = []
        needed = self._dim
        seed = text.encode("utf-8")
        while needed > 0:
            seed = hashlib.sha256(seed).digest()
            chunks.append(seed)
            needed -= len(seed)
        all_bytes = b"".join(chunks)[: self._dim]

        raw = np.frombuffer(all_bytes, dtype=np.uint8).astype(np.float64)
        # Map [0, 255] -> [-1, 1]
        raw = (raw / 127.5) - 1.0
        norm = np.linalg.norm(raw)
        if norm > 0:
            raw = raw / norm
        return raw.tolist()


class FailingEmbeddingProvider:
    """Provider whose every call fails."""

    def __init__(self, error: Optional[Exception] = None) -> None:
        self.error = error or EmbeddingError("provider unavailable", model="failing")
        self.embed_count = 0

    @property
    def model(self) -> str:
        return "failing"

    def embed(self, text: str) -> List[float]:
        self.embed_count += 1
        raise self.error
