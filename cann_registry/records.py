"""Name records: a small namespaced key/value language carried in OP_RETURN outputs.

Record forms::

    namespace.path.to.key=value
    namespace.path.list.3=value          # indexed entry
    namespace.path.list.meta=type:array  # or type:text
    revoked=<sha256 hex of an earlier record string>

Records are applied in list order. Revocation is a view-time filter: a revoked
record stays on the ledger but never appears in the parsed result.
"""

from __future__ import annotations

import hashlib
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .binary import extract_op_return_payload, is_op_return
from .transaction import Transaction

logger = logging.getLogger(__name__)

REVOKED_KEY = "revoked"
META_SUFFIX = ".meta"
META_TYPE_PREFIX = "type:"
META_TEXT = "text"
META_ARRAY = "array"
MAX_RECORD_BYTES = 220

_INDEX_RE = re.compile(r"[0-9]+")


def record_hash(record: str) -> str:
    return hashlib.sha256(record.encode("utf-8")).hexdigest()


def revocation_record(record: str) -> str:
    """Return the record that revokes ``record``."""

    return f"{REVOKED_KEY}={record_hash(record)}"


@dataclass(frozen=True)
class RecordEntry:
    """One value-carrying record after key parsing, before folding."""

    namespace: str
    path: Tuple[str, ...]
    index: Optional[int]
    value: str
    kind: Optional[str]
    revoked: bool


def _split(record: str) -> Optional[Tuple[str, str]]:
    if "=" not in record:
        return None
    key, value = record.split("=", 1)
    return key, value


def _collect_declarations(records: Iterable[str]) -> Tuple[set[str], Dict[str, str]]:
    revoked: set[str] = set()
    meta: Dict[str, str] = {}
    for record in records:
        parts = _split(record)
        if parts is None:
            continue
        key, value = parts
        if key == REVOKED_KEY:
            revoked.add(value.strip().lower())
        elif key.endswith(META_SUFFIX):
            kind = value[len(META_TYPE_PREFIX):] if value.startswith(META_TYPE_PREFIX) else value
            meta[key[: -len(META_SUFFIX)]] = kind
    return revoked, meta


def build_entries(records: Iterable[str]) -> List[RecordEntry]:
    """First pass: turn record strings into a flat list of :class:`RecordEntry`."""

    records = list(records)
    revoked, meta = _collect_declarations(records)
    entries: List[RecordEntry] = []
    for record in records:
        parts = _split(record)
        if parts is None:
            logger.debug("Skipping record without '=': %r", record)
            continue
        key, value = parts
        if key == REVOKED_KEY or key.endswith(META_SUFFIX):
            continue
        segments = key.split(".")
        if len(segments) < 2 or not all(segments):
            logger.debug("Skipping record without a path: %r", record)
            continue
        namespace = segments[0]
        index: Optional[int] = None
        raw_path = segments[1:]
        if len(raw_path) > 1 and _INDEX_RE.fullmatch(raw_path[-1]):
            index = int(raw_path[-1])
            raw_path = raw_path[:-1]
        base_key = f"{namespace}.{'.'.join(raw_path)}"
        kind = meta.get(base_key)
        is_revoked = record_hash(record) in revoked
        if kind is not None and record_hash(f"{base_key}{META_SUFFIX}={META_TYPE_PREFIX}{kind}") in revoked:
            is_revoked = True
        entries.append(
            RecordEntry(
                namespace=namespace,
                path=tuple(segment.lower() for segment in raw_path),
                index=index,
                value=value,
                kind=kind,
                revoked=is_revoked,
            )
        )
    return entries


def _container(root: Dict[str, Any], entry: RecordEntry) -> Dict[str, Any]:
    node = root.setdefault(entry.namespace, {})
    for segment in entry.path[:-1]:
        child = node.get(segment)
        if not isinstance(child, dict):
            child = {}
            node[segment] = child
        node = child
    return node


def fold_entries(entries: Iterable[RecordEntry]) -> Dict[str, Any]:
    """Second pass: fold live entries into the nested namespace tree."""

    tree: Dict[str, Any] = {}
    kinds: Dict[Tuple[str, Tuple[str, ...]], str] = {}
    for entry in entries:
        if entry.revoked:
            continue
        node = _container(tree, entry)
        leaf = entry.path[-1]
        if entry.index is None and entry.kind is None:
            node[leaf] = entry.value
            kinds.pop((entry.namespace, entry.path), None)
            continue
        kind = entry.kind or META_ARRAY
        values = node.get(leaf)
        if not isinstance(values, list):
            values = []
            node[leaf] = values
        kinds[(entry.namespace, entry.path)] = kind
        if entry.index is None:
            values.append(entry.value)
        else:
            if entry.index >= len(values):
                values.extend([None] * (entry.index + 1 - len(values)))
            values[entry.index] = entry.value

    for (namespace, path), kind in kinds.items():
        node: Any = tree.get(namespace)
        for segment in path[:-1]:
            node = node.get(segment) if isinstance(node, dict) else None
        # A later scalar or nested key may have replaced the list.
        if not isinstance(node, dict) or not isinstance(node.get(path[-1]), list):
            continue
        values = [value for value in node[path[-1]] if value is not None]
        node[path[-1]] = " ".join(values) if kind == META_TEXT else values
    return tree


def parse_records(records: Iterable[str]) -> Dict[str, Any]:
    return fold_entries(build_entries(records))


def _check_key(prefix: str, key: Any, value: Any) -> None:
    if not isinstance(key, str) or not key or "." in key or "=" in key:
        raise ValueError(f"Record key {key!r} under {prefix!r} must be a non-empty string without '.' or '='")
    if key != key.lower():
        raise ValueError(f"Record key {key!r} under {prefix!r} must be lowercase")
    if isinstance(value, (Mapping, list)):
        return
    # A scalar leaf named like an array index or a meta declaration reads back as one.
    if key == META_SUFFIX[1:] or ("." in prefix and _INDEX_RE.fullmatch(key)):
        raise ValueError(f"Record key {key!r} under {prefix!r} would not parse back as a plain value")


def serialize_records(tree: Mapping[str, Any]) -> List[str]:
    """Render a parsed tree back into record strings.

    Lists become an ``array`` meta declaration followed by indexed entries.
    Keys below a namespace must be lowercase, must not contain ``.`` or ``=``
    and a plain value may not sit under a key named ``meta`` or, below the
    first level, an all-digit key. Lists must be non-empty. Trees outside
    that domain raise ``ValueError`` since they cannot be parsed back.
    """

    records: List[str] = []

    def walk(prefix: str, node: Mapping[str, Any]) -> None:
        for key, value in node.items():
            _check_key(prefix, key, value)
            full_key = f"{prefix}.{key}"
            if isinstance(value, Mapping):
                walk(full_key, value)
            elif isinstance(value, list):
                if not value:
                    raise ValueError(f"Empty list at {full_key!r} has no record form")
                records.append(f"{full_key}{META_SUFFIX}={META_TYPE_PREFIX}{META_ARRAY}")
                records.extend(f"{full_key}.{index}={item}" for index, item in enumerate(value))
            else:
                records.append(f"{full_key}={value}")

    for namespace, node in tree.items():
        walk(namespace, node)
    return records


def extract_records_from_transaction(tx: Transaction) -> List[str]:
    """Return the UTF-8 payloads of a transaction's zero-value OP_RETURN outputs."""

    records: List[str] = []
    for output in tx.outputs:
        if output.value != 0 or not is_op_return(output.locking_bytecode):
            continue
        try:
            payload = extract_op_return_payload(output.locking_bytecode)
        except ValueError:
            logger.warning("Skipping undecodable OP_RETURN output in %s", tx.txid)
            continue
        if payload:
            records.append(payload.decode("utf-8", errors="replace"))
    return records
