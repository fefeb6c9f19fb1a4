"""
Snapshot persistence for vector indexes.

A snapshot is UTF-8 JSON with a header and one entry per record:

    {"checksum": "<sha256 of records>", "count": 2, "dimension": 3, "fixed_dimension": null,
     "format": "vecstore-snapshot", "metric": "cosine", "version": 1,
     "records": [{"content": ..., "embedding": [...], "id": ..., "metadata": {...}}, ...]}

Floats are written with Python's shortest round-trip repr, so float64 values
survive save/load bit for bit. Keys are sorted and separators fixed, so the
same index state always encodes to the same bytes.
"""

import hashlib
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, List, Union

from ..core.errors import CorruptDataError, VectorStoreError
from ..util.logging import logger
from .index import IVectorIndex, InMemoryIndex, IndexSnapshot
from .metrics import Metric
from .types import VectorRecord

SNAPSHOT_FORMAT = "vecstore-snapshot"
SNAPSHOT_VERSION = 1

IndexFactory = Callable[..., IVectorIndex]


def _dumps(payload: Any) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False, allow_nan=False)


def _calculate_checksum(records_payload: List[Dict[str, Any]]) -> str:
    """SHA-256 over the canonical encoding of the records list."""
    return hashlib.sha256(_dumps(records_payload).encode("utf-8")).hexdigest()


def _record_to_dict(record: VectorRecord) -> Dict[str, Any]:
    return {
        "id": record.id,
        "content": record.content,
        "metadata": dict(record.metadata),
        "embedding": [float(value) for value in record.embedding],
    }


def _encode(snapshot: IndexSnapshot) -> bytes:
    records_payload = [_record_to_dict(record) for record in snapshot.records]
    document = {
        "format": SNAPSHOT_FORMAT,
        "version": SNAPSHOT_VERSION,
        "metric": snapshot.metric.value,
        "dimension": snapshot.dimension if records_payload else snapshot.fixed_dimension,
        "fixed_dimension": snapshot.fixed_dimension,
        "count": len(records_payload),
        "checksum": _calculate_checksum(records_payload),
        "records": records_payload,
    }
    return _dumps(document).encode("utf-8")


def save(index: IVectorIndex) -> bytes:
    """Encode every record of index into snapshot bytes."""
    return _encode(index.snapshot())


def _require(document: Dict[str, Any], key: str, expected_type, allow_none: bool = False):
    if key not in document:
        raise CorruptDataError(f"snapshot is missing field {key!r}")
    value = document[key]
    if value is None and allow_none:
        return None
    # bool is an int subclass; never acceptable where a count is expected
    if isinstance(value, bool) and expected_type is not bool:
        raise CorruptDataError(f"snapshot field {key!r} has wrong type bool")
    if not isinstance(value, expected_type):
        raise CorruptDataError(f"snapshot field {key!r} has wrong type {type(value).__name__}")
    return value


def _parse_record(position: int, entry: Any, dimension: int) -> VectorRecord:
    if not isinstance(entry, dict):
        raise CorruptDataError(f"record {position} is not an object")
    record_id = _require(entry, "id", str)
    content = _require(entry, "content", str)
    metadata = _require(entry, "metadata", dict)
    embedding = _require(entry, "embedding", list)

    if len(embedding) != dimension:
        raise CorruptDataError(
            f"record {record_id!r} has {len(embedding)} components, header declares {dimension}"
        )
    for value in embedding:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise CorruptDataError(f"record {record_id!r} embedding holds a non-numeric value")

    try:
        return VectorRecord(id=record_id, content=content, embedding=embedding, metadata=metadata)
    except VectorStoreError as exc:
        raise CorruptDataError(f"record {position} is invalid: {exc}") from exc


def load(data: bytes, index_factory: IndexFactory = InMemoryIndex) -> IVectorIndex:
    """
    Rebuild an index from snapshot bytes.

    Args:
        data: Bytes produced by save()
        index_factory: Backend to populate, called as index_factory(metric=...)

    Returns:
        A new index holding every record of the snapshot

    Raises:
        CorruptDataError: if the bytes are malformed, truncated or inconsistent
    """
    if not isinstance(data, (bytes, bytearray)):
        raise CorruptDataError(f"snapshot must be bytes, got {type(data).__name__}")
    try:
        document = json.loads(bytes(data).decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise CorruptDataError(f"snapshot is not valid JSON: {exc}") from exc

    if not isinstance(document, dict):
        raise CorruptDataError("snapshot root must be an object")
    if document.get("format") != SNAPSHOT_FORMAT:
        raise CorruptDataError(f"unrecognised snapshot format {document.get('format')!r}")
    version = _require(document, "version", int)
    if version != SNAPSHOT_VERSION:
        raise CorruptDataError(f"unsupported snapshot version {version}")

    metric_name = _require(document, "metric", str)
    try:
        metric = Metric(metric_name)
    except ValueError:
        raise CorruptDataError(f"unknown metric {metric_name!r}") from None

    count = _require(document, "count", int)
    dimension = _require(document, "dimension", int, allow_none=True)
    fixed_dimension = _require(document, "fixed_dimension", int, allow_none=True)
    checksum = _require(document, "checksum", str)
    records_payload = _require(document, "records", list)

    if count != len(records_payload):
        raise CorruptDataError(f"header declares {count} records, found {len(records_payload)}")
    if records_payload and (dimension is None or dimension <= 0):
        raise CorruptDataError("non-empty snapshot must declare a positive dimension")
    if fixed_dimension is not None and (fixed_dimension <= 0 or dimension != fixed_dimension):
        raise CorruptDataError(f"fixed dimension {fixed_dimension} conflicts with dimension {dimension}")
    try:
        actual_checksum = _calculate_checksum(records_payload)
    except UnicodeEncodeError as exc:
        # JSON escapes can spell lone surrogates
        raise CorruptDataError(f"snapshot holds text that is not valid UTF-8: {exc.reason}") from exc
    except ValueError as exc:
        # overflowing literals such as 1e999 decode to inf
        raise CorruptDataError(f"snapshot holds non-finite values: {exc}") from exc
    if actual_checksum != checksum:
        raise CorruptDataError("snapshot checksum mismatch")

    records = []
    seen = set()
    for position, entry in enumerate(records_payload):
        record = _parse_record(position, entry, dimension)
        if record.id in seen:
            raise CorruptDataError(f"duplicate record id {record.id!r}")
        seen.add(record.id)
        records.append(record)

    if fixed_dimension is None:
        index = index_factory(metric=metric)
    else:
        index = index_factory(metric=metric, dimension=fixed_dimension)
    try:
        index.upsert_many(records)
    except VectorStoreError as exc:
        raise CorruptDataError(f"snapshot records rejected by index: {exc}") from exc
    return index


def save_to_file(index: IVectorIndex, path: Union[str, Path]) -> Path:
    """Write a snapshot atomically: temp file in the same directory, then rename."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    snapshot = index.snapshot()
    data = _encode(snapshot)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise

    logger.log_snapshot_operation("save", str(path), len(snapshot.records), details={"bytes": len(data)})
    return path


def load_from_file(path: Union[str, Path], index_factory: IndexFactory = InMemoryIndex) -> IVectorIndex:
    """Load a snapshot file; a missing file raises FileNotFoundError."""
    path = Path(path)
    data = path.read_bytes()
    try:
        index = load(data, index_factory=index_factory)
    except CorruptDataError as exc:
        logger.log_snapshot_operation("load", str(path), 0, status="failed", details={"error": str(exc)})
        raise
    logger.log_snapshot_operation("load", str(path), len(index))
    return index
