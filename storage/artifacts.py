"""JSON artifact storage for order and batch reports.

Artifacts are written with sorted keys and a fixed indent, so the same
report always produces the same bytes and the same content hash.
"""

import hashlib
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Union

from models.refs import BatchReportRefs, DataReference
from models.reports import BatchResult


def _compute_sha256(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def to_json_bytes(obj: Any) -> bytes:
    """Deterministic JSON encoding of a dict or pydantic model."""
    if hasattr(obj, "model_dump"):
        obj = obj.model_dump(mode="json", by_alias=True)
    return json.dumps(obj, indent=2, sort_keys=True, ensure_ascii=False).encode("utf-8")


def put_json(obj: Any, path: Union[str, Path], ensure_parent: bool = True) -> DataReference:
    """Store a JSON-serializable object and return a DataReference.

    Args:
        obj: Dict or pydantic model
        path: File path where the artifact will be stored
        ensure_parent: Create parent directories if they don't exist

    Returns:
        DataReference with the content hash of the written bytes
    """
    path = Path(path)
    if ensure_parent:
        path.parent.mkdir(parents=True, exist_ok=True)

    json_bytes = to_json_bytes(obj)
    path.write_bytes(json_bytes)

    return DataReference(
        storage_uri=str(path.absolute()),
        content_hash=_compute_sha256(json_bytes),
        content_type="application/json",
        size_bytes=len(json_bytes),
        stored_at=datetime.now(timezone.utc),
    )


def get_json(ref: DataReference, validate_hash: bool = True) -> Any:
    """Read a JSON artifact back.

    Raises:
        FileNotFoundError: If the artifact path doesn't exist
        ValueError: If hash validation fails
    """
    path = Path(ref.storage_uri)
    if not path.exists():
        raise FileNotFoundError(f"Artifact not found: {ref.storage_uri}")

    json_bytes = path.read_bytes()
    if validate_hash:
        actual_hash = _compute_sha256(json_bytes)
        if actual_hash != ref.content_hash:
            raise ValueError(
                f"Hash mismatch for {ref.storage_uri}: "
                f"expected {ref.content_hash}, got {actual_hash}"
            )
    return json.loads(json_bytes.decode("utf-8"))


def _safe_name(order_id: str) -> str:
    return "".join(c if c.isalnum() or c in "-_." else "_" for c in order_id)


def write_batch_artifacts(result: BatchResult, directory: Union[str, Path]) -> BatchReportRefs:
    """Write one JSON file per built order report plus a batch summary.

    Layout:
        <directory>/<batch_id>/_summary.json
        <directory>/<batch_id>/orders/<order_id>.json
    """
    batch_dir = Path(directory) / _safe_name(result.batch_id)
    refs = BatchReportRefs(batch_id=result.batch_id)

    for outcome in result.outcomes:
        if outcome.report is None:
            continue
        refs.order_refs[outcome.order_id] = put_json(
            outcome.report, batch_dir / "orders" / f"{_safe_name(outcome.order_id)}.json"
        )

    summary = {
        "batch_id": result.batch_id,
        "counts": result.summary(),
        "orders": [
            {
                "order_id": o.order_id,
                "status": o.status.value,
                "attempts": o.attempts,
                "error": o.error,
                "grand_total": str(o.report.grand_total) if o.report else None,
            }
            for o in result.outcomes
        ],
        "cancelled": list(result.cancelled),
    }
    refs.summary_ref = put_json(summary, batch_dir / "_summary.json")
    return refs
