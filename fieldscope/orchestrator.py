import json
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import ValidationError

from fieldscope.ids import IdGenerator
from fieldscope.models import JobType, ProjectMetadata, RoomData, ScopeContext
from fieldscope.stages.audit import audit_gaps
from fieldscope.stages.dedup import room_confidence, sanitize_rooms
from fieldscope.stages.logistics import enrich
from fieldscope.stages.ordering import sort_scope_items
from fieldscope.stages.sanitizer import sanitize_scope
from fieldscope.utils import get_logger, load_yaml, now_utc, validate_config, write_output
from fieldscope.vocabulary import Vocabulary, default_vocabulary, load_vocabulary

logger = get_logger(__name__)

DEFAULT_JOB = {
    "severity": 5,
    "context": ScopeContext.INTERIOR.value,
    "loss_type": "Water",
    "job_type": JobType.RECONSTRUCTION.value,
}


@dataclass
class PipelineResult:
    rooms: List[RoomData] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    merge_count: int = 0
    room_scores: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rooms": [r.model_dump(mode="json") for r in self.rooms],
            "warnings": list(self.warnings),
            "merge_count": self.merge_count,
            "room_scores": dict(self.room_scores),
        }


# ---------- Parameter normalization ----------

def _clamp_severity(severity: Any) -> int:
    try:
        value = int(round(float(severity)))
    except (TypeError, ValueError, OverflowError):
        logger.warning("severity %r is not numeric, using %d", severity, DEFAULT_JOB["severity"])
        return DEFAULT_JOB["severity"]
    clamped = max(1, min(10, value))
    if clamped != value:
        logger.warning("severity %d outside 1..10, clamped to %d", value, clamped)
    return clamped


def _normalize_context(context: Any) -> str:
    raw = str(context or "").strip().lower()
    for ctx in ScopeContext:
        if ctx.value.lower() == raw:
            return ctx.value
    logger.warning("unknown context %r, treating as %s", context, ScopeContext.INTERIOR.value)
    return ScopeContext.INTERIOR.value


def _normalize_job_type(job_type: Any) -> str:
    raw = str(job_type or "").strip().upper()
    for jt in JobType:
        if jt.value == raw:
            return jt.value
    logger.warning("unknown job type %r, treating as %s", job_type, JobType.RECONSTRUCTION.value)
    return JobType.RECONSTRUCTION.value


def _coerce_rooms(rooms: List[Union[RoomData, dict]]) -> List[RoomData]:
    out: List[RoomData] = []
    for idx, r in enumerate(rooms or []):
        if isinstance(r, RoomData):
            out.append(r)
            continue
        if not isinstance(r, dict):
            logger.warning("skipping room #%d: expected an object, got %s", idx, type(r).__name__)
            continue
        try:
            out.append(RoomData.model_validate(r))
        except ValidationError as e:
            raise ValueError(f"Room #{idx} could not be read: {e}") from e
    return out


def _resolve_vocabulary(processing: Dict[str, Any], vocabulary: Optional[Vocabulary]) -> Vocabulary:
    if vocabulary is not None:
        return vocabulary
    path = (processing.get("sanitize") or {}).get("vocabulary")
    return load_vocabulary(path) if path else default_vocabulary()


# ---------- Pipeline ----------

def run_pipeline(
    rooms: List[Union[RoomData, dict]],
    *,
    severity: Any = DEFAULT_JOB["severity"],
    context: Any = DEFAULT_JOB["context"],
    loss_type: str = DEFAULT_JOB["loss_type"],
    job_type: Any = DEFAULT_JOB["job_type"],
    cfg: Optional[Dict[str, Any]] = None,
    vocabulary: Optional[Vocabulary] = None,
    ids: Optional[IdGenerator] = None,
) -> PipelineResult:
    """Sanitize -> dedup -> logistics -> (ordering) -> gap audit."""
    processing = (cfg or {}).get("processing") or {}
    vocab = _resolve_vocabulary(processing, vocabulary)
    severity = _clamp_severity(severity)
    context = _normalize_context(context)
    job_type = _normalize_job_type(job_type)
    loss_type = str(loss_type or DEFAULT_JOB["loss_type"])

    current = _coerce_rooms(rooms)
    warnings: List[str] = []
    merge_count = 0

    if (processing.get("sanitize") or {}).get("enabled", True):
        current = sanitize_scope(current, vocab)

    dd = processing.get("dedup") or {}
    if dd.get("enabled", True):
        kwargs: Dict[str, Any] = {}
        for key in ("merge_threshold", "review_threshold", "max_passes", "narrative_cap", "type_limits"):
            if dd.get(key) is not None:
                kwargs[key] = dd[key]
        deduped = sanitize_rooms(current, ids=ids, **kwargs)
        current = deduped.rooms
        warnings.extend(deduped.warnings)
        merge_count = deduped.merge_count

    lg = processing.get("logistics") or {}
    if lg.get("enabled", True):
        kwargs = {}
        for key in ("dumpster_threshold", "load_size"):
            if lg.get(key) is not None:
                kwargs[key] = lg[key]
        current = enrich(current, severity, context, loss_type, job_type, ids=ids, **kwargs)

    if processing.get("sort_items"):
        current = [r.model_copy(update={"items": sort_scope_items(r.items, vocab)}) for r in current]

    if (processing.get("audit") or {}).get("enabled", True):
        warnings.extend(audit_gaps([it for r in current for it in r.items], vocab))

    scores = {r.id: room_confidence(r) for r in current if not r.is_general}
    logger.info(
        "pipeline: rooms=%d items=%d merges=%d warnings=%d",
        len(current),
        sum(len(r.items) for r in current),
        merge_count,
        len(warnings),
    )
    return PipelineResult(rooms=current, warnings=warnings, merge_count=merge_count, room_scores=scores)


# ---------- File driver ----------

def _apply_overrides(cfg: Dict[str, Any], overrides: Optional[Dict[str, Any]]) -> None:
    if not overrides:
        return

    job = cfg.setdefault("job", {})
    for key in ("severity", "context", "loss_type", "job_type"):
        if overrides.get(key) is not None:
            job[key] = overrides[key]

    processing = cfg.setdefault("processing", {})
    if overrides.get("vocabulary") is not None:
        processing.setdefault("sanitize", {})["vocabulary"] = overrides["vocabulary"]

    # Dedup
    if (
        overrides.get("dedup_enabled") is not None
        or overrides.get("merge_threshold") is not None
        or overrides.get("review_threshold") is not None
        or overrides.get("max_passes") is not None
    ):
        dd = processing.setdefault("dedup", {})
        if overrides.get("dedup_enabled") is not None:
            dd["enabled"] = overrides["dedup_enabled"]
        if overrides.get("merge_threshold") is not None:
            dd["merge_threshold"] = float(overrides["merge_threshold"])
        if overrides.get("review_threshold") is not None:
            dd["review_threshold"] = float(overrides["review_threshold"])
        if overrides.get("max_passes") is not None:
            dd["max_passes"] = int(overrides["max_passes"])

    if overrides.get("logistics_enabled") is not None:
        processing.setdefault("logistics", {})["enabled"] = overrides["logistics_enabled"]
    if overrides.get("audit_enabled") is not None:
        processing.setdefault("audit", {})["enabled"] = overrides["audit_enabled"]
    if overrides.get("sort_items") is not None:
        processing["sort_items"] = overrides["sort_items"]

    if overrides.get("out_dir") is not None:
        cfg.setdefault("output", {})["dir"] = overrides["out_dir"]


def load_input(path: str) -> Tuple[List[dict], ProjectMetadata]:
    """Read a room list, bare or wrapped as ``{"rooms": [...], "metadata": {...}}``."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, list):
        return data, ProjectMetadata()
    if isinstance(data, dict):
        try:
            metadata = ProjectMetadata.model_validate(data.get("metadata") or {})
        except ValidationError as e:
            raise ValueError(f"Input metadata could not be read: {e}") from e
        rooms = data.get("rooms") or []
        if not isinstance(rooms, list):
            raise ValueError("Input 'rooms' must be a list")
        return rooms, metadata
    raise ValueError(f"Unsupported input shape: {type(data).__name__}")


def _resolve_job(cfg: Dict[str, Any], metadata: ProjectMetadata) -> Dict[str, Any]:
    job = cfg.get("job") or {}
    return {
        "severity": job.get("severity", metadata.severity_score),
        "context": job.get("context", DEFAULT_JOB["context"]),
        "loss_type": job.get("loss_type", metadata.loss_type_inference),
        "job_type": job.get("job_type", DEFAULT_JOB["job_type"]),
    }


def _execute(cfg: Dict[str, Any], input_path: str) -> List[str]:
    t0 = time.monotonic()
    raw_rooms, metadata = load_input(input_path)
    job = _resolve_job(cfg, metadata)
    logger.info("input loaded rooms=%d job=%s", len(raw_rooms), job)

    result = run_pipeline(raw_rooms, cfg=cfg, **job)
    logger.info("pipeline took_ms=%d", int((time.monotonic() - t0) * 1000))
    for w in result.warnings:
        logger.info("warning: %s", w)

    payload = {
        "generated_at": now_utc().isoformat(),
        "metadata": metadata.model_dump(mode="json"),
        "job": job,
        **result.to_dict(),
    }
    generated = write_output(payload, cfg.get("output") or {"dir": "out"})
    logger.info("output written files=%s", generated)
    return generated


def run_once(
    config_path: Optional[str],
    input_path: str,
    *,
    overrides: Optional[Dict[str, Any]] = None,
) -> List[str]:
    """Run the pipeline once over an input file and write the result."""
    run_id = uuid.uuid4().hex[:8]
    logger.info("=== run start id=%s ===", run_id)

    try:
        cfg = (load_yaml(config_path) if config_path else None) or {}
        validate_config(cfg)
        _apply_overrides(cfg, overrides)
        return _execute(cfg, input_path)
    except Exception as e:
        logger.error("Pipeline execution failed: %s", e)
        raise
    finally:
        logger.info("=== run end id=%s ===", run_id)
