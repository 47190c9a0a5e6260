"""Context variables for structured logging."""

from contextvars import ContextVar

_stage_name: ContextVar[str] = ContextVar("stage_name", default="")
_worker_id: ContextVar[str] = ContextVar("worker_id", default="")
_lane: ContextVar[str] = ContextVar("lane", default="")


def set_log_context(
    stage: str | None = None,
    worker_id: str | None = None,
    lane: str | None = None,
) -> None:
    if stage is not None:
        _stage_name.set(stage)
    if worker_id is not None:
        _worker_id.set(worker_id)
    if lane is not None:
        _lane.set(lane)


def get_log_context() -> dict[str, str]:
    return {
        "stage": _stage_name.get(),
        "worker_id": _worker_id.get(),
        "lane": _lane.get(),
    }


def clear_log_context() -> None:
    _stage_name.set("")
    _worker_id.set("")
    _lane.set("")
