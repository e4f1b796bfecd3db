"""Paginated and windowed streaming fetch engine."""

from .paginator import (
    NO_THROTTLE,
    Page,
    PageRequest,
    StreamResponse,
    max_page_checker,
    resolve_throttle,
    stream_pages,
)
from .pool import Job, JobResult, run_jobs
from .runtime import Canceler, invoke
from .windows import TimeWindow, WindowPage, WindowPlan, stream_windows

__all__ = [
    "NO_THROTTLE",
    "Canceler",
    "Job",
    "JobResult",
    "Page",
    "PageRequest",
    "StreamResponse",
    "TimeWindow",
    "WindowPage",
    "WindowPlan",
    "invoke",
    "max_page_checker",
    "resolve_throttle",
    "run_jobs",
    "stream_pages",
    "stream_windows",
]
