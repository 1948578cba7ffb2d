"""
knwire.tier1_runtime.context
─────────────────────────────
Pass context: pass id, integration identity, deadline and cancellation,
propagated to every registry call and into logs.

Uses Python contextvars for framework-agnostic storage. Outside a pass_scope
there is no shared context: get_context() hands out a fresh, unbounded one,
so cancelling it cannot leak into a later pass. The logging processor reads
the active pass through current_pass().
"""
from __future__ import annotations

import time
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Iterator


# ── Domain model ─────────────────────────────────────────────────────────────

@dataclass
class PassContext:
    """Metadata available throughout one resolution pass."""
    pass_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    integration: str | None = None
    namespace: str | None = None
    deadline: float | None = None  # time.monotonic() value
    cancelled: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)

    def remaining(self) -> float | None:
        """Seconds left before the deadline, None if the pass is unbounded."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def cancel(self) -> None:
        self.cancelled = True

    def check(self) -> None:
        """Raise PassCancelledError if the pass was cancelled or ran out of time."""
        from knwire.tier0_core.errors import PassCancelledError

        if self.cancelled:
            raise PassCancelledError(
                user_message="resolution pass cancelled",
                pass_id=self.pass_id,
            )
        if self.deadline is not None and time.monotonic() >= self.deadline:
            raise PassCancelledError(
                user_message="resolution pass deadline exceeded",
                pass_id=self.pass_id,
            )


# ── ContextVar storage ────────────────────────────────────────────────────────

_ctx: ContextVar[PassContext | None] = ContextVar("knwire_pass_context", default=None)


# ── Public API ────────────────────────────────────────────────────────────────

def current_pass() -> PassContext | None:
    """The context of the active pass_scope, None outside of one."""
    return _ctx.get()


def get_context() -> PassContext:
    """Return the active pass context, or a fresh unbounded one outside a pass."""
    ctx = _ctx.get()
    return ctx if ctx is not None else PassContext()


@contextmanager
def pass_scope(
    integration: str,
    namespace: str,
    timeout: float | None = None,
    **metadata: Any,
) -> Iterator[PassContext]:
    """
    Activate a fresh pass context for the duration of the block.

    Usage:
        with pass_scope("my-route", "default", timeout=30.0) as ctx:
            trait.apply(integration, options)
    """
    ctx = PassContext(
        integration=integration,
        namespace=namespace,
        deadline=time.monotonic() + timeout if timeout is not None else None,
        metadata=metadata,
    )
    token = _ctx.set(ctx)
    try:
        yield ctx
    finally:
        _ctx.reset(token)
