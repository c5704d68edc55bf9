"""Plain data describing what each visual element of the debugger shows.

Stacks are listed top first and call frames innermost first, matching how the
debugger displays them. Frames other than the innermost are marked dimmed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from rispy_debugger.types.snapshot import CallFrame, Err, VMSnapshot

from .format import format_expr, format_instruction

STACK_EMPTY_LABEL = "empty stack"


@dataclass(frozen=True)
class InstructionView:
    label: str
    active: bool


@dataclass(frozen=True)
class CallFrameView:
    instructions: Tuple[InstructionView, ...]
    dimmed: bool
    at_end: bool
    env: Optional[str] = None


@dataclass(frozen=True)
class SnapshotView:
    stack: Tuple[str, ...]
    callframes: Tuple[CallFrameView, ...]
    bindings: Tuple[Tuple[str, str], ...]
    console: Tuple[str, ...]
    terminal: bool

    @property
    def stack_labels(self) -> Tuple[str, ...]:
        return self.stack or (STACK_EMPTY_LABEL,)


@dataclass(frozen=True)
class DebuggerView:
    snapshot: Optional[SnapshotView]
    is_fallback: bool
    error: Optional[str]
    engine_error: Optional[str]
    can_step: bool
    can_run: bool


def frame_view(frame: CallFrame, dimmed: bool = False) -> CallFrameView:
    return CallFrameView(
        instructions=tuple(
            InstructionView(format_instruction(instr), i == frame.ip)
            for i, instr in enumerate(frame.chunk.code)
        ),
        dimmed=dimmed,
        at_end=frame.at_end,
        env=frame.env,
    )


def snapshot_view(snapshot: VMSnapshot) -> SnapshotView:
    frames = list(reversed(snapshot.callframes))
    current = snapshot.current_frame
    visible = snapshot.environment.visible(current.env if current else None)
    return SnapshotView(
        stack=tuple(format_expr(x) for x in reversed(snapshot.stack)),
        callframes=tuple(frame_view(f, dimmed=i != 0) for i, f in enumerate(frames)),
        bindings=tuple((name, format_expr(visible[name])) for name in sorted(visible)),
        console=snapshot.log,
        terminal=snapshot.is_terminal,
    )


def build_view(controller) -> DebuggerView:
    """Collect everything a front end needs from a StepController."""
    snapshot, is_fallback = controller.display_snapshot()
    current = controller.current
    return DebuggerView(
        snapshot=snapshot_view(snapshot) if snapshot is not None else None,
        is_fallback=is_fallback,
        error=current.message if isinstance(current, Err) else None,
        engine_error=controller.init_error or controller.engine_error,
        can_step=controller.can_step,
        can_run=controller.can_run,
    )
