from __future__ import annotations

# Public surface for the formatting package
from .format import FALLBACK, format_expr, format_instruction, format_number
from .disasm import disassemble_chunk, disassemble_frame
from .views import build_view, snapshot_view, DebuggerView, SnapshotView, CallFrameView, InstructionView

__all__ = [
    "FALLBACK",
    "format_expr",
    "format_instruction",
    "format_number",
    "disassemble_chunk",
    "disassemble_frame",
    "build_view",
    "snapshot_view",
    "DebuggerView",
    "SnapshotView",
    "CallFrameView",
    "InstructionView",
]
