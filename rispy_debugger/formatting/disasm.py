from __future__ import annotations

from rispy_debugger.types.chunk import Chunk
from rispy_debugger.types.expr import Lambda, LambdaDefinition
from rispy_debugger.types.instruction import Op
from rispy_debugger.types.snapshot import CallFrame

from .format import format_expr, format_instruction


def _nested(value) -> str | None:
    if isinstance(value, Lambda):
        return f"<Lambda {value.name} params=({' '.join(value.params)})>"
    if isinstance(value, LambdaDefinition):
        return f"<LambdaDefinition params=({' '.join(value.params)})>"
    return None


def _listing(chunk: Chunk, ip: int | None, indent: int) -> list:
    """Lines of one chunk; nested lambda bodies come back as (chunk, indent) tasks."""
    pad = "    " * indent
    out: list = []
    nested = []
    for i, instr in enumerate(chunk.code):
        marker = "->" if i == ip else "  "
        line = f"{pad}{marker}{i:04d}: {format_instruction(instr)}"
        if instr.op is Op.CONSTANT and not instr.has_inline_constant:
            value = chunk.resolve_constant(instr)
            line += f"    ; {format_expr(value) if value is not None else '<missing>'}"
        elif instr.has_inline_constant and _nested(instr.operand):
            nested.append((f"{i:04d}", instr.operand))
        out.append(line)
    if ip is not None and ip >= len(chunk.code):
        out.append(f"{pad}->{len(chunk.code):04d}: <end>")
    if chunk.constants is not None:
        out.append(f"{pad}-- constants --")
        for idx, c in enumerate(chunk.constants):
            header = _nested(c)
            if header:
                out.append(f"{pad}[{idx}] {header}")
                out.append((c.chunk, indent + 1))
            else:
                out.append(f"{pad}[{idx}] {format_expr(c)}")
    for where, value in nested:
        out.append(f"{pad}-- {where} {_nested(value)} --")
        out.append((value.chunk, indent + 1))
    return out


def disassemble_chunk(chunk: Chunk, ip: int | None = None, indent: int = 0) -> str:
    lines = []
    work = list(reversed(_listing(chunk, ip, indent)))
    while work:
        item = work.pop()
        if isinstance(item, str):
            lines.append(item)
        else:
            work.extend(reversed(_listing(item[0], None, item[1])))
    return "\n".join(lines)


def disassemble_frame(frame: CallFrame) -> str:
    header = f"== frame ip={frame.ip}" + (f" env={frame.env}" if frame.env is not None else "") + " =="
    return header + "\n" + disassemble_chunk(frame.chunk, ip=frame.ip)
