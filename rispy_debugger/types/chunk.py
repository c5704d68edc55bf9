from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from rispy_debugger.types.expr import Expr, Structural
from rispy_debugger.types.instruction import Instruction, Op


@dataclass(frozen=True, eq=False)
class Chunk(Structural):
    """A unit of compiled code plus its (optional) constant pool."""

    code: Tuple[Instruction, ...] = ()
    constants: Optional[Tuple[Expr, ...]] = None

    def __len__(self) -> int:
        return len(self.code)

    def instruction_at(self, ip: int) -> Instruction | None:
        if 0 <= ip < len(self.code):
            return self.code[ip]
        return None

    def constant(self, index: int) -> Expr | None:
        if self.constants is None or not 0 <= index < len(self.constants):
            return None
        return self.constants[index]

    def resolve_constant(self, instr: Instruction) -> Expr | None:
        """The value a Constant instruction pushes, whether inline or indexed."""
        if instr.op is not Op.CONSTANT:
            return None
        if instr.has_inline_constant:
            return instr.operand
        return self.constant(instr.operand)

    def _structure(self):
        pool = self.constants or ()
        return "Chunk", (len(self.code), self.constants is None), self.code + tuple(pool)
