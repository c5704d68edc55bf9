from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

from rispy_debugger.types.expr import Expr, Structural, is_expr


class Op(str, Enum):
    """Instruction tags, spelled as they appear on the wire."""

    # Payload-bearing
    CONSTANT = "Constant"  # index or inline Expr
    LOOKUP = "Lookup"  # name
    DEFINE = "Define"  # name
    BUILT_IN = "BuiltIn"  # name
    CALL = "Call"  # argc (bare in the oldest engine)
    IF = "If"  # relative offset
    COND_JUMP = "CondJump"  # relative offset
    COND_JUMP_POP = "CondJumpPop"  # relative offset

    # Bare
    RETURN = "Return"
    MAKE_LAMBDA = "MakeLambda"
    POP_STACK = "PopStack"
    APPLY = "Apply"
    DISPLAY = "Display"
    PRINT = "Print"
    ADD = "Add"
    SUBTRACT = "Subtract"
    MULTIPLY = "Multiply"
    DIVIDE = "Divide"
    NEGATE = "Negate"


class OperandKind(Enum):
    NONE = "none"
    NAME = "name"
    COUNT = "count"
    CONSTANT = "constant"


OPERAND_KINDS: dict[Op, OperandKind] = {
    Op.CONSTANT: OperandKind.CONSTANT,
    Op.LOOKUP: OperandKind.NAME,
    Op.DEFINE: OperandKind.NAME,
    Op.BUILT_IN: OperandKind.NAME,
    Op.CALL: OperandKind.COUNT,
    Op.IF: OperandKind.COUNT,
    Op.COND_JUMP: OperandKind.COUNT,
    Op.COND_JUMP_POP: OperandKind.COUNT,
}

# Tags accepted as a plain string with no payload
BARE_OPS = frozenset(op for op in Op if op not in OPERAND_KINDS) | {Op.CALL}

BY_TAG: dict[str, Op] = {op.value: op for op in Op}


def operand_kind(op: Op) -> OperandKind:
    return OPERAND_KINDS.get(op, OperandKind.NONE)


def is_count(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


Operand = Union[None, str, int, Expr]


@dataclass(frozen=True, eq=False)
class Instruction(Structural):
    op: Op
    operand: Operand = None

    def __post_init__(self):
        kind = operand_kind(self.op)
        value = self.operand
        if value is None:
            if self.op not in BARE_OPS:
                raise ValueError(f"{self.op.value} requires an operand")
            return
        if kind is OperandKind.NONE:
            raise ValueError(f"{self.op.value} takes no operand")
        if kind is OperandKind.NAME and not isinstance(value, str):
            raise TypeError(f"{self.op.value} operand must be a name")
        if kind is OperandKind.COUNT and not is_count(value):
            raise TypeError(f"{self.op.value} operand must be a non-negative integer")
        if kind is OperandKind.CONSTANT and not (is_count(value) or is_expr(value)):
            raise TypeError("Constant operand must be an index or a value")

    @property
    def is_bare(self) -> bool:
        return self.operand is None

    @property
    def has_inline_constant(self) -> bool:
        return self.op is Op.CONSTANT and is_expr(self.operand)

    def _structure(self):
        if self.has_inline_constant:
            return "Instruction", (self.op, "inline"), (self.operand,)
        return "Instruction", (self.op, self.operand), ()
