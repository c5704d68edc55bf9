"""Display text for instructions and values.

Both entry points are total: anything they do not recognise renders as
FALLBACK instead of raising.
"""

from __future__ import annotations

import math

from rispy_debugger.types.expr import (
    Atom,
    Boolean,
    BuiltIn,
    Keyword,
    Lambda,
    LambdaDefinition,
    Num,
    Pair,
    Quote,
    String,
    split_list,
)
from rispy_debugger.types.instruction import Instruction
from rispy_debugger.types.nil import NilType

FALLBACK = "unknown"
EMPTY_LIST = "'()"


def format_number(value: float) -> str:
    if math.isfinite(value) and float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def _params(params, variadic) -> str:
    names = list(params)
    if variadic is not None:
        names += [".", variadic]
    return " ".join(names)


def _format_leaf(expr) -> str:
    if isinstance(expr, NilType):
        return EMPTY_LIST
    if isinstance(expr, Num):
        return format_number(expr.value)
    if isinstance(expr, Boolean):
        return "true" if expr.value else "false"
    if isinstance(expr, (Keyword, Atom)):
        return expr.name
    if isinstance(expr, String):
        return expr.text
    if isinstance(expr, Lambda):
        return f"Lambda({expr.name})"
    if isinstance(expr, LambdaDefinition):
        return f"LambdaDefinition({_params(expr.params, expr.variadic)})"
    if isinstance(expr, BuiltIn):
        return "fn"
    return FALLBACK


def format_expr(expr, show_outer_parens: bool = True) -> str:
    """Render a value as Lisp text.

    Pair chains print as ``(a b c)``; a chain ending in something other than
    Nil prints its last cdr after `` . ``. The cells after the first belong to
    the same list and never get parentheses of their own, while a list sitting
    in element position keeps them. ``show_outer_parens=False`` drops the
    outermost pair of parentheses.
    """
    out: list[str] = []
    # items are either literal text or (value, parens) still to be rendered
    work: list = [(expr, show_outer_parens)]
    while work:
        item = work.pop()
        if isinstance(item, str):
            out.append(item)
            continue
        node, parens = item
        if isinstance(node, Pair):
            items, tail = split_list(node)
            parts: list = ["("] if parens else []
            for i, element in enumerate(items):
                if i:
                    parts.append(" ")
                parts.append((element, True))
            if not isinstance(tail, NilType):
                parts.append(" . ")
                parts.append((tail, True))
            if parens:
                parts.append(")")
            work.extend(reversed(parts))
        elif isinstance(node, Quote):
            work.append((node.expr, True))
            work.append("'")
        else:
            out.append(_format_leaf(node))
    return "".join(out)


def format_instruction(instr) -> str:
    if not isinstance(instr, Instruction):
        return FALLBACK
    if instr.is_bare:
        return instr.op.value
    if instr.has_inline_constant:
        payload = format_expr(instr.operand)
    else:
        payload = str(instr.operand)
    return f"{instr.op.value}({payload})"
