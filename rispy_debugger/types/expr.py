"""Runtime values of the VM as seen in a snapshot.

Every value is exactly one of the classes below (or the ``Nil`` sentinel).
Lists are right-nested ``Pair`` chains ending in ``Nil``; they can be thousands
of cells long, and closures can nest just as deep through their constants.
Equality and hashing here never recurse along either.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Iterator, Optional, Tuple, Union

from rispy_debugger.types.nil import Nil, NilType

if TYPE_CHECKING:
    from rispy_debugger.types.chunk import Chunk
    from rispy_debugger.types.instruction import Instruction


@dataclass(frozen=True)
class Num:
    value: float


@dataclass(frozen=True)
class Boolean:
    value: bool


@dataclass(frozen=True)
class Keyword:
    """An unevaluated identifier."""
    name: str


@dataclass(frozen=True)
class Atom:
    """A bare string with no further structure, used as a symbol."""
    name: str


@dataclass(frozen=True)
class String:
    text: str


class Structural:
    """Equality and hashing by an iterative walk over ``_structure``."""

    def __eq__(self, other):
        return structurally_equal(self, other)

    def __hash__(self):
        return structural_hash(self)


@dataclass(frozen=True, eq=False)
class Quote(Structural):
    expr: Expr

    def _structure(self):
        return "Quote", (), (self.expr,)


@dataclass(frozen=True, eq=False)
class Pair(Structural):
    """A cons cell."""
    car: Expr
    cdr: Expr

    def _structure(self):
        return "Pair", (), (self.car, self.cdr)

    def __repr__(self):
        items, tail = split_list(self)
        shown = ", ".join(repr(x) for x in items[:3])
        more = ", ..." if len(items) > 3 else ""
        return f"Pair([{shown}{more}], tail={tail!r})"

    @classmethod
    def from_items(cls, items: Iterable[Expr], tail: Expr = Nil) -> Expr:
        """Build a right-nested chain; an empty ``items`` returns ``tail``."""
        result = tail
        for item in reversed(list(items)):
            result = cls(item, result)
        return result

    def __iter__(self) -> Iterator[Expr]:
        node: Expr = self
        while isinstance(node, Pair):
            yield node.car
            node = node.cdr


@dataclass(frozen=True, eq=False)
class BuiltIn(Structural):
    """A primitive the engine models as raw code."""
    code: Tuple[Instruction, ...]

    def _structure(self):
        return "BuiltIn", (), self.code


@dataclass(frozen=True, eq=False, repr=False)
class Lambda(Structural):
    """A closure: compiled code, formal parameters and a display label.

    ``variadic`` names the rest parameter, if any. For the chained-environment
    schema ``name`` holds the frame the closure was defined in.
    """
    chunk: Chunk
    params: Tuple[str, ...]
    name: str
    variadic: Optional[str] = None

    def _structure(self):
        return "Lambda", (self.params, self.name, self.variadic), (self.chunk,)

    def __repr__(self):
        return f"Lambda({self.name!r}, params={self.params!r}, code={len(self.chunk.code)})"


@dataclass(frozen=True, eq=False, repr=False)
class LambdaDefinition(Structural):
    """A lambda template that has not been closed over an environment yet."""
    chunk: Chunk
    params: Tuple[str, ...]
    variadic: Optional[str] = None

    def _structure(self):
        return "LambdaDefinition", (self.params, self.variadic), (self.chunk,)

    def __repr__(self):
        return f"LambdaDefinition(params={self.params!r}, code={len(self.chunk.code)})"


Expr = Union[Num, Boolean, Keyword, Atom, String, Quote, Pair, BuiltIn,
             Lambda, LambdaDefinition, NilType]

EXPR_TYPES = (Num, Boolean, Keyword, Atom, String, Quote, Pair, BuiltIn,
              Lambda, LambdaDefinition, NilType)


def is_expr(value: object) -> bool:
    return isinstance(value, EXPR_TYPES)


def split_list(expr: Expr) -> tuple[list[Expr], Expr]:
    """Return the elements of a Pair chain and whatever terminates it."""
    items: list[Expr] = []
    node = expr
    while isinstance(node, Pair):
        items.append(node.car)
        node = node.cdr
    return items, node


def structure_of(node: object) -> Optional[tuple]:
    """``(tag, scalars, children)`` for composite nodes, None for leaves.

    Chunks and instructions take part too, so comparisons can walk through
    lambdas nested in constant pools without recursing.
    """
    parts = getattr(node, "_structure", None)
    return parts() if parts is not None else None


def structurally_equal(a: object, b: object) -> bool:
    pending = [(a, b)]
    while pending:
        x, y = pending.pop()
        if x is y:
            continue
        sx, sy = structure_of(x), structure_of(y)
        if sx is None or sy is None:
            if sx is not None or sy is not None or x != y:
                return False
            continue
        if sx[0] != sy[0] or sx[1] != sy[1] or len(sx[2]) != len(sy[2]):
            return False
        pending.extend(zip(reversed(sx[2]), reversed(sy[2])))
    return True


def structural_hash(expr: object) -> int:
    acc = 0
    pending: list[object] = [expr]
    while pending:
        node = pending.pop()
        parts = structure_of(node)
        if parts is None:
            acc = hash((acc, node))
            continue
        tag, scalars, children = parts
        acc = hash((acc, tag, scalars))
        pending.extend(reversed(children))
    return acc
