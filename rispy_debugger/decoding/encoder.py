"""Write typed snapshots back into the wire shape of their schema version.

Used to hand the current snapshot to the engine for ``step``. Containers are
allocated before their children are filled in, so the walk needs no recursion.
"""

from __future__ import annotations

from typing import Any

from rispy_debugger.errors import EncodeError
from rispy_debugger.types.chunk import Chunk
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
    is_expr,
)
from rispy_debugger.types.instruction import Instruction, Op
from rispy_debugger.types.nil import NilType
from rispy_debugger.types.schema import SchemaVersion
from rispy_debugger.types.snapshot import Err, ExecutionResult, Ok, VMSnapshot


def _num(value: float):
    # integral floats go out as ints, the way the engine serializes them
    return int(value) if float(value).is_integer() else value


class _Encoder:
    def __init__(self, schema: SchemaVersion):
        if schema is SchemaVersion.AUTO:
            raise EncodeError("cannot encode for schema AUTO")
        self.schema = schema
        self.located = schema is SchemaVersion.ENVS

    def encode(self, kind: str, value) -> Any:
        holder: list = [None]
        work: list[tuple[str, Any, Any, Any]] = [(kind, value, holder, 0)]
        while work:
            node_kind, node, target, slot = work.pop()
            if node_kind == "expr":
                target[slot] = self._expr(node, work)
            elif node_kind == "instr":
                target[slot] = self._instr(node, work)
            else:
                target[slot] = self._chunk(node, work)
        return holder[0]

    def _with_loc(self, payload):
        return [payload, None] if self.located else payload

    def _expr(self, expr, work):
        if isinstance(expr, NilType):
            return "Nil"
        if isinstance(expr, Atom):
            return expr.name
        if isinstance(expr, Num):
            value = _num(expr.value)
            return {"Num": {"value": value, "srcloc": None} if self.located else value}
        if isinstance(expr, Boolean):
            return {"Boolean": {"value": expr.value, "srcloc": None} if self.located else expr.value}
        if isinstance(expr, Keyword):
            return {"Keyword": self._with_loc(expr.name)}
        if isinstance(expr, String):
            return {"String": self._with_loc(expr.text)}
        if isinstance(expr, Quote):
            if self.located:
                inner: list = [None, None]
                work.append(("expr", expr.expr, inner, 0))
                return {"Quote": inner}
            out: dict = {"Quote": None}
            work.append(("expr", expr.expr, out, "Quote"))
            return out
        if isinstance(expr, Pair):
            cell: list = [None, None, None] if self.located else [None, None]
            work.append(("expr", expr.cdr, cell, 1))
            work.append(("expr", expr.car, cell, 0))
            return {"Pair": cell}
        if isinstance(expr, BuiltIn):
            code: list = [None] * len(expr.code)
            for i, instr in enumerate(expr.code):
                work.append(("instr", instr, code, i))
            return {"BuiltIn": code}
        if isinstance(expr, Lambda):
            if self.located:
                body: list = [None, list(expr.params), expr.variadic, expr.name]
            else:
                if expr.variadic is not None:
                    raise EncodeError("variadic lambdas need the envs schema")
                body = [None, list(expr.params), expr.name]
            work.append(("chunk", expr.chunk, body, 0))
            return {"Lambda": body}
        if isinstance(expr, LambdaDefinition):
            body = [None, list(expr.params)]
            if expr.variadic is not None:
                if not self.located:
                    raise EncodeError("variadic lambdas need the envs schema")
                body.append(expr.variadic)
            work.append(("chunk", expr.chunk, body, 0))
            return {"LambdaDefinition": body}
        raise EncodeError(f"not a value: {expr!r}")

    def _instr(self, instr: Instruction, work):
        if instr.is_bare:
            return instr.op.value
        if instr.op is not Op.CONSTANT:
            return {instr.op.value: instr.operand}
        inline = is_expr(instr.operand)
        if inline != self.schema.inline_constants:
            form = "inline" if inline else "indexed"
            raise EncodeError(f"{form} Constant cannot be written in the {self.schema.value} schema")
        if not inline:
            return {"Constant": instr.operand}
        out: dict = {"Constant": None}
        work.append(("expr", instr.operand, out, "Constant"))
        return out

    def _chunk(self, chunk: Chunk, work):
        code: list = [None] * len(chunk.code)
        out: dict = {"code": code}
        if chunk.constants is not None or not self.schema.inline_constants:
            pool: list = [None] * len(chunk.constants or ())
            out["constants"] = pool
            for i, const in enumerate(chunk.constants or ()):
                work.append(("expr", const, pool, i))
        for i, instr in enumerate(chunk.code):
            work.append(("instr", instr, code, i))
        return out

    def snapshot(self, snapshot: VMSnapshot) -> dict:
        frames = []
        for frame in snapshot.callframes:
            raw = {"ip": frame.ip, "chunk": self.encode("chunk", frame.chunk)}
            if self.located and frame.env is not None:
                raw["env"] = frame.env
            frames.append(raw)
        env = snapshot.environment
        if env.chained:
            if not self.located:
                raise EncodeError("chained environments need the envs schema")
            env_raw = {
                name: {
                    "map": {k: self.encode("expr", v) for k, v in frame.bindings.items()},
                    "parent": frame.parent,
                }
                for name, frame in env.frames.items()
            }
        else:
            env_raw = {k: self.encode("expr", v) for k, v in env.visible().items()}
        out = {
            "callframes": frames,
            "stack": [self.encode("expr", x) for x in snapshot.stack],
            self.schema.env_field: env_raw,
        }
        if self.located:
            out["log"] = list(snapshot.log)
        return out


def encode_snapshot(snapshot: VMSnapshot, schema: SchemaVersion | None = None) -> dict:
    return _Encoder(schema or snapshot.schema).snapshot(snapshot)


def encode_result(result: ExecutionResult) -> dict:
    if isinstance(result, Err):
        return {"Err": result.message}
    if isinstance(result, Ok):
        return {"Ok": encode_snapshot(result.snapshot)}
    raise EncodeError(f"not an execution result: {result!r}")


def encode_expr(expr, schema: SchemaVersion = SchemaVersion.ENVS):
    return _Encoder(schema).encode("expr", expr)
