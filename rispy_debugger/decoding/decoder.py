"""Validate raw engine payloads and turn them into typed snapshots.

The traversal is driven by an explicit work list instead of recursion: a node
is *visited* (shape checked, leaf values produced immediately), and composite
nodes schedule a *build* step that runs once all of their children have been
produced. Children are popped in order, so the value stack always holds them
left to right. Arbitrarily long Pair chains therefore never touch the
interpreter's recursion limit.

Nothing here guesses: a tagged object must have exactly one key, the key must
name a known variant, and the payload must have that variant's shape for the
schema version being decoded. The first mismatch aborts the whole decode.
"""

from __future__ import annotations

import functools
import json
import logging
from typing import Any, Callable

from rispy_debugger import RawPayload
from rispy_debugger.errors import DecodeError
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
)
from rispy_debugger.types.instruction import (
    BARE_OPS,
    BY_TAG,
    Instruction,
    Op,
    OperandKind,
    is_count,
    operand_kind,
)
from rispy_debugger.types.nil import Nil
from rispy_debugger.types.schema import SchemaVersion
from rispy_debugger.types.snapshot import (
    CallFrame,
    EnvFrame,
    Environment,
    Err,
    ExecutionResult,
    Ok,
    VMSnapshot,
)

logger = logging.getLogger(__name__)

EXPR_TAGS = frozenset(
    {"Num", "Boolean", "Keyword", "String", "Quote", "Pair", "BuiltIn",
     "Lambda", "LambdaDefinition"}
)
NIL_TOKEN = "Nil"
PAYLOAD_TAGS = frozenset(op.value for op in Op if operand_kind(op) is not OperandKind.NONE)

_VISIT = "visit"
_BUILD = "build"

Builder = Callable[[list], Any]


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_optional_str(value: object) -> bool:
    return value is None or isinstance(value, str)


def _sole_key(raw: dict, path: str, allowed: frozenset | set, what: str) -> str:
    if len(raw) != 1:
        raise DecodeError(path, f"{what} with exactly one tag", raw)
    (key,) = raw
    if key not in allowed:
        raise DecodeError(path, f"{what} tag (one of {', '.join(sorted(allowed))})", raw)
    return key


def _names(raw: object, path: str) -> tuple[str, ...]:
    if not isinstance(raw, list) or not all(isinstance(x, str) for x in raw):
        raise DecodeError(path, "array of parameter names", raw)
    return tuple(raw)


def _expect_list(raw: object, path: str, what: str) -> list:
    if not isinstance(raw, list):
        raise DecodeError(path, what, raw)
    return raw


def _expect_object(raw: object, path: str, what: str) -> dict:
    if not isinstance(raw, dict):
        raise DecodeError(path, what, raw)
    return raw


class _Decoder:
    def __init__(self, schema: SchemaVersion):
        if schema is SchemaVersion.AUTO:
            raise ValueError("decoder needs a concrete schema version")
        self.schema = schema
        self.located = schema is SchemaVersion.ENVS
        self._visitors: dict[str, Callable[..., None]] = {
            "expr": self._visit_expr,
            "instr": self._visit_instr,
            "chunk": self._visit_chunk,
            "frame": self._visit_frame,
            "snapshot": self._visit_snapshot,
        }

    def decode(self, kind: str, raw: RawPayload, path: str):
        work: list[tuple] = [(_VISIT, kind, raw, path)]
        values: list = []
        while work:
            task = work.pop()
            if task[0] is _BUILD:
                _, build, count = task
                args = values[len(values) - count:]
                del values[len(values) - count:]
                values.append(build(args))
            else:
                _, node_kind, node, node_path = task
                self._visitors[node_kind](node, node_path, work, values)
        return values[0]

    @staticmethod
    def _defer(work: list, build: Builder, children: list[tuple[str, Any, str]]) -> None:
        work.append((_BUILD, build, len(children)))
        for kind, raw, path in reversed(children):
            work.append((_VISIT, kind, raw, path))

    # --- values ---
    def _visit_expr(self, raw, path, work, values):
        if isinstance(raw, str):
            values.append(Nil if raw == NIL_TOKEN else Atom(raw))
            return
        if not isinstance(raw, dict):
            raise DecodeError(path, "value (string or single-key object)", raw)
        tag = _sole_key(raw, path, EXPR_TAGS, "value")
        payload = raw[tag]
        at = f"{path}.{tag}"

        if tag == "Num":
            number = self._scalar(payload, at, _is_number, "number")
            try:
                values.append(Num(float(number)))
            except OverflowError:
                raise DecodeError(at, "number within float range", payload) from None
        elif tag == "Boolean":
            values.append(Boolean(self._scalar(payload, at, lambda v: isinstance(v, bool), "boolean")))
        elif tag == "Keyword":
            values.append(Keyword(self._located(payload, at, "keyword name")))
        elif tag == "String":
            values.append(String(self._located(payload, at, "string")))
        elif tag == "Quote":
            if isinstance(payload, list):
                if not self.located or len(payload) != 2:
                    raise DecodeError(at, "quoted value", payload)
                payload = payload[0]
                at = f"{at}[0]"
            self._defer(work, lambda a: Quote(a[0]), [("expr", payload, at)])
        elif tag == "Pair":
            sizes = (2, 3) if self.located else (2,)
            if not isinstance(payload, list) or len(payload) not in sizes:
                raise DecodeError(at, "[car, cdr]", payload)
            self._defer(work, lambda a: Pair(a[0], a[1]),
                        [("expr", payload[0], f"{at}[0]"), ("expr", payload[1], f"{at}[1]")])
        elif tag == "BuiltIn":
            code = _expect_list(payload, at, "array of instructions")
            self._defer(work, lambda a: BuiltIn(tuple(a)),
                        [("instr", x, f"{at}[{i}]") for i, x in enumerate(code)])
        elif tag == "Lambda":
            self._lambda(payload, at, work)
        else:
            self._lambda_definition(payload, at, work)

    def _scalar(self, payload, path, check, what):
        if check(payload):
            return payload
        # newer engine: {"value": ..., "srcloc": ...}
        if (self.located and isinstance(payload, dict) and "value" in payload
                and set(payload) <= {"value", "srcloc"} and check(payload["value"])):
            return payload["value"]
        raise DecodeError(path, what, payload)

    def _located(self, payload, path, what) -> str:
        if isinstance(payload, str):
            return payload
        # newer engine: [text, srcloc]
        if (self.located and isinstance(payload, list) and len(payload) == 2
                and isinstance(payload[0], str)):
            return payload[0]
        raise DecodeError(path, what, payload)

    def _lambda(self, payload, path, work):
        sizes = (3, 4) if self.located else (3,)
        if not isinstance(payload, list) or len(payload) not in sizes:
            raise DecodeError(path, "[chunk, params, name]", payload)
        params = _names(payload[1], f"{path}[1]")
        if len(payload) == 3:
            variadic, name = None, payload[2]
            name_path = f"{path}[2]"
        else:
            variadic, name = payload[2], payload[3]
            name_path = f"{path}[3]"
            if not _is_optional_str(variadic):
                raise DecodeError(f"{path}[2]", "variadic name or null", variadic)
        if not isinstance(name, str):
            raise DecodeError(name_path, "lambda name", name)
        self._defer(work, lambda a: Lambda(a[0], params, name, variadic),
                    [("chunk", payload[0], f"{path}[0]")])

    def _lambda_definition(self, payload, path, work):
        sizes = (2, 3) if self.located else (2,)
        if not isinstance(payload, list) or len(payload) not in sizes:
            raise DecodeError(path, "[chunk, params]", payload)
        params = _names(payload[1], f"{path}[1]")
        variadic = payload[2] if len(payload) == 3 else None
        if not _is_optional_str(variadic):
            raise DecodeError(f"{path}[2]", "variadic name or null", variadic)
        self._defer(work, lambda a: LambdaDefinition(a[0], params, variadic),
                    [("chunk", payload[0], f"{path}[0]")])

    # --- code ---
    def _visit_instr(self, raw, path, work, values):
        if isinstance(raw, str):
            op = BY_TAG.get(raw)
            if op is None or op not in BARE_OPS:
                raise DecodeError(path, "bare instruction tag", raw)
            values.append(Instruction(op))
            return
        if not isinstance(raw, dict):
            raise DecodeError(path, "instruction (string or single-key object)", raw)
        op = BY_TAG[_sole_key(raw, path, PAYLOAD_TAGS, "instruction")]
        payload = raw[op.value]
        at = f"{path}.{op.value}"
        kind = operand_kind(op)

        if kind is OperandKind.NAME:
            if not isinstance(payload, str):
                raise DecodeError(at, "name", payload)
            values.append(Instruction(op, payload))
        elif kind is OperandKind.COUNT:
            if not is_count(payload):
                raise DecodeError(at, "non-negative integer", payload)
            values.append(Instruction(op, payload))
        elif self.schema.inline_constants:
            self._defer(work, lambda a: Instruction(Op.CONSTANT, a[0]), [("expr", payload, at)])
        else:
            if not is_count(payload):
                raise DecodeError(at, "constant pool index", payload)
            values.append(Instruction(op, payload))

    def _visit_chunk(self, raw, path, work, values):
        raw = _expect_object(raw, path, "chunk object")
        if "code" not in raw:
            raise DecodeError(path, "chunk with 'code'", raw)
        code = _expect_list(raw["code"], f"{path}.code", "array of instructions")
        constants = raw.get("constants")
        if constants is None:
            if not self.schema.inline_constants:
                raise DecodeError(f"{path}.constants", "array of constants", constants)
        else:
            _expect_list(constants, f"{path}.constants", "array of constants")
        n_code = len(code)
        children = [("instr", x, f"{path}.code[{i}]") for i, x in enumerate(code)]
        if constants is not None:
            children += [("expr", x, f"{path}.constants[{i}]") for i, x in enumerate(constants)]

        def build(a):
            pool = tuple(a[n_code:]) if constants is not None else None
            return Chunk(tuple(a[:n_code]), pool)

        self._defer(work, build, children)

    # --- VM ---
    def _visit_frame(self, raw, path, work, values):
        raw = _expect_object(raw, path, "call frame object")
        ip = raw.get("ip")
        if not is_count(ip):
            raise DecodeError(f"{path}.ip", "non-negative integer", ip)
        env = None
        if self.located:
            env = raw.get("env")
            if not _is_optional_str(env):
                raise DecodeError(f"{path}.env", "environment name or null", env)
        if "chunk" not in raw:
            raise DecodeError(path, "call frame with 'chunk'", raw)
        self._defer(work, lambda a: CallFrame(ip, a[0], env),
                    [("chunk", raw["chunk"], f"{path}.chunk")])

    def _visit_snapshot(self, raw, path, work, values):
        raw = _expect_object(raw, path, "VM object")
        field_name = self.schema.env_field
        for key in ("callframes", "stack", field_name):
            if key not in raw:
                raise DecodeError(path, f"VM with '{key}'", raw)
        frames = _expect_list(raw["callframes"], f"{path}.callframes", "array of call frames")
        stack = _expect_list(raw["stack"], f"{path}.stack", "array of values")
        env_raw = _expect_object(raw[field_name], f"{path}.{field_name}", "environment object")
        env_path = f"{path}.{field_name}"

        log: tuple[str, ...] = ()
        if self.located and raw.get("log") is not None:
            entries = _expect_list(raw["log"], f"{path}.log", "array of log lines")
            for i, line in enumerate(entries):
                if not isinstance(line, str):
                    raise DecodeError(f"{path}.log[{i}]", "string", line)
            log = tuple(entries)

        children = [("frame", x, f"{path}.callframes[{i}]") for i, x in enumerate(frames)]
        children += [("expr", x, f"{path}.stack[{i}]") for i, x in enumerate(stack)]

        # (frame name, parent, binding names) in the order their values follow
        layout: list[tuple[str | None, str | None, list[str]]] = []
        chained = self.located and self._is_chained(env_raw, env_path)
        if chained:
            for frame_name, frame in env_raw.items():
                at = f"{env_path}[{frame_name!r}]"
                parent = frame.get("parent")
                if not _is_optional_str(parent):
                    raise DecodeError(f"{at}.parent", "frame name or null", parent)
                bindings = _expect_object(frame["map"], f"{at}.map", "bindings object")
                layout.append((frame_name, parent, list(bindings)))
                children += [("expr", v, f"{at}.map[{k!r}]") for k, v in bindings.items()]
        else:
            layout.append((None, None, list(env_raw)))
            children += [("expr", v, f"{env_path}[{k!r}]") for k, v in env_raw.items()]

        n_frames, n_stack = len(frames), len(stack)
        schema = self.schema

        def build(a):
            rest = a[n_frames + n_stack:]
            env_frames: dict[str, EnvFrame] = {}
            flat: dict = {}
            for frame_name, parent, keys in layout:
                bindings = dict(zip(keys, rest[:len(keys)]))
                rest = rest[len(keys):]
                if frame_name is None:
                    flat = bindings
                else:
                    env_frames[frame_name] = EnvFrame(bindings, parent)
            environment = Environment(env_frames, chained=True) if chained else Environment.flat(flat)
            return VMSnapshot(
                callframes=tuple(a[:n_frames]),
                stack=tuple(a[n_frames:n_frames + n_stack]),
                environment=environment,
                log=log,
                schema=schema,
            )

        self._defer(work, build, children)

    @staticmethod
    def _is_chained(env_raw: dict, path: str) -> bool:
        def is_frame(v):
            return isinstance(v, dict) and "map" in v and set(v) <= {"map", "parent"}

        kinds = {is_frame(v) for v in env_raw.values()}
        if len(kinds) > 1:
            raise DecodeError(path, "either all environment frames or all bindings", env_raw)
        return kinds == {True}


def resolve_schema(raw_vm: RawPayload, schema: SchemaVersion, path: str = "$") -> SchemaVersion:
    """Pick the concrete schema of a VM payload when ``schema`` is AUTO."""
    if schema is not SchemaVersion.AUTO:
        return schema
    if not isinstance(raw_vm, dict):
        raise DecodeError(path, "VM object", raw_vm)
    has_globals = SchemaVersion.GLOBALS.env_field in raw_vm
    has_envs = SchemaVersion.ENVS.env_field in raw_vm
    if has_globals == has_envs:
        raise DecodeError(path, "VM with exactly one of 'globals' or 'envs'", raw_vm)
    return SchemaVersion.GLOBALS if has_globals else SchemaVersion.ENVS


def _logged(fn):
    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except DecodeError as ex:
            logger.warning(
                "decoding failed at %s: expected %s, found %s", ex.path, ex.expected, ex.actual
            )
            raise
    return wrapper


@_logged
def decode_snapshot(raw: RawPayload, schema: SchemaVersion = SchemaVersion.AUTO,
                    path: str = "$") -> VMSnapshot:
    """Decode a bare VM payload (the value under ``Ok``)."""
    concrete = resolve_schema(raw, schema, path)
    return _Decoder(concrete).decode("snapshot", raw, path)


@_logged
def decode_result(raw: RawPayload, schema: SchemaVersion = SchemaVersion.AUTO) -> ExecutionResult:
    """Decode an engine result, ``{"Ok": vm}`` or ``{"Err": message}``.

    Raises DecodeError on any structural mismatch; a well-formed ``Err`` is
    returned, not raised.
    """
    raw = _expect_object(raw, "$", "result object")
    tag = _sole_key(raw, "$", {"Ok", "Err"}, "result")
    if tag == "Err":
        message = raw["Err"]
        if not isinstance(message, str):
            raise DecodeError("$.Err", "error message string", message)
        return Err(message)
    concrete = resolve_schema(raw["Ok"], schema, "$.Ok")
    return Ok(_Decoder(concrete).decode("snapshot", raw["Ok"], "$.Ok"))


def decode_json(text: str | bytes, schema: SchemaVersion = SchemaVersion.AUTO) -> ExecutionResult:
    try:
        raw = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as ex:
        logger.warning("decoding failed at $: payload is not JSON (%s)", ex)
        raise DecodeError("$", "JSON text", text) from ex
    return decode_result(raw, schema)


def decode_expr(raw: RawPayload, schema: SchemaVersion = SchemaVersion.ENVS, path: str = "$"):
    return _Decoder(schema).decode("expr", raw, path)


def decode_instruction(raw: RawPayload, schema: SchemaVersion = SchemaVersion.ENVS,
                       path: str = "$") -> Instruction:
    return _Decoder(schema).decode("instr", raw, path)
