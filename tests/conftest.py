import re
from dataclasses import replace

import pytest

from rispy_debugger.decoding.decoder import decode_snapshot
from rispy_debugger.decoding.encoder import encode_snapshot
from rispy_debugger.types import CallFrame, Chunk, Instruction, Keyword, Num, Op, SchemaVersion, VMSnapshot
from rispy_debugger.types.snapshot import Environment

# Most decoder tests run twice, once per wire schema:
# 1) the older engine's dialect ["globals"]: indexed constants, mandatory pool
# 2) the newer engine's dialect ["envs"]: inline constants, optional pool
# Payloads are built through WireBuilder so each test body is written once.


class WireBuilder:
    """Builds raw engine payloads in one schema's dialect."""

    def __init__(self, schema: SchemaVersion):
        self.schema = schema
        self.env_field = schema.env_field

    # values (compact form, valid in both dialects)
    @staticmethod
    def num(n):
        return {"Num": n}

    @staticmethod
    def boolean(b):
        return {"Boolean": b}

    @staticmethod
    def kw(name):
        return {"Keyword": name}

    @staticmethod
    def pair(a, b):
        return {"Pair": [a, b]}

    def lst(self, *items, tail="Nil"):
        out = tail
        for item in reversed(items):
            out = self.pair(item, out)
        return out

    # instructions
    def const(self, value, index):
        return {"Constant": index if self.schema is SchemaVersion.GLOBALS else value}

    @staticmethod
    def call(argc):
        return {"Call": argc}

    @staticmethod
    def lookup(name):
        return {"Lookup": name}

    @staticmethod
    def define(name):
        return {"Define": name}

    # records
    def chunk(self, code, constants=()):
        out = {"code": list(code)}
        if self.schema is SchemaVersion.GLOBALS or constants:
            out["constants"] = list(constants)
        return out

    @staticmethod
    def frame(ip, chunk):
        return {"ip": ip, "chunk": chunk}

    def lam(self, chunk, params, name):
        return {"Lambda": [chunk, list(params), name]}

    def vm(self, callframes=(), stack=(), env=None):
        return {"callframes": list(callframes), "stack": list(stack), self.env_field: dict(env or {})}

    @staticmethod
    def ok(vm):
        return {"Ok": vm}

    def add_program(self):
        """(+ 1 2) compiled: push +, 1, 2 then call with two arguments."""
        code = [
            self.const(self.kw("+"), 0),
            self.const(self.num(1), 1),
            self.const(self.num(2), 2),
            self.call(2),
        ]
        return self.chunk(code, [self.kw("+"), self.num(1), self.num(2)])


@pytest.fixture(params=["globals", "envs"])
def wire(request):
    return WireBuilder(SchemaVersion(request.param))


@pytest.fixture
def envs_wire():
    return WireBuilder(SchemaVersion.ENVS)


@pytest.fixture
def globals_wire():
    return WireBuilder(SchemaVersion.GLOBALS)


# ----------------- Engines used by the controller tests -----------------

class ScriptedEngine:
    """Returns canned payloads in order; an exception in the script is raised instead."""

    def __init__(self, *responses, init_error=None):
        self.responses = list(responses)
        self.init_error = init_error
        self.init_calls = 0
        self.calls = []

    async def initialize(self):
        self.init_calls += 1
        if self.init_error is not None:
            raise self.init_error

    async def _next(self, call):
        self.calls.append(call)
        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    async def compile(self, source):
        return await self._next(("compile", source))

    async def step(self, vm):
        return await self._next(("step", vm))

    async def run(self, source):
        return await self._next(("run", source))


_ADD = re.compile(r"^\(\+((?:\s+-?\d+(?:\.\d+)?)*)\s*\)$")


class AddingEngine:
    """A tiny engine that understands only (+ n ...), in the envs dialect."""

    def __init__(self):
        self.initialized = False

    async def initialize(self):
        self.initialized = True

    def _compile(self, source):
        m = _ADD.match(source.strip())
        if not m:
            return None
        nums = [Num(float(x)) for x in m.group(1).split()]
        code = [Instruction(Op.CONSTANT, Keyword("+"))]
        code += [Instruction(Op.CONSTANT, n) for n in nums]
        code.append(Instruction(Op.CALL, len(nums)))
        return VMSnapshot((CallFrame(0, Chunk(tuple(code))),), (), Environment.flat())

    @staticmethod
    def _advance(snap):
        frame = snap.callframes[-1]
        instr = frame.current_instruction
        stack = list(snap.stack)
        if instr.op is Op.CONSTANT:
            stack.append(instr.operand)
        elif instr.op is Op.CALL:
            n = instr.operand
            args, fn = stack[len(stack) - n:], stack[len(stack) - n - 1]
            del stack[len(stack) - n - 1:]
            if fn != Keyword("+"):
                return None
            stack.append(Num(sum(a.value for a in args)))
        frames = list(snap.callframes)
        frames[-1] = CallFrame(frame.ip + 1, frame.chunk, frame.env)
        if frames[-1].at_end:
            frames.pop()
        return replace(snap, callframes=tuple(frames), stack=tuple(stack))

    async def compile(self, source):
        snap = self._compile(source)
        if snap is None:
            return {"Err": "parse error"}
        return {"Ok": encode_snapshot(snap)}

    async def step(self, vm):
        snap = self._advance(decode_snapshot(vm, SchemaVersion.ENVS))
        if snap is None:
            return {"Err": "not callable"}
        return {"Ok": encode_snapshot(snap)}

    async def run(self, source):
        snap = self._compile(source)
        if snap is None:
            return {"Err": "parse error"}
        while not snap.is_terminal:
            snap = self._advance(snap)
        return {"Ok": encode_snapshot(snap)}


@pytest.fixture
def adding_engine():
    return AddingEngine()


@pytest.fixture
def scripted():
    return ScriptedEngine
