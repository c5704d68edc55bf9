"""Immutable VM snapshots and the result wrapper every engine call returns."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, Optional, Tuple, Union

from rispy_debugger.types.chunk import Chunk
from rispy_debugger.types.expr import Expr
from rispy_debugger.types.instruction import Instruction
from rispy_debugger.types.schema import SchemaVersion

# Frame name used for flat (unchained) environments
GLOBAL_FRAME = "global"


@dataclass(frozen=True)
class CallFrame:
    ip: int
    chunk: Chunk
    env: Optional[str] = None

    @property
    def current_instruction(self) -> Instruction | None:
        # ip == len(code) is legal: the frame is about to return
        return self.chunk.instruction_at(self.ip)

    @property
    def at_end(self) -> bool:
        return self.ip >= len(self.chunk.code)


@dataclass(frozen=True)
class EnvFrame:
    bindings: Dict[str, Expr]
    parent: Optional[str] = None


@dataclass(frozen=True)
class Environment:
    """Name lookup table consulted by Lookup.

    A flat environment has one frame, GLOBAL_FRAME. A chained environment
    holds named frames linked to their parents.
    """

    frames: Dict[str, EnvFrame] = field(default_factory=dict)
    chained: bool = False

    @classmethod
    def flat(cls, bindings: Dict[str, Expr] | None = None) -> Environment:
        return cls({GLOBAL_FRAME: EnvFrame(dict(bindings or {}))}, chained=False)

    @property
    def root(self) -> str | None:
        if not self.chained:
            return GLOBAL_FRAME
        for name, frame in self.frames.items():
            if frame.parent is None:
                return name
        return None

    def chain(self, start: str | None = None) -> Iterator[tuple[str, EnvFrame]]:
        """Yield (name, frame) from ``start`` outwards; stops on a missing link or cycle."""
        name = start if start is not None else self.root
        seen: set[str] = set()
        while name is not None and name not in seen and name in self.frames:
            seen.add(name)
            frame = self.frames[name]
            yield name, frame
            name = frame.parent

    def lookup(self, name: str, start: str | None = None) -> Expr | None:
        for _, frame in self.chain(start):
            if name in frame.bindings:
                return frame.bindings[name]
        return None

    def visible(self, start: str | None = None) -> Dict[str, Expr]:
        """All bindings visible from ``start``, inner frames shadowing outer ones."""
        out: Dict[str, Expr] = {}
        for _, frame in self.chain(start):
            for key, value in frame.bindings.items():
                out.setdefault(key, value)
        return out


@dataclass(frozen=True)
class VMSnapshot:
    callframes: Tuple[CallFrame, ...]
    stack: Tuple[Expr, ...]
    environment: Environment
    log: Tuple[str, ...] = ()
    schema: SchemaVersion = SchemaVersion.ENVS

    @property
    def is_terminal(self) -> bool:
        return not self.callframes

    @property
    def current_frame(self) -> CallFrame | None:
        return self.callframes[-1] if self.callframes else None

    def lookup(self, name: str) -> Expr | None:
        frame = self.current_frame
        return self.environment.lookup(name, frame.env if frame else None)


@dataclass(frozen=True)
class Ok:
    snapshot: VMSnapshot


@dataclass(frozen=True)
class Err:
    message: str


ExecutionResult = Union[Ok, Err]
