from __future__ import annotations
from typing import Protocol

from rispy_debugger import RawPayload, RawResult


class Engine(Protocol):
    """The compiler + VM the debugger drives.

    Every call returns a raw ``{"Ok": vm}`` / ``{"Err": message}`` payload;
    ``initialize`` must complete before any other call.
    """

    async def initialize(self) -> None: ...

    async def compile(self, source: str) -> RawResult: ...

    async def step(self, vm: RawPayload) -> RawResult: ...

    async def run(self, source: str) -> RawResult: ...
