"""The step controller: two snapshot slots driven by compile/step/run.

``current`` holds the latest result (Ok or Err); ``previous`` holds the last
known-good snapshot that was current before the most recent transition. A
failed transition never clears ``previous``.

Each action takes a generation number before awaiting the engine. If a newer
action was issued while it waited, its result is dropped on arrival: the most
recent request is the one that lands.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from rispy_debugger import RawResult
from rispy_debugger.decoding.decoder import decode_result
from rispy_debugger.decoding.encoder import encode_snapshot
from rispy_debugger.engine.backend import Engine
from rispy_debugger.errors import ControllerError, DecodeError, EngineInitError, StepUnavailable
from rispy_debugger.types.schema import SchemaVersion
from rispy_debugger.types.snapshot import Err, ExecutionResult, Ok, VMSnapshot

logger = logging.getLogger(__name__)

DECODE_FAILED_MESSAGE = "Decoding failed, see log for details"


class Phase(Enum):
    EMPTY = "empty"
    COMPILED = "compiled"


@dataclass(frozen=True)
class Outcome:
    """What an action did; ``result`` is None when nothing was committed."""

    action: str
    result: Optional[ExecutionResult] = None
    superseded: bool = False
    engine_error: Optional[str] = None

    @property
    def committed(self) -> bool:
        return self.result is not None


class StepController:
    def __init__(self, engine: Engine, schema: SchemaVersion = SchemaVersion.AUTO):
        self.engine = engine
        self.schema = schema
        self.source: str | None = None
        self.previous: VMSnapshot | None = None
        self.current: ExecutionResult | None = None
        # Failures of the engine call itself, kept apart from engine-reported Errs
        self.engine_error: str | None = None
        self.init_error: str | None = None
        self._ready = False
        self._init_task: asyncio.Future | None = None
        self._generation = 0

    # --- state ---
    @property
    def phase(self) -> Phase:
        return Phase.EMPTY if self.current is None else Phase.COMPILED

    @property
    def can_step(self) -> bool:
        return isinstance(self.current, Ok) and not self.current.snapshot.is_terminal

    @property
    def can_run(self) -> bool:
        return self.source is not None

    def display_snapshot(self) -> tuple[VMSnapshot | None, bool]:
        """The snapshot to show and whether it is the stale fallback."""
        if isinstance(self.current, Ok):
            return self.current.snapshot, False
        if isinstance(self.current, Err) and self.previous is not None:
            return self.previous, True
        return None, False

    # --- engine lifecycle ---
    async def start(self) -> bool:
        """Initialize the engine; returns False (and records why) on failure."""
        try:
            await self._ensure_ready()
        except EngineInitError:
            return False
        return True

    async def _ensure_ready(self) -> None:
        if self._ready:
            return
        # one initialization shared by every action that arrives while it runs
        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self.engine.initialize())
        task = self._init_task
        try:
            await asyncio.shield(task)
        except Exception as ex:
            if self._init_task is task:
                self._init_task = None
            self.init_error = f"Engine failed to initialize: {ex}"
            logger.error("%s", self.init_error)
            raise EngineInitError(self.init_error) from ex
        self._ready = True
        self.init_error = None

    # --- actions ---
    async def compile(self, source: str) -> Outcome:
        self.source = source
        return await self._transition("compile", lambda: self.engine.compile(source))

    async def run(self, source: str | None = None) -> Outcome:
        """Recompile from source and execute to completion; always offered once source is known."""
        if source is not None:
            self.source = source
        if self.source is None:
            raise ControllerError("nothing to run: no source has been given")
        src = self.source
        return await self._transition("run", lambda: self.engine.run(src))

    async def step(self) -> Outcome:
        if not isinstance(self.current, Ok):
            raise StepUnavailable("no snapshot to step")
        snapshot = self.current.snapshot
        if snapshot.is_terminal:
            raise StepUnavailable("program has terminated")
        payload = encode_snapshot(snapshot)
        return await self._transition("step", lambda: self.engine.step(payload))

    async def _transition(self, action: str, call: Callable[[], Awaitable[RawResult]]) -> Outcome:
        self._generation += 1
        token = self._generation
        known_good = self.current.snapshot if isinstance(self.current, Ok) else None

        try:
            await self._ensure_ready()
            raw = await call()
        except EngineInitError as ex:
            return self._engine_failure(action, token, str(ex))
        except Exception as ex:
            logger.error("engine %s failed: %s", action, ex)
            return self._engine_failure(action, token, f"{action} failed: {ex}")

        if token != self._generation:
            logger.debug("dropping %s result, superseded by a newer action", action)
            return Outcome(action, superseded=True)

        try:
            result = decode_result(raw, self.schema)
        except DecodeError as ex:
            logger.error("could not decode %s result (%s)", action, ex)
            result = Err(DECODE_FAILED_MESSAGE)

        if known_good is not None:
            self.previous = known_good
        self.current = result
        self.engine_error = None
        if isinstance(result, Err):
            logger.info("%s returned an error: %s", action, result.message)
        else:
            logger.debug("%s committed snapshot with %d call frames",
                         action, len(result.snapshot.callframes))
        return Outcome(action, result)

    def _engine_failure(self, action: str, token: int, message: str) -> Outcome:
        if token != self._generation:
            logger.debug("dropping %s failure, superseded by a newer action", action)
            return Outcome(action, superseded=True)
        self.engine_error = message
        return Outcome(action, engine_error=message)
