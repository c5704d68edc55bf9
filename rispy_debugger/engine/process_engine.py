"""Engine adapter for an external engine process.

Protocol: JSON per line over the process' stdin/stdout.
- Request:  {"cmd": "compile", "source": "(+ 1 2)"}
            {"cmd": "step", "vm": {...}}
            {"cmd": "run", "source": "(+ 1 2)"}
- Response: one line holding {"Ok": {...}} or {"Err": "message"}

Requests are written and answered strictly one at a time.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Sequence

from rispy_debugger import RawPayload, RawResult
from rispy_debugger.config import get_engine_command
from rispy_debugger.errors import EngineError, EngineInitError

logger = logging.getLogger(__name__)

# Responses carry whole snapshots; lift asyncio's 64 KiB line limit
STREAM_LIMIT = 16 * 1024 * 1024


class ProcessEngine:
    def __init__(self, command: Sequence[str] | None = None, *, limit: int = STREAM_LIMIT):
        self.command = list(command) if command else get_engine_command()
        self.limit = limit
        self.process: asyncio.subprocess.Process | None = None
        self._io_lock: asyncio.Lock | None = None

    async def initialize(self) -> None:
        if self.process is not None and self.process.returncode is None:
            return
        if not self.command:
            raise EngineInitError("no engine command configured (set RISPY_ENGINE_CMD)")
        logger.info("starting engine: %s", " ".join(self.command))
        try:
            self.process = await asyncio.create_subprocess_exec(
                *self.command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                limit=self.limit,
            )
        except OSError as ex:
            raise EngineInitError(f"could not start engine {self.command[0]!r}: {ex}") from ex
        self._io_lock = asyncio.Lock()

    async def compile(self, source: str) -> RawResult:
        return await self._request({"cmd": "compile", "source": source})

    async def step(self, vm: RawPayload) -> RawResult:
        return await self._request({"cmd": "step", "vm": vm})

    async def run(self, source: str) -> RawResult:
        return await self._request({"cmd": "run", "source": source})

    async def _request(self, req: dict) -> RawResult:
        proc = self.process
        if proc is None or self._io_lock is None:
            raise EngineError("engine used before initialize()")
        async with self._io_lock:
            if proc.returncode is not None:
                raise EngineError(f"engine exited with status {proc.returncode}")
            try:
                proc.stdin.write((json.dumps(req) + "\n").encode("utf-8"))
                await proc.stdin.drain()
                line = await proc.stdout.readline()
            except (ConnectionError, ValueError, asyncio.LimitOverrunError) as ex:
                raise EngineError(f"engine pipe failed during {req['cmd']}: {ex}") from ex
        if not line:
            raise EngineError(f"engine closed its output during {req['cmd']}")
        try:
            return json.loads(line.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as ex:
            raise EngineError(f"engine sent a non-JSON line: {ex}") from ex

    async def close(self) -> None:
        proc = self.process
        if proc is None:
            return
        self.process = None
        if proc.returncode is None:
            proc.stdin.close()
            try:
                await asyncio.wait_for(proc.wait(), timeout=2)
            except asyncio.TimeoutError:
                logger.warning("engine did not exit, killing it")
                proc.kill()
                await proc.wait()
