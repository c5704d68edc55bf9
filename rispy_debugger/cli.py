"""Interactive terminal front end.

    python -m rispy_debugger --engine "my-engine --json" program.lisp

Commands at the prompt: step (s), run (r), compile (c), load FILE, source TEXT,
disasm (d), view (v), help (h), quit (q).
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from rispy_debugger import config
from rispy_debugger.controller import StepController
from rispy_debugger.engine.process_engine import ProcessEngine
from rispy_debugger.errors import ConfigError, ControllerError
from rispy_debugger.formatting.disasm import disassemble_frame
from rispy_debugger.formatting.pprint import load_options_from_json, plain_options, render_view
from rispy_debugger.formatting.views import build_view
from rispy_debugger.logging_setup import configure_logging
from rispy_debugger.types.schema import SchemaVersion

logger = logging.getLogger(__name__)

HELP = """\
step (s)          execute one instruction
run (r)           recompile the source and run to completion
compile (c)       recompile the source
load FILE         read source from FILE and compile it
source TEXT       use TEXT as the source and compile it
disasm (d)        disassemble the call frames on display
view (v)          show the current state again
quit (q)          leave"""


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="rispy-debugger", description="Step through rispy VM snapshots.")
    p.add_argument("file", nargs="?", help="source file to compile on start")
    p.add_argument("--engine", help="engine command line (default: $RISPY_ENGINE_CMD)")
    p.add_argument("--schema", choices=[s.value for s in SchemaVersion],
                   help="wire schema of the engine (default: $RISPY_SCHEMA or auto)")
    p.add_argument("--run", action="store_true", help="run the file to completion, print, and exit")
    p.add_argument("--no-color", action="store_true", help="disable ANSI colors")
    p.add_argument("-v", "--verbose", action="store_true", help="log debug output")
    return p


class Session:
    def __init__(self, controller: StepController, options: dict, out=None):
        self.controller = controller
        self.options = options
        self.out = out or sys.stdout

    def show(self) -> None:
        print(render_view(build_view(self.controller), self.options), file=self.out)

    def disasm(self) -> None:
        snapshot, _ = self.controller.display_snapshot()
        if snapshot is None or snapshot.is_terminal:
            print("(no call frames)", file=self.out)
            return
        for frame in reversed(snapshot.callframes):
            print(disassemble_frame(frame), file=self.out)

    async def execute(self, line: str) -> bool:
        """Run one command line; returns False when the session should end."""
        cmd, _, arg = line.strip().partition(" ")
        arg = arg.strip()
        if cmd in ("q", "quit", "exit"):
            return False
        try:
            if cmd in ("s", "step"):
                if not self.controller.can_step:
                    print("step is not available", file=self.out)
                    return True
                await self.controller.step()
            elif cmd in ("r", "run"):
                await self.controller.run()
            elif cmd in ("c", "compile"):
                if self.controller.source is None:
                    print("no source loaded", file=self.out)
                    return True
                await self.controller.compile(self.controller.source)
            elif cmd == "load":
                await self.controller.compile(Path(arg).read_text(encoding="utf-8"))
            elif cmd == "source":
                await self.controller.compile(arg)
            elif cmd in ("d", "disasm"):
                self.disasm()
                return True
            elif cmd in ("h", "help", "?"):
                print(HELP, file=self.out)
                return True
            elif cmd in ("v", "view", ""):
                pass
            else:
                print(f"unknown command {cmd!r}, try help", file=self.out)
                return True
        except (ControllerError, OSError, UnicodeDecodeError) as ex:
            print(f"error: {ex}", file=self.out)
            return True
        self.show()
        return True


async def _repl(session: Session) -> None:
    while True:
        try:
            line = await asyncio.to_thread(input, "rispy> ")
        except EOFError:
            break
        if not await session.execute(line):
            break


async def _main(args: argparse.Namespace) -> int:
    command = config.split_command(args.engine) if args.engine else None
    engine = ProcessEngine(command)
    schema = SchemaVersion.from_name(args.schema or config.get_schema_name())
    controller = StepController(engine, schema)
    options = plain_options() if args.no_color else load_options_from_json(config.get_print_options_json())
    session = Session(controller, options)
    try:
        if not await controller.start():
            print(controller.init_error, file=sys.stderr)
            return 2
        if args.file:
            source = Path(args.file).read_text(encoding="utf-8")
            if args.run:
                await controller.run(source)
                session.show()
                return 0
            await controller.compile(source)
            session.show()
        await _repl(session)
    finally:
        await engine.close()
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        level = logging.DEBUG if args.verbose else config.get_log_level()
    except ConfigError as ex:
        print(ex, file=sys.stderr)
        return 2
    configure_logging(level, colour=not args.no_color)
    try:
        return asyncio.run(_main(args))
    except ConfigError as ex:
        logger.error("%s", ex)
        return 2
    except KeyboardInterrupt:
        return 130
