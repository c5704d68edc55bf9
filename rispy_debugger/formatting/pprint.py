import json
import logging
from typing import Optional

from .views import CallFrameView, DebuggerView, SnapshotView

logger = logging.getLogger(__name__)

# ----------------- ANSI colors -----------------
RESET = "\033[0m"
COLOR_HEADING = "\033[1m"
COLOR_ACTIVE = "\033[92m"
COLOR_DIMMED = "\033[90m"
COLOR_STACK = "\033[94m"
COLOR_ERROR = "\033[91m"
COLOR_FALLBACK = "\033[93m"
COLOR_CONSOLE = "\033[96m"

# ----------------- Defaults -----------------
DEFAULT_OPTIONS = {
    "max_line_length": 80,
    "display_legend": False,
    "show_environment": True,
    "show_console": True,
    "color_active": True,
    "color_dimmed": True,
    "color_stack": True,
    "color_errors": True,
}


# ----------------- Colorize utility -----------------
def colorize(text: str, color: str, flag: str, options: dict = DEFAULT_OPTIONS) -> str:
    if options.get(flag, True):
        return f"{color}{text}{RESET}"
    return text


def _legend(options: dict) -> str:
    items = [
        colorize("active instruction", COLOR_ACTIVE, "color_active", options),
        colorize("outer frame", COLOR_DIMMED, "color_dimmed", options),
        colorize("stack value", COLOR_STACK, "color_stack", options),
        colorize("error", COLOR_ERROR, "color_errors", options),
    ]
    return "Color Key: " + " | ".join(items)


def _wrap(parts: list[str], widths: list[int], indent: str, limit: int) -> list[str]:
    """Lay out instruction cells across lines no wider than ``limit``."""
    lines, line, width = [], indent, len(indent)
    for part, w in zip(parts, widths):
        if width > len(indent) and width + 1 + w > limit:
            lines.append(line)
            line, width = indent, len(indent)
        if width > len(indent):
            line += " "
            width += 1
        line += part
        width += w
    lines.append(line)
    return lines


# ----------------- Renderers -----------------
def render_frame(frame: CallFrameView, index: int, options: dict = DEFAULT_OPTIONS) -> list[str]:
    parts, widths = [], []
    for instr in frame.instructions:
        cell = f"[{instr.label}]" if instr.active else f" {instr.label} "
        widths.append(len(cell))
        if instr.active:
            cell = colorize(cell, COLOR_ACTIVE, "color_active", options)
        elif frame.dimmed:
            cell = colorize(cell, COLOR_DIMMED, "color_dimmed", options)
        parts.append(cell)
    if frame.at_end:
        parts.append(colorize("[<end>]", COLOR_ACTIVE, "color_active", options))
        widths.append(len("[<end>]"))
    env = f" env={frame.env}" if frame.env is not None else ""
    header = f"  #{index}{env}"
    return [header] + _wrap(parts, widths, "    ", options.get("max_line_length", 80))


def render_snapshot(view: SnapshotView, options: dict = DEFAULT_OPTIONS) -> str:
    out = [colorize("Stack (top first):", COLOR_HEADING, "color_stack", options)]
    for label in view.stack_labels:
        out.append("  " + colorize(label, COLOR_STACK, "color_stack", options))
    out.append(colorize("Call frames (innermost first):", COLOR_HEADING, "color_stack", options))
    if view.terminal:
        out.append("  (terminated)")
    for i, frame in enumerate(view.callframes):
        out.extend(render_frame(frame, i, options))
    if options.get("show_environment", True) and view.bindings:
        out.append(colorize("Environment:", COLOR_HEADING, "color_stack", options))
        out.extend(f"  {name} = {value}" for name, value in view.bindings)
    if options.get("show_console", True) and view.console:
        out.append(colorize("Console:", COLOR_HEADING, "color_stack", options))
        out.extend("  " + colorize(line, COLOR_CONSOLE, "color_stack", options) for line in view.console)
    return "\n".join(out)


def render_view(view: DebuggerView, options: dict = DEFAULT_OPTIONS) -> str:
    out = []
    if options.get("display_legend", False):
        out.append(_legend(options))
    if view.engine_error:
        out.append(colorize(f"Engine error: {view.engine_error}", COLOR_ERROR, "color_errors", options))
    if view.error:
        out.append(colorize(view.error, COLOR_ERROR, "color_errors", options))
    if view.snapshot is not None:
        if view.is_fallback:
            out.append(colorize("(showing previous snapshot)", COLOR_FALLBACK, "color_errors", options))
        out.append(render_snapshot(view.snapshot, options))
    elif not view.error and not view.engine_error:
        out.append("(nothing compiled yet)")
    actions = [name for name, ok in (("step", view.can_step), ("run", view.can_run)) if ok]
    out.append("Actions: " + (", ".join(actions) if actions else "none"))
    return "\n".join(out)


# ----------------- Load JSON config -----------------
def load_options_from_json(json_str: Optional[str]) -> dict:
    if not json_str:
        return dict(DEFAULT_OPTIONS)
    try:
        user_opts = json.loads(json_str)
    except json.JSONDecodeError as ex:
        logger.warning("ignoring print options, not valid JSON: %s", ex)
        return dict(DEFAULT_OPTIONS)
    if not isinstance(user_opts, dict):
        logger.warning("ignoring print options, expected a JSON object")
        return dict(DEFAULT_OPTIONS)
    return {**DEFAULT_OPTIONS, **user_opts}


def plain_options() -> dict:
    """Options with every color switched off."""
    return {**DEFAULT_OPTIONS, **{k: False for k in DEFAULT_OPTIONS if k.startswith("color_")}}
