import asyncio

from rispy_debugger.controller import StepController
from rispy_debugger.decoding import decode_result
from rispy_debugger.formatting import build_view, disassemble_chunk, snapshot_view
from rispy_debugger.formatting.disasm import disassemble_frame
from rispy_debugger.formatting.pprint import (
    load_options_from_json,
    plain_options,
    render_frame,
    render_view,
)
from rispy_debugger.formatting.views import STACK_EMPTY_LABEL
from rispy_debugger.types import (
    CallFrame,
    Chunk,
    Environment,
    Instruction,
    Lambda,
    Num,
    Op,
    VMSnapshot,
)


def _snapshot(wire, **kw):
    return decode_result(wire.ok(wire.vm(**kw))).snapshot


class FixedController:
    """Just enough of a StepController for build_view."""

    def __init__(self, snapshot):
        self.snapshot = snapshot
        self.current = None
        self.init_error = None
        self.engine_error = None
        self.can_step = True
        self.can_run = True

    def display_snapshot(self):
        return self.snapshot, False


def test_stack_is_listed_top_first(wire):
    view = snapshot_view(_snapshot(wire, stack=[wire.num(1), wire.num(2)]))
    assert view.stack == ("2", "1")


def test_empty_stack_label(wire):
    view = snapshot_view(_snapshot(wire))
    assert view.stack_labels == (STACK_EMPTY_LABEL,)
    assert view.terminal


def test_callframes_innermost_first(wire):
    outer = wire.frame(1, wire.chunk([wire.lookup("f"), wire.call(0), "Return"]))
    inner = wire.frame(3, wire.add_program())
    view = snapshot_view(_snapshot(wire, callframes=[outer, inner]))
    first, second = view.callframes
    assert not first.dimmed
    assert second.dimmed
    assert [i.active for i in first.instructions] == [False, False, False, True]
    assert first.instructions[3].label == "Call(2)"
    assert [i.label for i in second.instructions] == ["Lookup(f)", "Call(0)", "Return"]
    assert [i.active for i in second.instructions] == [False, True, False]


def test_frame_at_end_has_no_active_instruction(wire):
    view = snapshot_view(_snapshot(wire, callframes=[wire.frame(1, wire.chunk(["Return"]))]))
    frame = view.callframes[0]
    assert frame.at_end
    assert not any(i.active for i in frame.instructions)
    assert "[<end>]" in render_frame(frame, 0, plain_options())[-1]


def test_bindings_are_sorted_and_formatted(wire):
    view = snapshot_view(_snapshot(wire, env={"b": wire.num(2), "a": wire.lst(wire.num(1))}))
    assert view.bindings == (("a", "(1)"), ("b", "2"))


def test_build_view_marks_fallback(wire, scripted):
    engine = scripted(wire.ok(wire.vm([wire.frame(0, wire.add_program())])), {"Err": "boom"})

    async def scenario():
        ctl = StepController(engine)
        await ctl.compile("x")
        await ctl.step()
        return ctl

    ctl = asyncio.run(scenario())
    view = build_view(ctl)
    assert view.is_fallback
    assert view.error == "boom"
    assert view.snapshot is not None
    assert not view.can_step
    assert view.can_run
    text = render_view(view, plain_options())
    assert "boom" in text
    assert "(showing previous snapshot)" in text
    assert text.splitlines()[-1] == "Actions: run"


def test_render_marks_active_instruction(wire):
    snap = _snapshot(wire, callframes=[wire.frame(1, wire.add_program())], stack=[wire.kw("+")])
    text = render_view(build_view(FixedController(snap)), plain_options())
    assert "[Constant(1)]" in text
    assert "Actions: step, run" in text
    assert "\033[" not in text


def test_render_empty_controller(scripted):
    text = render_view(build_view(StepController(scripted())), plain_options())
    assert "(nothing compiled yet)" in text
    assert text.splitlines()[-1] == "Actions: none"


def test_render_wraps_long_frames():
    chunk = Chunk(tuple(Instruction(Op.LOOKUP, f"name{i}") for i in range(30)))
    view = snapshot_view(VMSnapshot((CallFrame(0, chunk),), (), Environment.flat()))
    lines = render_frame(view.callframes[0], 0, {**plain_options(), "max_line_length": 40})
    assert len(lines) > 2
    assert all(len(line) <= 40 for line in lines[1:])


def test_print_options_merge_and_ignore_garbage():
    opts = load_options_from_json('{"max_line_length": 20}')
    assert opts["max_line_length"] == 20
    assert opts["show_console"] is True
    assert load_options_from_json("not json")["max_line_length"] == 80
    assert load_options_from_json("[1]")["max_line_length"] == 80


def test_disassemble_indexed_chunk_with_nested_lambda():
    body = Chunk((Instruction(Op.LOOKUP, "n"), Instruction(Op.RETURN)), ())
    chunk = Chunk(
        (Instruction(Op.CONSTANT, 0), Instruction(Op.CONSTANT, 1), Instruction(Op.DEFINE, "id")),
        (Num(1), Lambda(body, ("n",), "id")),
    )
    text = disassemble_chunk(chunk, ip=1)
    lines = text.splitlines()
    assert lines[0] == "  0000: Constant(0)    ; 1"
    assert lines[1].startswith("->0001: Constant(1)")
    assert "-- constants --" in lines
    assert "[1] <Lambda id params=(n)>" in lines
    assert "      0000: Lookup(n)" in lines


def test_disassemble_frame_at_end():
    frame = CallFrame(1, Chunk((Instruction(Op.RETURN),)), env="3")
    lines = disassemble_frame(frame).splitlines()
    assert lines[0] == "== frame ip=1 env=3 =="
    assert "->0001: <end>" in lines


def test_disassemble_deeply_nested_lambdas():
    value = Num(0)
    for i in range(2000):
        value = Lambda(Chunk((Instruction(Op.CONSTANT, value), Instruction(Op.RETURN))), (), f"f{i}")
    text = disassemble_chunk(value.chunk)
    lines = text.splitlines()
    assert lines[0].startswith("  0000: Constant(Lambda(f1998))")
    assert lines[2] == "-- 0000 <Lambda f1998 params=()> --"
    assert lines[-1].strip() == "0001: Return"
    assert lines[-2].strip() == "0000: Constant(0)"
    assert sum(1 for line in lines if line.lstrip().startswith("-- 0000 <Lambda")) == 1999
