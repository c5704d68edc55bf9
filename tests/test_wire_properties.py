import json

import pytest
from hypothesis import given, settings, strategies as st

from rispy_debugger.decoding import decode_expr, decode_json, decode_result, encode_expr, encode_result
from rispy_debugger.decoding.decoder import EXPR_TAGS, PAYLOAD_TAGS
from rispy_debugger.errors import DecodeError
from rispy_debugger.types import (
    Atom,
    Boolean,
    BuiltIn,
    CallFrame,
    Chunk,
    Environment,
    Instruction,
    Keyword,
    Lambda,
    LambdaDefinition,
    Nil,
    Num,
    Ok,
    Op,
    Pair,
    Quote,
    SchemaVersion,
    String,
    VMSnapshot,
)
from rispy_debugger.types.instruction import BARE_OPS, BY_TAG

SCHEMAS = [SchemaVersion.GLOBALS, SchemaVersion.ENVS]

# -------------------------------
# Strategies
# -------------------------------
# no capital N, so a symbol can never read back as Nil
symbol_strat = st.text(alphabet="abcxyz-_+*?0123456789", min_size=1, max_size=8)

number_strat = st.one_of(
    st.integers(min_value=-1000, max_value=1000),
    st.floats(min_value=-1e6, max_value=1e6, allow_infinity=False, allow_nan=False)
).map(Num)

leaf_strat = st.one_of(
    st.just(Nil),
    number_strat,
    st.booleans().map(Boolean),
    symbol_strat.map(Keyword),
    symbol_strat.map(Atom),
    st.text(max_size=10).map(String),
)

params_strat = st.lists(symbol_strat, max_size=3).map(tuple)

plain_instr_strat = st.one_of(
    st.sampled_from(sorted(BARE_OPS, key=lambda op: op.value)).map(Instruction),
    st.builds(Instruction, st.sampled_from([Op.LOOKUP, Op.DEFINE, Op.BUILT_IN]), symbol_strat),
    st.builds(Instruction, st.sampled_from([Op.CALL, Op.IF, Op.COND_JUMP, Op.COND_JUMP_POP]),
              st.integers(min_value=0, max_value=20)),
)


def instr_strat(schema, values):
    if schema is SchemaVersion.GLOBALS:
        constant = st.integers(min_value=0, max_value=4).map(lambda i: Instruction(Op.CONSTANT, i))
    else:
        constant = values.map(lambda v: Instruction(Op.CONSTANT, v))
    return st.one_of(plain_instr_strat, constant)


def chunk_strat(schema, values):
    pool = st.lists(values, max_size=3).map(tuple)
    if schema is SchemaVersion.ENVS:
        pool = st.one_of(st.none(), pool)
    return st.builds(Chunk, st.lists(instr_strat(schema, values), max_size=4).map(tuple), pool)


def variadic_strat(schema):
    return st.none() if schema is SchemaVersion.GLOBALS else st.one_of(st.none(), symbol_strat)


def expr_strat(schema):
    def extend(children):
        return st.one_of(
            st.builds(Quote, children),
            st.builds(Pair, children, children),
            st.builds(BuiltIn, st.lists(instr_strat(schema, children), max_size=3).map(tuple)),
            st.builds(Lambda, chunk_strat(schema, children), params_strat, symbol_strat,
                      variadic_strat(schema)),
            st.builds(LambdaDefinition, chunk_strat(schema, children), params_strat,
                      variadic_strat(schema)),
        )

    return st.recursive(leaf_strat, extend, max_leaves=12)


def snapshot_strat(schema):
    values = expr_strat(schema)
    located = schema is SchemaVersion.ENVS
    env_name = st.one_of(st.none(), symbol_strat) if located else st.none()

    def frame(chunk):
        return st.builds(CallFrame, st.integers(min_value=0, max_value=len(chunk.code)),
                         st.just(chunk), env_name)

    return st.builds(
        VMSnapshot,
        st.lists(chunk_strat(schema, values).flatmap(frame), max_size=2).map(tuple),
        st.lists(values, max_size=3).map(tuple),
        st.dictionaries(symbol_strat, values, max_size=3).map(Environment.flat),
        st.lists(st.text(max_size=10), max_size=2).map(tuple) if located else st.just(()),
        st.just(schema),
    )


bad_value_strat = st.one_of(
    st.text(max_size=10).filter(lambda t: t not in EXPR_TAGS).map(lambda t: {t: 1}),
    st.lists(st.sampled_from(sorted(EXPR_TAGS)), min_size=2, max_size=3, unique=True)
      .map(lambda tags: {t: {"Num": 1} for t in tags}),
    st.one_of(st.integers(), st.none(), st.lists(st.integers(), max_size=2), st.just({})),
)

bad_instr_strat = st.one_of(
    st.text(max_size=10).filter(lambda t: t not in BY_TAG or BY_TAG[t] not in BARE_OPS),
    st.text(max_size=10).filter(lambda t: t not in PAYLOAD_TAGS).map(lambda t: {t: 0}),
    st.lists(st.sampled_from(sorted(PAYLOAD_TAGS)), min_size=2, max_size=3, unique=True)
      .map(lambda tags: {t: 0 for t in tags}),
)


# -------------------------------
# Hypothesis tests
# -------------------------------
@pytest.mark.parametrize("schema", SCHEMAS)
@settings(deadline=None)
@given(data=st.data())
def test_snapshot_survives_encode_and_decode(schema, data):
    snapshot = data.draw(snapshot_strat(schema))
    raw = encode_result(Ok(snapshot))
    decoded = decode_result(raw)
    assert decoded == Ok(snapshot)
    assert decode_result(encode_result(decoded)) == decoded
    assert decode_json(json.dumps(raw)) == decoded


@pytest.mark.parametrize("schema", SCHEMAS)
@settings(deadline=None)
@given(data=st.data())
def test_value_survives_encode_and_decode(schema, data):
    value = data.draw(expr_strat(schema))
    again = decode_expr(encode_expr(value, schema), schema)
    assert again == value
    assert hash(again) == hash(value)


@pytest.mark.parametrize("schema", SCHEMAS)
@settings(deadline=None)
@given(data=st.data())
def test_malformed_value_inside_a_valid_one_is_rejected(schema, data):
    good = encode_expr(data.draw(expr_strat(schema)), schema)
    bad = data.draw(bad_value_strat)
    cell = [good, bad, None] if schema is SchemaVersion.ENVS else [good, bad]
    with pytest.raises(DecodeError) as ex:
        decode_expr({"Pair": cell}, schema)
    assert ex.value.path.startswith("$.Pair[1]")


@pytest.mark.parametrize("schema", SCHEMAS)
@settings(deadline=None)
@given(data=st.data())
def test_malformed_instruction_is_rejected(schema, data):
    code = data.draw(st.lists(plain_instr_strat, max_size=4))
    raw = encode_expr(BuiltIn(tuple(code)), schema)
    raw["BuiltIn"].append(data.draw(bad_instr_strat))
    with pytest.raises(DecodeError) as ex:
        decode_expr(raw, schema)
    assert ex.value.path.startswith(f"$.BuiltIn[{len(code)}]")
