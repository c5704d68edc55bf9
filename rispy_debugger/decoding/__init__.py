from __future__ import annotations

# Public surface for the decoding package
from .decoder import (
    decode_result,
    decode_snapshot,
    decode_json,
    decode_expr,
    decode_instruction,
    resolve_schema,
)
from .encoder import encode_result, encode_snapshot, encode_expr

__all__ = [
    "decode_result",
    "decode_snapshot",
    "decode_json",
    "decode_expr",
    "decode_instruction",
    "resolve_schema",
    "encode_result",
    "encode_snapshot",
    "encode_expr",
]
