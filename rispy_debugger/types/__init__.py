from __future__ import annotations

# Public surface for the value/instruction model
from .nil import Nil, NilType
from .schema import SchemaVersion
from .expr import (
    Expr,
    Num,
    Boolean,
    Keyword,
    Atom,
    String,
    Quote,
    Pair,
    BuiltIn,
    Lambda,
    LambdaDefinition,
)
from .instruction import Instruction, Op
from .chunk import Chunk
from .snapshot import (
    GLOBAL_FRAME,
    CallFrame,
    EnvFrame,
    Environment,
    VMSnapshot,
    Ok,
    Err,
    ExecutionResult,
)

__all__ = [
    "Nil",
    "NilType",
    "SchemaVersion",
    "Expr",
    "Num",
    "Boolean",
    "Keyword",
    "Atom",
    "String",
    "Quote",
    "Pair",
    "BuiltIn",
    "Lambda",
    "LambdaDefinition",
    "Instruction",
    "Op",
    "Chunk",
    "GLOBAL_FRAME",
    "CallFrame",
    "EnvFrame",
    "Environment",
    "VMSnapshot",
    "Ok",
    "Err",
    "ExecutionResult",
]
