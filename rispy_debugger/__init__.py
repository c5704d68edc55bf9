# Core type aliases for the debugger's wire boundary.
# Payloads coming from (and going to) the engine are plain JSON-like Python
# values: dict, list, str, int, float, bool, None. They only become typed
# objects after passing through rispy_debugger.decoding.
#
# Naming guidance:
# - RawPayload: anything that has not been validated yet.
# - RawResult:  a payload expected to be {"Ok": ...} or {"Err": ...}.

from typing import Any, Mapping

RawPayload = Any
RawResult = Mapping[str, Any]

__version__ = "0.1.0"
