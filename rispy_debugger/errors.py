from __future__ import annotations


class RispyError(Exception):
    """ Base class for all debugger errors"""
    pass


class DecodeError(RispyError):
    """ Raised when a payload does not match the snapshot schema"""

    def __init__(self, path: str, expected: str, actual: object):
        self.path = path
        self.expected = expected
        self.actual = describe_shape(actual)
        super().__init__(f"{path}: expected {expected}, found {self.actual}")


class EncodeError(RispyError):
    """ Raised when a typed snapshot cannot be written in its schema"""


class EngineError(RispyError):
    """ Raised when a call into the engine fails outright"""


class EngineInitError(EngineError):
    """ Raised when the engine could not be started"""


class ControllerError(RispyError):
    """ Raised when the step controller is asked for an action it cannot take"""


class StepUnavailable(ControllerError):
    """ Raised when stepping a terminated, failed or missing snapshot"""


class ConfigError(RispyError):
    """ Raised when a configuration value cannot be used"""


def describe_shape(value: object, limit: int = 60) -> str:
    """Short description of a raw value for error messages and logs."""
    if isinstance(value, dict):
        keys = ", ".join(repr(k) for k in list(value)[:5])
        more = ", ..." if len(value) > 5 else ""
        return f"object with keys [{keys}{more}]"
    if isinstance(value, list):
        return f"array of length {len(value)}"
    if value is None:
        return "null"
    text = repr(value)
    if len(text) > limit:
        text = text[: limit - 3] + "..."
    return f"{type(value).__name__} {text}"
