from __future__ import annotations

from enum import Enum


class SchemaVersion(Enum):
    """Known wire dialects of the engine.

    GLOBALS is the older engine: a flat ``globals`` table, ``Constant`` carrying
    an index into the chunk's constant pool, and a mandatory pool.
    ENVS is the newer engine: ``envs`` (flat or chained frames), ``Constant``
    carrying its value inline, and an optional pool.
    AUTO picks one of the two from the environment field that is present.
    """

    AUTO = "auto"
    GLOBALS = "globals"
    ENVS = "envs"

    @property
    def env_field(self) -> str:
        if self is SchemaVersion.AUTO:
            raise ValueError("AUTO has no fixed environment field")
        return self.value

    @property
    def inline_constants(self) -> bool:
        return self is SchemaVersion.ENVS

    @classmethod
    def from_name(cls, name: str) -> SchemaVersion:
        return cls(name.strip().lower())
