from __future__ import annotations


class NilType:
    """The empty-list sentinel terminating proper Pair chains."""

    __slots__ = ()

    def __repr__(self): return "Nil"
    def __bool__(self): return False

    def __eq__(self, other):
        return isinstance(other, NilType)

    def __hash__(self):
        return hash(NilType)

    def __reduce__(self):
        return "Nil"


Nil = NilType()
