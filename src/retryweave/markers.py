"""Receiver annotations that state how a retried method holds ``self``.

``Ref[T]`` shares the receiver, ``Mut[T]`` mutates it and ``Owned[T]``
hands it to the method outright. The engine reads them from source; they
carry no behaviour at runtime.
"""

from __future__ import annotations

from typing import Generic, TypeVar

T = TypeVar("T")


class Ref(Generic[T]):
    pass


class Mut(Generic[T]):
    pass


class Owned(Generic[T]):
    pass


__all__ = ["Mut", "Owned", "Ref"]
