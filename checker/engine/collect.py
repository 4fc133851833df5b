"""Filter-map helper shared by the classifiers."""

from typing import Callable, Iterable, List, Optional, TypeVar

A = TypeVar("A")
B = TypeVar("B")


def collect(items: Iterable[A], fn: Callable[[A], Optional[B]]) -> List[B]:
    """Apply ``fn`` to every item and keep the results that are not None.

    Combines filter and map in a single pass, in input order. Falsy results
    other than None (0, "", False) are kept.
    """
    results = []
    for item in items:
        value = fn(item)
        if value is not None:
            results.append(value)
    return results
