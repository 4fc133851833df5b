"""
Call-site classification for identifier references.

A reference is in call position either as the callee of a call expression
(``foo()``) or as the receiver of a promise continuation call
(``foo.then(...)``, ``foo.catch(...)``).
"""

from dataclasses import dataclass
from typing import Any, Literal, Optional

from .scopes import Reference


CallSiteKind = Literal["direct", "named_method"]

# Methods whose result is assumed to need handling whatever the receiver is
CONTINUATION_METHODS = frozenset({'then', 'catch'})


@dataclass(frozen=True)
class CallSite:
    """A call expression a reference takes part in."""
    call: Any
    kind: CallSiteKind
    method: Optional[str] = None


def _field_is(parent, field: str, node) -> bool:
    child = parent.child_by_field_name(field)
    return child is not None and child == node


def _text(node) -> str:
    text = node.text
    if isinstance(text, bytes):
        return text.decode('utf-8', errors='ignore')
    return str(text)


def direct_call(reference: Reference) -> Optional[CallSite]:
    """The call expression whose callee is the reference, if any.

    ``foo()`` matches; ``bar(foo)`` does not, since foo is an argument there.
    """
    identifier = reference.identifier
    if identifier is None or identifier.type != 'identifier':
        return None

    parent = identifier.parent
    if parent is None or parent.type != 'call_expression':
        return None
    if not _field_is(parent, 'function', identifier):
        return None
    return CallSite(call=parent, kind='direct')


def continuation_call(reference: Reference) -> Optional[CallSite]:
    """The ``ref.then(...)`` / ``ref.catch(...)`` call the reference is the receiver of, if any."""
    identifier = reference.identifier
    if identifier is None:
        return None

    member = identifier.parent
    if member is None or member.type != 'member_expression':
        return None
    if not _field_is(member, 'object', identifier):
        return None

    prop = member.child_by_field_name('property')
    if prop is None:
        return None
    method = _text(prop)
    if method not in CONTINUATION_METHODS:
        return None

    call = member.parent
    if call is None or call.type != 'call_expression':
        return None
    if not _field_is(call, 'function', member):
        return None
    return CallSite(call=call, kind='named_method', method=method)


def classify_call_site(reference: Reference) -> Optional[CallSite]:
    """Classify a reference's call position; continuation calls take priority."""
    return continuation_call(reference) or direct_call(reference)
