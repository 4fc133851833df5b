# checker/rules/errors_unused_return_value.py
"""
Rule to detect calls whose declared non-void return value is discarded.

This rule walks the scope graph of a TypeScript file and, for every reference
that resolves to a declaration, checks:
- Promise continuations: ``p.then(...)`` / ``p.catch(...)`` whose result is dropped
- Direct calls of functions annotated with a non-void return type whose result is dropped

A result counts as used when the call (or the await of it) is assigned to a
variable, returned, used as a binary operand, interpolated into a template,
placed in a JSX expression container, used as an object property value, or is
the concise body of an arrow function.

Functions without a return-type annotation, or annotated ``void``, are never
reported. Unresolved (global) names are skipped.
"""

from dataclasses import dataclass
from typing import Any, Iterator, List, Literal, Optional

from engine.types import RuleContext, Finding, RuleMeta, Requires
from engine.scopes import Reference, ScopeGraph
from engine.signatures import is_non_void_function_reference
from engine.call_sites import continuation_call, direct_call
from engine.usage import is_consumed


DiagnosticKind = Literal["unused_return", "unused_promise_continuation"]

MESSAGES = {
    "unused_return": "Use the return value of '{name}'",
    "unused_promise_continuation": "Use the result of '{name}.{method}(...)'",
}


@dataclass(frozen=True)
class UnusedReturnDiagnostic:
    """A discarded result, located at the reference's identifier."""
    kind: DiagnosticKind
    identifier: Any
    name: str
    method: Optional[str] = None

    @property
    def message(self) -> str:
        return MESSAGES[self.kind].format(name=self.name, method=self.method)


def check_reference(reference: Reference) -> Optional[UnusedReturnDiagnostic]:
    """Analyse one resolved reference."""
    if not reference.resolved:
        return None

    continuation = continuation_call(reference)
    if continuation is not None and not is_consumed(continuation.call):
        return UnusedReturnDiagnostic(
            kind="unused_promise_continuation",
            identifier=reference.identifier,
            name=reference.name,
            method=continuation.method,
        )

    if not is_non_void_function_reference(reference):
        return None

    call = direct_call(reference)
    if call is not None and not is_consumed(call.call):
        return UnusedReturnDiagnostic(
            kind="unused_return",
            identifier=reference.identifier,
            name=reference.name,
        )
    return None


def _walk_scope(graph: ScopeGraph, scope_id: int) -> List[UnusedReturnDiagnostic]:
    diagnostics = []
    for child_id in graph.children_of(scope_id):
        diagnostics.extend(_walk_scope(graph, child_id))

    for reference in graph.refs_in_scope(scope_id):
        diagnostic = check_reference(reference)
        if diagnostic is not None:
            diagnostics.append(diagnostic)
    return diagnostics


def find_unused_returns(graph: ScopeGraph) -> List[UnusedReturnDiagnostic]:
    """Collect diagnostics for every scope, child scopes before their parent."""
    root = graph.root
    if root is None:
        return []
    return _walk_scope(graph, root.id)


class ErrorsUnusedReturnValueRule:
    """Rule to detect discarded return values of annotated non-void functions."""

    meta = RuleMeta(
        id="errors.unused_return_value",
        category="errors",
        tier=1,
        priority="P1",
        description="Flags calls of functions with a declared non-void return type, and promise then/catch calls, whose result is discarded.",
        langs=["typescript"]
    )

    requires = Requires(syntax=True, scopes=True)

    def visit(self, ctx: RuleContext) -> Iterator[Finding]:
        """Visit file and report discarded return values."""
        if ctx.scopes is None:
            return

        for diagnostic in find_unused_returns(ctx.scopes):
            yield self._create_finding(ctx, diagnostic)

    def _create_finding(self, ctx: RuleContext, diagnostic: UnusedReturnDiagnostic) -> Finding:
        start_byte, end_byte = ctx.node_span(diagnostic.identifier)
        meta = {"kind": diagnostic.kind, "name": diagnostic.name}
        if diagnostic.method:
            meta["method"] = diagnostic.method

        return Finding(
            rule=self.meta.id,
            message=diagnostic.message,
            file=ctx.file_path,
            start_byte=start_byte,
            end_byte=end_byte,
            severity="warn",
            meta=meta,
        )


RULES = [ErrorsUnusedReturnValueRule()]
