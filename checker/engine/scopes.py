"""
Scopes and name resolution for retcheck.

This module provides a language-agnostic scopes API used by rules to walk
lexical scopes and follow each identifier reference to the definitions it may
bind to. Scopes, definitions and references live in a ScopeGraph arena and
refer to each other by integer scope id.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Literal, Optional, Tuple
from .types import LanguageAdapter

logger = logging.getLogger(__name__)


DefinitionKind = Literal["function_name", "variable", "parameter", "class", "import", "catch", "other"]


@dataclass(frozen=True)
class Definition:
    """A binding site a reference may resolve to.

    ``node`` is the node to inspect for the binding's kind:
    the function node for "function_name", the variable_declarator for
    "variable", the parameter node for "parameter".
    """
    name: str
    kind: DefinitionKind
    scope_id: int
    name_node: Any
    node: Any


@dataclass(frozen=True)
class Reference:
    """A use of a name, with the definitions it resolved to (empty if unresolved)."""
    name: str
    scope_id: int
    identifier: Any
    resolved: Tuple[Definition, ...] = ()

    @property
    def is_resolved(self) -> bool:
        return bool(self.resolved)


@dataclass(frozen=True)
class Scope:
    """A scope represents a namespace boundary."""
    id: int
    kind: str           # "module"|"function"|"class"|"block"|"catch"
    parent_id: Optional[int]
    node: Any = None


class ScopeGraph:
    """Graph of scopes, definitions, and references for a file."""

    def __init__(self, scopes: List[Scope], definitions: List[Definition], refs: List[Reference]):
        self._scopes = {s.id: s for s in scopes}
        self._definitions = definitions
        self._refs = refs

        # Build indexes for fast lookup
        self._defs_by_scope: Dict[int, List[Definition]] = {}
        self._refs_by_scope: Dict[int, List[Reference]] = {}
        self._children_by_scope: Dict[int, List[int]] = {}
        self._root_id: Optional[int] = None

        for definition in definitions:
            self._defs_by_scope.setdefault(definition.scope_id, []).append(definition)

        for ref in refs:
            self._refs_by_scope.setdefault(ref.scope_id, []).append(ref)

        for scope in scopes:
            if scope.parent_id is not None:
                self._children_by_scope.setdefault(scope.parent_id, []).append(scope.id)
            elif self._root_id is None:
                self._root_id = scope.id

    @property
    def root(self) -> Optional[Scope]:
        """The program scope, or None for an empty graph."""
        if self._root_id is None:
            return None
        return self._scopes[self._root_id]

    def get_scope(self, scope_id: int) -> Optional[Scope]:
        """Get scope by ID."""
        return self._scopes.get(scope_id)

    def iter_scopes(self) -> Iterable[Scope]:
        return iter(self._scopes.values())

    def iter_definitions(self, kind: str = None) -> Iterable[Definition]:
        """Iterate over all definitions, optionally filtered by kind."""
        for definition in self._definitions:
            if kind is None or definition.kind == kind:
                yield definition

    def iter_refs(self) -> Iterable[Reference]:
        """Iterate over all references."""
        return iter(self._refs)

    def definitions_in_scope(self, scope_id: int) -> List[Definition]:
        """Get all definitions declared directly in a scope."""
        return self._defs_by_scope.get(scope_id, [])

    def refs_in_scope(self, scope_id: int) -> List[Reference]:
        """Get all references whose innermost scope is ``scope_id``."""
        return self._refs_by_scope.get(scope_id, [])

    def children_of(self, scope_id: int) -> List[int]:
        """Get direct child scope IDs of a scope."""
        return self._children_by_scope.get(scope_id, [])

    def descendants_of(self, scope_id: int) -> List[int]:
        """Get all descendant scope IDs of a scope (recursive)."""
        descendants = []
        children = self.children_of(scope_id)
        descendants.extend(children)

        for child_id in children:
            descendants.extend(self.descendants_of(child_id))

        return descendants

    def get_stats(self) -> Dict[str, int]:
        """Get statistics about the scope graph."""
        return {
            "scopes": len(self._scopes),
            "definitions": len(self._definitions),
            "refs": len(self._refs),
            "unresolved": len([r for r in self._refs if not r.resolved]),
        }


def resolve_definitions(scope_ids: Dict[int, Scope], defs_by_scope: Dict[int, List[Definition]],
                        scope_id: int, name: str) -> Tuple[Definition, ...]:
    """
    Resolve a name to every definition visible from ``scope_id``.

    Searches from the given scope upward through parent scopes. The first
    scope that declares the name supplies all of its definitions for that
    name, so overloads and redeclarations resolve to several candidates.
    """
    current_scope_id = scope_id

    while current_scope_id is not None:
        matches = tuple(d for d in defs_by_scope.get(current_scope_id, []) if d.name == name)
        if matches:
            return matches

        scope = scope_ids.get(current_scope_id)
        current_scope_id = scope.parent_id if scope else None

    return ()


def build_scopes(adapter: LanguageAdapter, tree, text: str) -> ScopeGraph:
    """
    Build a scope graph for a file using the language adapter.

    Args:
        adapter: Language adapter with scope analysis hooks
        tree: Parsed tree from tree-sitter
        text: Source text

    Returns:
        ScopeGraph containing scopes, definitions, and resolved references
    """
    scope_dicts = list(adapter.iter_scope_nodes(tree))
    def_dicts = list(adapter.iter_symbol_defs(tree))
    ref_dicts = list(adapter.iter_identifier_refs(tree))

    scopes = [
        Scope(
            id=scope_dict["id"],
            kind=scope_dict["kind"],
            parent_id=scope_dict.get("parent_id"),
            node=scope_dict.get("node"),
        )
        for scope_dict in scope_dicts
    ]

    definitions = [
        Definition(
            name=def_dict["name"],
            kind=def_dict["kind"],
            scope_id=def_dict.get("scope_id", 0),  # Default to module scope (0)
            name_node=def_dict.get("name_node"),
            node=def_dict.get("node"),
        )
        for def_dict in def_dicts
    ]

    scope_ids = {s.id: s for s in scopes}
    defs_by_scope: Dict[int, List[Definition]] = {}
    for definition in definitions:
        defs_by_scope.setdefault(definition.scope_id, []).append(definition)

    refs = []
    for ref_dict in ref_dicts:
        scope_id = ref_dict.get("scope_id", 0)
        refs.append(Reference(
            name=ref_dict["name"],
            scope_id=scope_id,
            identifier=ref_dict["node"],
            resolved=resolve_definitions(scope_ids, defs_by_scope, scope_id, ref_dict["name"]),
        ))

    graph = ScopeGraph(scopes, definitions, refs)
    logger.debug("Built scope graph: %s", graph.get_stats())
    return graph
