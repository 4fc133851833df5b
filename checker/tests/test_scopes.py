"""Tests for scope building and name resolution."""

from engine.scopes import (
    Definition,
    Reference,
    Scope,
    ScopeGraph,
    build_scopes,
    resolve_definitions,
)
from engine.typescript_adapter import default_typescript_adapter


def graph_for(code: str, file_path: str = "test.ts") -> ScopeGraph:
    tree = default_typescript_adapter.parse(code, file_path=file_path)
    return build_scopes(default_typescript_adapter, tree, code)


def refs_named(graph: ScopeGraph, name: str):
    return [ref for ref in graph.iter_refs() if ref.name == name]


class TestBuildScopes:
    """Scope graphs built from real TypeScript trees."""

    def test_nested_scopes(self):
        code = """
const a = 1;
function outer(p: number) {
    let b = p;
    { let c = b; }
}
"""
        graph = graph_for(code)

        root = graph.root
        assert root.kind == "module"
        assert root.parent_id is None

        kinds = sorted(scope.kind for scope in graph.iter_scopes())
        # Function bodies share the function scope
        assert kinds == ["block", "function", "module"]

        function_scope = graph.children_of(root.id)[0]
        assert graph.get_scope(function_scope).kind == "function"
        assert len(graph.descendants_of(root.id)) == 2

        names_by_kind = {(d.name, d.kind) for d in graph.iter_definitions()}
        assert names_by_kind == {
            ("a", "variable"),
            ("outer", "function_name"),
            ("p", "parameter"),
            ("b", "variable"),
            ("c", "variable"),
        }

        # Declaration names bind in the enclosing scope
        outer_def = next(graph.iter_definitions(kind="function_name"))
        assert outer_def.scope_id == root.id
        assert outer_def.node.type == "function_declaration"

    def test_references_resolve_to_definitions(self):
        code = """
const a = 1;
function outer(p: number) {
    let b = p;
    { let c = b + a; }
}
"""
        graph = graph_for(code)

        (p_ref,) = refs_named(graph, "p")
        assert p_ref.is_resolved
        assert p_ref.resolved[0].kind == "parameter"
        assert p_ref.resolved[0].node.type == "required_parameter"

        (a_ref,) = refs_named(graph, "a")
        assert a_ref.resolved[0].scope_id == graph.root.id
        assert a_ref.resolved[0].node.type == "variable_declarator"

    def test_definitions_are_not_references(self):
        graph = graph_for("function foo(x: number): number { return x; }\n")
        assert [ref.name for ref in graph.iter_refs()] == ["x"]

    def test_unresolved_reference(self):
        graph = graph_for("missing();\n")

        (ref,) = refs_named(graph, "missing")
        assert not ref.is_resolved
        assert ref.resolved == ()
        assert graph.get_stats()["unresolved"] == 1

    def test_inner_binding_shadows_outer(self):
        code = """
const value = 1;
function f() {
    const value = 2;
    return value;
}
"""
        graph = graph_for(code)

        (ref,) = refs_named(graph, "value")
        assert len(ref.resolved) == 1
        assert ref.resolved[0].scope_id != graph.root.id

    def test_var_hoists_to_function_scope(self):
        code = """
function f() {
    if (ok) { var v = 1; }
    return v;
}
"""
        graph = graph_for(code)

        (ref,) = refs_named(graph, "v")
        assert ref.is_resolved
        assert graph.get_scope(ref.resolved[0].scope_id).kind == "function"

    def test_let_stays_in_block(self):
        code = """
function f() {
    if (ok) { let v = 1; }
    return v;
}
"""
        graph = graph_for(code)

        (ref,) = refs_named(graph, "v")
        assert not ref.is_resolved

    def test_function_declarations_hoist(self):
        graph = graph_for("foo();\nfunction foo(): number { return 1; }\n")

        (ref,) = refs_named(graph, "foo")
        assert ref.resolved[0].kind == "function_name"

    def test_overloads_resolve_to_every_signature(self):
        code = """
function pick(x: string): string;
function pick(x: number): number;
function pick(x: any): any { return x; }
pick(1);
"""
        graph = graph_for(code)

        call_refs = [ref for ref in refs_named(graph, "pick")]
        assert len(call_refs) == 1
        node_types = [d.node.type for d in call_refs[0].resolved]
        assert node_types == ["function_signature", "function_signature", "function_declaration"]

    def test_function_type_parameters_are_not_bound(self):
        graph = graph_for("function foo(f: (n: number) => number) { return n; }\n")

        assert {d.name for d in graph.iter_definitions()} == {"foo", "f"}
        (ref,) = refs_named(graph, "n")
        assert not ref.is_resolved

    def test_destructured_parameters(self):
        graph = graph_for("const f = ({ a, b: [c] }, ...rest) => a + c + rest.length;\n")

        params = {d.name for d in graph.iter_definitions(kind="parameter")}
        assert params == {"a", "c", "rest"}

    def test_single_arrow_parameter(self):
        graph = graph_for("const f = x => x;\n")

        (ref,) = refs_named(graph, "x")
        assert ref.resolved[0].kind == "parameter"
        assert ref.resolved[0].node.type == "identifier"

    def test_imports_catch_and_classes(self):
        code = """
import dflt, { one, two as alias } from "./mod";
import * as ns from "./ns";
class Box {}
try { dflt(); } catch (err) { alias(err, ns, one, Box); }
"""
        graph = graph_for(code)

        kinds = {d.name: d.kind for d in graph.iter_definitions()}
        assert kinds["dflt"] == "import"
        assert kinds["one"] == "import"
        assert kinds["alias"] == "import"
        assert kinds["ns"] == "import"
        assert kinds["err"] == "catch"
        assert kinds["Box"] == "class"
        assert "two" not in kinds

        assert all(ref.is_resolved for ref in graph.iter_refs())

    def test_named_function_expression_binds_in_own_scope(self):
        code = """
const f = function inner(): number { return inner(); };
inner();
"""
        graph = graph_for(code)

        inner_refs = refs_named(graph, "inner")
        assert len(inner_refs) == 2
        resolved = sorted(ref.is_resolved for ref in inner_refs)
        assert resolved == [False, True]

    def test_empty_program(self):
        graph = graph_for("")

        assert graph.root is not None
        assert graph.get_stats() == {"scopes": 1, "definitions": 0, "refs": 0, "unresolved": 0}


class TestResolveDefinitions:
    """resolve_definitions walks parent scopes by id."""

    def setup_method(self):
        self.scopes = {
            0: Scope(id=0, kind="module", parent_id=None),
            1: Scope(id=1, kind="function", parent_id=0),
            2: Scope(id=2, kind="block", parent_id=1),
        }
        self.outer = Definition(name="x", kind="variable", scope_id=0, name_node=None, node=None)
        self.first = Definition(name="y", kind="function_name", scope_id=1, name_node=None, node=None)
        self.second = Definition(name="y", kind="function_name", scope_id=1, name_node=None, node=None)
        self.defs_by_scope = {0: [self.outer], 1: [self.first, self.second]}

    def test_walks_up_parents(self):
        assert resolve_definitions(self.scopes, self.defs_by_scope, 2, "x") == (self.outer,)

    def test_returns_all_candidates_of_nearest_scope(self):
        assert resolve_definitions(self.scopes, self.defs_by_scope, 2, "y") == (self.first, self.second)

    def test_missing_name(self):
        assert resolve_definitions(self.scopes, self.defs_by_scope, 2, "z") == ()

    def test_unknown_scope(self):
        assert resolve_definitions(self.scopes, self.defs_by_scope, 99, "x") == ()


class TestScopeGraph:
    """Index lookups on a hand-built graph."""

    def test_indexes(self):
        scopes = [Scope(id=0, kind="module", parent_id=None), Scope(id=1, kind="function", parent_id=0)]
        definition = Definition(name="f", kind="function_name", scope_id=0, name_node=None, node=None)
        refs = [
            Reference(name="f", scope_id=1, identifier=None, resolved=(definition,)),
            Reference(name="g", scope_id=1, identifier=None),
        ]
        graph = ScopeGraph(scopes, [definition], refs)

        assert graph.root.id == 0
        assert graph.children_of(0) == [1]
        assert graph.children_of(1) == []
        assert graph.definitions_in_scope(0) == [definition]
        assert graph.refs_in_scope(1) == refs
        assert graph.refs_in_scope(0) == []
        assert list(graph.iter_definitions(kind="variable")) == []
        assert graph.get_stats() == {"scopes": 2, "definitions": 1, "refs": 2, "unresolved": 1}

    def test_empty_graph_has_no_root(self):
        assert ScopeGraph([], [], []).root is None
