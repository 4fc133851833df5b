"""
TypeScript language adapter for tree-sitter.
"""
import logging
import os
import threading
from typing import Any, Dict, List, Optional, Tuple

import tree_sitter

from .types import LanguageAdapter

logger = logging.getLogger(__name__)


# Nodes that open a new lexical scope, and the kind of scope they open.
SCOPE_TYPES = {
    'program': 'module',
    'function_declaration': 'function',
    'generator_function_declaration': 'function',
    'function_expression': 'function',
    'function': 'function',
    'generator_function': 'function',
    'arrow_function': 'function',
    'method_definition': 'function',
    'function_signature': 'function',
    'method_signature': 'function',
    'abstract_method_signature': 'function',
    'class_declaration': 'class',
    'abstract_class_declaration': 'class',
    'class': 'class',
    'statement_block': 'block',
    'for_statement': 'block',
    'for_in_statement': 'block',
    'catch_clause': 'catch',
}

# Nodes that carry a parameter list
FUNCTION_LIKE_TYPES = frozenset(
    node_type for node_type, kind in SCOPE_TYPES.items() if kind == 'function'
)

# Declarations whose name binds in the enclosing scope
FUNCTION_DECLARATION_TYPES = frozenset({
    'function_declaration',
    'generator_function_declaration',
    'function_signature',
})
CLASS_DECLARATION_TYPES = frozenset({'class_declaration', 'abstract_class_declaration'})

# Expressions whose optional name binds only inside their own scope
FUNCTION_EXPRESSION_TYPES = frozenset({'function_expression', 'function', 'generator_function'})

# Subtrees that only contain types; identifiers inside them are never values
TYPE_ONLY_TYPES = frozenset({
    'type_annotation',
    'type_alias_declaration',
    'interface_declaration',
    'type_arguments',
    'type_parameters',
    'implements_clause',
    'asserts_annotation',
    'type_predicate_annotation',
    'opting_type_annotation',
    'omitting_type_annotation',
    'adding_type_annotation',
})

REFERENCE_TYPES = frozenset({'identifier', 'shorthand_property_identifier'})
NAME_NODE_TYPES = frozenset({'identifier', 'type_identifier'})


def _node_text_to_str(node_text: Any) -> str:
    """Helper to convert tree-sitter node.text to string, handling bytes/str."""
    if node_text is None:
        return ""
    if isinstance(node_text, bytes):
        return node_text.decode('utf-8', errors='ignore')
    return str(node_text)


def _node_key(node) -> Tuple[int, int]:
    return (node.start_byte, node.end_byte)


class _ScopeWalker:
    """Single pass over a tree collecting scopes, definitions and references."""

    def __init__(self):
        self.scopes: List[Dict[str, Any]] = []
        self.definitions: List[Dict[str, Any]] = []
        self.references: List[Dict[str, Any]] = []
        self._def_keys = set()

    def run(self, root):
        # Explicit stack: long expression chains nest deeper than the recursion limit
        stack = [(root, None, None)]
        while stack:
            node, scope_id, function_scope_id = stack.pop()
            inner = self._visit(node, scope_id, function_scope_id)
            if inner is None:
                continue
            stack.extend((child,) + inner for child in reversed(node.children))
        return self

    def _add_scope(self, kind: str, parent_id: Optional[int], node) -> int:
        scope_id = len(self.scopes)
        self.scopes.append({
            'id': scope_id,
            'kind': kind,
            'parent_id': parent_id,
            'node': node,
        })
        return scope_id

    def _add_definition(self, name_node, kind: str, scope_id: int, node) -> None:
        self._def_keys.add(_node_key(name_node))
        self.definitions.append({
            'name': _node_text_to_str(name_node.text),
            'kind': kind,
            'scope_id': scope_id,
            'name_node': name_node,
            'node': node,
        })

    def _scope_kind(self, node) -> Optional[str]:
        kind = SCOPE_TYPES.get(node.type)
        if kind == 'block' and node.type == 'statement_block':
            # A function body shares the function's scope
            parent = node.parent
            if parent is not None and parent.type in FUNCTION_LIKE_TYPES:
                return None
        return kind

    def _visit(self, node, scope_id: Optional[int],
               function_scope_id: Optional[int]) -> Optional[Tuple[Optional[int], Optional[int]]]:
        """Record one node; return the (scope_id, function_scope_id) its children see, or None to skip them."""
        if node.type in TYPE_ONLY_TYPES:
            return None

        # Declarations whose name lives in the enclosing scope
        if node.type in FUNCTION_DECLARATION_TYPES or node.type in CLASS_DECLARATION_TYPES:
            name_node = node.child_by_field_name('name')
            if name_node is not None and name_node.type in NAME_NODE_TYPES and scope_id is not None:
                kind = 'function_name' if node.type in FUNCTION_DECLARATION_TYPES else 'class'
                self._add_definition(name_node, kind, scope_id, node)

        scope_kind = self._scope_kind(node)
        if scope_kind is not None:
            scope_id = self._add_scope(scope_kind, scope_id, node)
            if scope_kind in ('module', 'function'):
                function_scope_id = scope_id

        if node.type in FUNCTION_EXPRESSION_TYPES or node.type == 'class':
            name_node = node.child_by_field_name('name')
            if name_node is not None and name_node.type in NAME_NODE_TYPES:
                kind = 'class' if node.type == 'class' else 'function_name'
                self._add_definition(name_node, kind, scope_id, node)

        if node.type in FUNCTION_LIKE_TYPES:
            self._define_parameters(node, scope_id)
        elif node.type == 'variable_declarator':
            parent = node.parent
            hoisted = parent is not None and parent.type == 'variable_declaration'
            target = function_scope_id if hoisted else scope_id
            self._define_pattern(node.child_by_field_name('name'), 'variable', target, node)
        elif node.type == 'for_in_statement':
            kind_node = node.child_by_field_name('kind')
            if kind_node is not None:
                hoisted = _node_text_to_str(kind_node.text) == 'var'
                target = function_scope_id if hoisted else scope_id
                self._define_pattern(node.child_by_field_name('left'), 'variable', target, node)
        elif node.type == 'catch_clause':
            self._define_pattern(node.child_by_field_name('parameter'), 'catch', scope_id, node)
        elif node.type == 'import_clause':
            self._define_imports(node, scope_id)
        elif node.type in ('enum_declaration', 'internal_module'):
            name_node = node.child_by_field_name('name')
            if name_node is not None and name_node.type == 'identifier':
                self._add_definition(name_node, 'other', scope_id, node)

        if node.type in REFERENCE_TYPES and _node_key(node) not in self._def_keys:
            self.references.append({
                'name': _node_text_to_str(node.text),
                'scope_id': scope_id if scope_id is not None else 0,
                'node': node,
            })

        return scope_id, function_scope_id

    def _define_parameters(self, node, scope_id: int) -> None:
        params = node.child_by_field_name('parameters')
        if params is not None:
            for param in params.named_children:
                if param.type in ('required_parameter', 'optional_parameter'):
                    self._define_pattern(param.child_by_field_name('pattern'), 'parameter', scope_id, param)

        # Arrow functions with a single bare parameter: x => ...
        single = node.child_by_field_name('parameter')
        if single is not None:
            self._define_pattern(single, 'parameter', scope_id, single)

    def _define_pattern(self, pattern, kind: str, scope_id: Optional[int], node) -> None:
        """Define every name bound by an identifier or destructuring pattern."""
        if pattern is None or scope_id is None:
            return

        pattern_type = pattern.type
        if pattern_type in ('identifier', 'shorthand_property_identifier_pattern'):
            self._add_definition(pattern, kind, scope_id, node)
        elif pattern_type in ('object_pattern', 'array_pattern', 'rest_pattern'):
            for child in pattern.named_children:
                self._define_pattern(child, kind, scope_id, node)
        elif pattern_type == 'pair_pattern':
            self._define_pattern(pattern.child_by_field_name('value'), kind, scope_id, node)
        elif pattern_type in ('assignment_pattern', 'object_assignment_pattern'):
            self._define_pattern(pattern.child_by_field_name('left'), kind, scope_id, node)

    def _define_imports(self, clause, scope_id: int) -> None:
        for child in clause.named_children:
            if child.type == 'identifier':
                # Default import: import X from 'module'
                self._add_definition(child, 'import', scope_id, clause)
            elif child.type == 'namespace_import':
                # Namespace import: import * as X from 'module'
                for ns_child in child.named_children:
                    if ns_child.type == 'identifier':
                        self._add_definition(ns_child, 'import', scope_id, clause)
            elif child.type == 'named_imports':
                # Named imports: import { a, b as c } from 'module'
                for specifier in child.named_children:
                    if specifier.type != 'import_specifier':
                        continue
                    name_node = specifier.child_by_field_name('name')
                    alias_node = specifier.child_by_field_name('alias')
                    if name_node is not None:
                        self._def_keys.add(_node_key(name_node))
                    local = alias_node if alias_node is not None else name_node
                    if local is not None and local.type == 'identifier':
                        self._add_definition(local, 'import', scope_id, specifier)


class TypeScriptAdapter(LanguageAdapter):
    """Tree-sitter adapter for TypeScript language."""

    def __init__(self):
        """Initialize TypeScript adapter; parsers are created on first use."""
        self._ts_parser = None  # Parser for .ts files
        self._tsx_parser = None  # Parser for .tsx files
        self._walk_cache = None  # (tree, _ScopeWalker) for the last tree walked
        self._parse_lock = threading.Lock()  # Parsers are shared between runner threads

    @property
    def language_id(self) -> str:
        """Return the language identifier."""
        return "typescript"

    @property
    def file_extensions(self) -> Tuple[str, ...]:
        """Return supported file extensions."""
        return (".ts", ".tsx", ".mts", ".cts")

    def _get_ts_parser(self):
        """Get or create the TypeScript parser for .ts files."""
        if self._ts_parser is None:
            try:
                from tree_sitter_typescript import language_typescript

                self._ts_parser = tree_sitter.Parser()
                self._ts_parser.language = tree_sitter.Language(language_typescript())
                logger.debug("TypeScript parser initialized")
            except ImportError as e:
                logger.warning("tree-sitter-typescript not available: %s", e)
                self._ts_parser = None

        return self._ts_parser

    def _get_tsx_parser(self):
        """Get or create the TSX parser for .tsx files."""
        if self._tsx_parser is None:
            try:
                from tree_sitter_typescript import language_tsx

                self._tsx_parser = tree_sitter.Parser()
                self._tsx_parser.language = tree_sitter.Language(language_tsx())
                logger.debug("TSX parser initialized")
            except ImportError as e:
                logger.warning("tree-sitter-typescript (TSX) not available: %s", e)
                self._tsx_parser = None

        return self._tsx_parser

    def _get_parser(self, file_path: Optional[str] = None):
        """Get the appropriate parser based on file extension."""
        if file_path and file_path.endswith('.tsx'):
            return self._get_tsx_parser()
        return self._get_ts_parser()

    def parse(self, text: str, file_path: Optional[str] = None) -> Any:
        """Parse text and return a Tree-sitter tree."""
        parser = self._get_parser(file_path)
        if parser is None:
            return None

        # Handle both str and bytes input
        if isinstance(text, bytes):
            text_bytes = text
        elif isinstance(text, str):
            text_bytes = text.encode('utf-8')
        else:
            return None

        with self._parse_lock:
            return parser.parse(text_bytes)

    def list_files(self, paths: List[str]) -> List[str]:
        """List all TypeScript files in the given paths."""
        ts_files = []

        for path in paths:
            if os.path.isfile(path):
                if any(path.endswith(ext) for ext in self.file_extensions):
                    ts_files.append(path)
            elif os.path.isdir(path):
                for root, dirs, files in os.walk(path):
                    # Skip common ignore directories
                    dirs[:] = [d for d in dirs if not d.startswith('.') and d not in ['node_modules', 'dist', 'build']]

                    for file in sorted(files):
                        if any(file.endswith(ext) for ext in self.file_extensions):
                            ts_files.append(os.path.join(root, file))
            else:
                logger.warning("Path does not exist: %s", path)

        return ts_files

    def node_text(self, text: str, start_byte: int, end_byte: int) -> str:
        """Extract text between byte offsets."""
        try:
            return text.encode('utf-8')[start_byte:end_byte].decode('utf-8')
        except (UnicodeDecodeError, IndexError):
            return ""

    def byte_to_linecol(self, text: str, byte: int) -> Tuple[int, int]:
        """Convert byte offset to (line, column) 1-based."""
        text_bytes = text.encode('utf-8')
        if byte > len(text_bytes):
            byte = len(text_bytes)

        lines = text_bytes[:byte].decode('utf-8', errors='ignore').split('\n')
        line = len(lines)
        col = len(lines[-1]) + 1 if lines else 1
        return (line, col)

    def _walk(self, tree) -> _ScopeWalker:
        cached = self._walk_cache
        if cached is not None and cached[0] is tree:
            return cached[1]

        root_node = tree.root_node if hasattr(tree, 'root_node') else tree
        walker = _ScopeWalker().run(root_node)
        self._walk_cache = (tree, walker)
        return walker

    def iter_scope_nodes(self, tree):
        """
        Iterate over scope-defining nodes in the tree.

        Yields dicts with: id, kind, parent_id, node
        """
        if tree is None:
            return []
        return list(self._walk(tree).scopes)

    def iter_symbol_defs(self, tree):
        """
        Iterate over bindings (functions, variables, parameters, imports, ...).

        Yields dicts with:
        - name: Bound name
        - kind: "function_name", "variable", "parameter", "class", "import", "catch", "other"
        - scope_id: Numeric scope ID matching iter_scope_nodes
        - name_node: The identifier node being bound
        - node: The node describing the binding (function, declarator, parameter)
        """
        if tree is None:
            return []
        return list(self._walk(tree).definitions)

    def iter_identifier_refs(self, tree):
        """
        Iterate over identifier references (value positions only).

        Yields dicts with: name, scope_id, node
        """
        if tree is None:
            return []
        return list(self._walk(tree).references)


# Default instance
default_typescript_adapter = TypeScriptAdapter()
