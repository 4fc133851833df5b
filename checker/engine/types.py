"""
Core types for the retcheck engine.

This module provides shared dataclasses and types used across the engine,
adapters, and rules.
"""

from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Literal, Optional, Protocol, Tuple
from abc import ABC, abstractmethod


# Type aliases for clarity
Severity = Literal["info", "warn", "error"]
Priority = Literal["P0", "P1", "P2"]
Tier = Literal[0, 1]
FileRange = Tuple[int, int, int, int]  # (start_line, start_col, end_line, end_col) 1-based
NodeRange = Tuple[int, int]  # (start_byte, end_byte) 0-based


@dataclass(frozen=True)
class Finding:
    """A finding represents an issue detected by a rule."""
    rule: str
    message: str
    file: str
    start_byte: int
    end_byte: int
    severity: Severity
    meta: Optional[Dict[str, Any]] = None

    def _replace(self, **kwargs):
        """Provide NamedTuple-like _replace method."""
        return replace(self, **kwargs)


@dataclass(frozen=True)
class RuleMeta:
    """Metadata about a rule.

    Attributes:
        id: Unique rule identifier (e.g., "errors.unused_return_value")
        category: Rule category for grouping
        tier: Analysis tier (0=syntax, 1=scopes)
        priority: P0/P1/P2 priority level
        description: Human-readable description
        langs: List of supported languages
    """
    id: str
    category: str
    tier: Tier
    priority: Priority
    description: str = ""
    langs: List[str] = None  # ["typescript"]

    def __post_init__(self):
        if self.langs is None:
            object.__setattr__(self, 'langs', [])


@dataclass(frozen=True)
class Requires:
    """Represents requirements that a rule needs to run."""
    raw_text: bool = False
    syntax: bool = True
    scopes: bool = False  # Tier 1


@dataclass
class RuleContext:
    """Context passed to rules during execution."""
    file_path: str
    text: str
    tree: Any
    adapter: 'LanguageAdapter'  # Forward reference
    config: Dict[str, Any]
    scopes: Any = None  # Tier 1: ScopeGraph

    @property
    def language(self):
        """Get language from adapter."""
        return self.adapter.language_id if self.adapter else None

    def get_text(self, start_byte: int, end_byte: int) -> str:
        """Get text slice from byte positions."""
        return self.text.encode('utf-8')[start_byte:end_byte].decode('utf-8', errors='ignore')

    def node_span(self, node) -> tuple:
        """Get byte span of a node (start_byte, end_byte)."""
        if hasattr(node, 'start_byte') and hasattr(node, 'end_byte'):
            return (node.start_byte, node.end_byte)
        return (0, 0)


class Rule(Protocol):
    """Protocol for all rules in the engine.

    Rules analyze code and return findings. They should be stateless and thread-safe.
    """
    meta: RuleMeta
    requires: Requires

    def visit(self, ctx: RuleContext) -> Iterable[Finding]:
        """Visit a file and return findings.

        Args:
            ctx: Rule context containing file path, text, tree, adapter, config and scopes

        Returns:
            Iterable of findings for this file
        """
        ...


class LanguageAdapter(ABC):
    """Abstract base class for language adapters."""

    @property
    @abstractmethod
    def language_id(self) -> str:
        """Return the language identifier (e.g., 'typescript')."""
        pass

    @property
    @abstractmethod
    def file_extensions(self) -> Tuple[str, ...]:
        """Return supported file extensions (e.g., ('.ts', '.tsx'))."""
        pass

    @abstractmethod
    def parse(self, text: str, file_path: Optional[str] = None) -> Any:
        """Parse text and return a Tree-sitter tree."""
        pass

    @abstractmethod
    def list_files(self, paths: List[str]) -> List[str]:
        """List all files matching this adapter's extensions in the given paths."""
        pass

    @abstractmethod
    def node_text(self, text: str, start_byte: int, end_byte: int) -> str:
        """Extract text between byte offsets."""
        pass

    @abstractmethod
    def byte_to_linecol(self, text: str, byte: int) -> Tuple[int, int]:
        """Convert byte offset to (line, column) 1-based."""
        pass

    # === Scope analysis hooks (Tier-1) ===

    def iter_scope_nodes(self, tree: Any) -> List[Dict[str, Any]]:
        """
        Enumerate scope boundaries in the tree.

        Returns:
            List of dicts with keys: id, kind, parent_id, node
        """
        return []

    def iter_symbol_defs(self, tree: Any) -> List[Dict[str, Any]]:
        """
        Enumerate symbol definitions (bindings) in the tree.

        Returns:
            List of dicts with keys: name, kind, scope_id, name_node, node
        """
        return []

    def iter_identifier_refs(self, tree: Any) -> List[Dict[str, Any]]:
        """
        Enumerate identifier references (uses) in the tree.

        Returns:
            List of dicts with keys: name, scope_id, node
        """
        return []
