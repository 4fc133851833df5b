"""
retcheck Tree-sitter engine package.

This package provides the analysis engine: the TypeScript adapter, scope
resolution, return-type and call-site classification, and the runner.
"""

from .types import (
    Finding, RuleMeta, Rule, RuleContext, Requires,
    LanguageAdapter, Severity, FileRange, NodeRange
)

from .registry import (
    register_rule, register_adapter, get_adapter, get_rule,
    get_rule_ids, get_enabled_rules, discover_rules, clear
)

from .config import (
    EngineConfig, load_config, get_default_config, save_config, find_config_file, get_rule_severity
)

from .scopes import Definition, Reference, Scope, ScopeGraph, build_scopes

__all__ = [
    # Types
    "Finding", "RuleMeta", "Rule", "RuleContext", "Requires",
    "LanguageAdapter", "Severity", "FileRange", "NodeRange",

    # Registry
    "register_rule", "register_adapter", "get_adapter", "get_rule",
    "get_rule_ids", "get_enabled_rules", "discover_rules", "clear",

    # Config
    "EngineConfig", "load_config", "get_default_config", "save_config", "find_config_file", "get_rule_severity",

    # Scopes
    "Definition", "Reference", "Scope", "ScopeGraph", "build_scopes"
]
