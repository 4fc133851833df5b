"""
Return-type classification for definitions.

Reads the return-type annotation already written on a function-valued
definition. Nothing is inferred: a function without an annotation has an
unknown return type and is never reported.
"""

from dataclasses import dataclass
from typing import Optional

from .collect import collect
from .scopes import Definition, Reference


# Syntax forms that denote a function value. Ambient `declare function` and
# empty-body overloads both parse as function_signature.
FUNCTION_NODE_TYPES = frozenset({
    'function_declaration',
    'generator_function_declaration',
    'function_expression',
    'function',
    'generator_function',
    'arrow_function',
    'function_signature',
})

VOID_TYPE_TEXT = 'void'
PARENTHESIZED_TYPE_TYPES = frozenset({'parenthesized_type'})


@dataclass(frozen=True)
class FunctionSignature:
    """What the annotations say about a function's return value."""
    has_return_type: bool
    is_void: bool

    @property
    def is_non_void(self) -> bool:
        return self.has_return_type and not self.is_void


def is_function_node(node) -> bool:
    return node is not None and node.type in FUNCTION_NODE_TYPES


def _first_named_child(node):
    children = node.named_children
    return children[0] if children else None


def _annotated_type(return_type):
    """Unwrap `: T` and `(T)` to `T`; function types hold `T` directly."""
    if return_type is None:
        return None
    if return_type.type == 'type_annotation':
        return_type = _first_named_child(return_type)
    while return_type is not None and return_type.type in PARENTHESIZED_TYPE_TYPES:
        return_type = _first_named_child(return_type)
    return return_type


def _is_void_type(type_node) -> bool:
    if type_node is None:
        return False
    text = type_node.text
    if isinstance(text, bytes):
        text = text.decode('utf-8', errors='ignore')
    return type_node.type == 'predefined_type' and text == VOID_TYPE_TEXT


def signature_of(function_node) -> FunctionSignature:
    """Read the signature of a function node or function type node."""
    return_type = function_node.child_by_field_name('return_type')
    if return_type is None:
        return FunctionSignature(has_return_type=False, is_void=False)
    return FunctionSignature(
        has_return_type=True,
        is_void=_is_void_type(_annotated_type(return_type)),
    )


def _parameter_signature(param) -> Optional[FunctionSignature]:
    annotation = _annotated_type(param.child_by_field_name('type'))
    if annotation is None or annotation.type != 'function_type':
        return None
    return signature_of(annotation)


def _variable_signature(declarator) -> Optional[FunctionSignature]:
    if declarator.type != 'variable_declarator':
        return None
    value = declarator.child_by_field_name('value')
    if not is_function_node(value):
        return None
    return signature_of(value)


def function_signature(definition: Definition) -> Optional[FunctionSignature]:
    """
    Classify a definition as a function with a (possibly absent) return type.

    Returns None when the definition is not one of the recognised
    function-valued shapes: a function-typed parameter, a variable initialised
    with a function, or a function declaration/expression itself.
    """
    node = definition.node
    if node is None:
        return None

    if definition.kind == 'parameter':
        return _parameter_signature(node)
    if definition.kind == 'variable':
        return _variable_signature(node)
    if definition.kind == 'function_name' and is_function_node(node):
        return signature_of(node)
    return None


def non_void_signature(definition: Definition) -> Optional[FunctionSignature]:
    signature = function_signature(definition)
    if signature is not None and signature.is_non_void:
        return signature
    return None


def is_non_void_function_reference(reference: Reference) -> bool:
    """True if any resolved definition is a function annotated with a non-void return type."""
    return len(collect(reference.resolved, non_void_signature)) > 0
