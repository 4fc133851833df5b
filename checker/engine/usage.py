"""
Usage-context classification for call expressions.

Decides from the call's syntactic parent whether the value it produces is
used. The set of consuming parents is closed: any parent not listed counts
as discarding the value. Parentheses are transparent: ``(foo())`` is
judged by where the parenthesized expression lands.
"""

# parent node type -> field the call must occupy (None: any position)
CONSUMING_PARENT_TYPES = {
    'variable_declarator': 'value',      # let x = foo()
    'return_statement': None,            # return foo()
    'binary_expression': None,           # 1 + foo()
    'template_substitution': None,       # `${foo()}`
    'arrow_function': 'body',            # () => foo()
    'jsx_expression': None,              # <A b={foo()} />
    'pair': 'value',                     # { key: foo() }
}

AWAIT_TYPES = frozenset({'await_expression'})
PARENTHESIZED_TYPES = frozenset({'parenthesized_expression'})
# Short-circuit operators share binary_expression but do not consume their operands
LOGICAL_OPERATORS = frozenset({'&&', '||', '??'})


def _operator(binary) -> str:
    operator = binary.child_by_field_name('operator')
    if operator is None:
        return ''
    text = operator.text
    if isinstance(text, bytes):
        return text.decode('utf-8', errors='ignore')
    return str(text)


def _outermost(node):
    """The outermost parenthesized expression wrapping ``node`` (or ``node`` itself)."""
    while node.parent is not None and node.parent.type in PARENTHESIZED_TYPES:
        node = node.parent
    return node


def _consumed_by_parent(node) -> bool:
    parent = node.parent
    if parent is None or parent.type not in CONSUMING_PARENT_TYPES:
        return False
    if parent.type == 'binary_expression' and _operator(parent) in LOGICAL_OPERATORS:
        return False

    field = CONSUMING_PARENT_TYPES[parent.type]
    if field is None:
        return True
    child = parent.child_by_field_name(field)
    return child is not None and child == node


def is_consumed(call) -> bool:
    """True if the value of ``call`` is used by its surrounding expression.

    An awaited call is judged by where the await expression lands, one level up.
    """
    if call is None:
        return False

    node = _outermost(call)
    parent = node.parent
    if parent is not None and parent.type in AWAIT_TYPES:
        node = _outermost(parent)
    return _consumed_by_parent(node)
