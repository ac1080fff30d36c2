"""WGSL operator mappings and allow-lists."""

import ast

# Binary operators
BINARY_OPERATORS: dict[type[ast.operator], str] = {
    ast.Add: "+",
    ast.Sub: "-",
    ast.Mult: "*",
    ast.Div: "/",
    ast.Mod: "%",
    ast.LShift: "<<",
    ast.RShift: ">>",
    ast.BitAnd: "&",
    ast.BitOr: "|",
    ast.BitXor: "^",
}

# Comparison operators
COMPARISON_OPERATORS: dict[type[ast.cmpop], str] = {
    ast.Eq: "==",
    ast.NotEq: "!=",
    ast.Lt: "<",
    ast.LtE: "<=",
    ast.Gt: ">",
    ast.GtE: ">=",
}

# Logical operators
LOGICAL_OPERATORS: dict[type[ast.boolop], str] = {
    ast.And: "&&",
    ast.Or: "||",
}

# Unary operators
UNARY_OPERATORS: dict[type[ast.unaryop], str] = {
    ast.USub: "-",
    ast.Not: "!",
    ast.Invert: "~",
}

# Augmented assignment operators
AUGASSIGN_OPERATORS: dict[type[ast.operator], str] = {
    ast.Add: "+=",
    ast.Sub: "-=",
    ast.Mult: "*=",
    ast.Div: "/=",
    ast.Mod: "%=",
    ast.LShift: "<<=",
    ast.RShift: ">>=",
    ast.BitAnd: "&=",
    ast.BitOr: "|=",
    ast.BitXor: "^=",
}

# Tokens the generator accepts per node kind. Anything else is rejected
# instead of being copied into WGSL.
BINARY_OPS = frozenset(BINARY_OPERATORS.values()) | frozenset(
    COMPARISON_OPERATORS.values()
)
LOGICAL_OPS = frozenset(LOGICAL_OPERATORS.values())
UNARY_OPS = frozenset(UNARY_OPERATORS.values())
ASSIGNMENT_OPS = frozenset(AUGASSIGN_OPERATORS.values()) | {"="}

OPERATOR_PRECEDENCE: dict[str, int] = {
    # Assignment has lowest precedence
    "=": 1,
    # Logical operators
    "||": 2,
    "&&": 3,
    # Bitwise operators
    "|": 4,
    "^": 5,
    "&": 6,
    # Equality operators
    "==": 7,
    "!=": 7,
    # Relational operators
    "<": 8,
    ">": 8,
    "<=": 8,
    ">=": 8,
    # Shift operators
    "<<": 9,
    ">>": 9,
    # Additive operators
    "+": 10,
    "-": 10,
    # Multiplicative operators
    "*": 11,
    "/": 11,
    "%": 11,
    "unary": 12,
    # Function calls and member access
    "call": 13,
    "member": 14,
}
