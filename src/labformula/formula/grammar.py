"""Lark grammar for the arithmetic sides of a condition.

Once variables have been substituted, a side of a condition is plain
arithmetic. The grammar is deliberately closed:
- Numbers: 12, 3.5, .5
- Binary: +, -, *, / (usual precedence, left associative)
- Unary: -, +
- Grouping: ( )

Nothing else (names, calls, exponents, strings) can be parsed.
"""

ARITHMETIC_GRAMMAR = r"""
    ?start: sum

    ?sum: product
        | sum "+" product -> add
        | sum "-" product -> sub

    ?product: unary
        | product "*" unary -> mul
        | product "/" unary -> div

    ?unary: atom
        | "-" unary -> neg
        | "+" unary -> pos

    ?atom: NUMBER -> number
        | "(" sum ")"

    // Integer or decimal; the sign is handled by the unary rule
    NUMBER: /(?:\d+\.?\d*|\.\d+)/

    %import common.WS
    %ignore WS
"""
