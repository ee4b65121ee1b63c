"""Restricted constant evaluation for annotation arguments.

Only literal forms are supported: strings (adjacent and ``+`` concatenation),
numbers, booleans, ``null``, list literals and references to other constants.
Anything else raises ``ConstantEvaluationError``.

Expressions arrive as the sibling syntax nodes the Dart grammar produces for
them, e.g. ``identifier`` followed by a ``selector`` for ``prefix.name``.
"""

from __future__ import annotations

import re
from typing import Any, Callable, Sequence

from tree_sitter import Node

from ..errors import ConstantEvaluationError

# Resolves ``name`` or ``prefix.name`` to a constant value.
Lookup = Callable[[str | None, str], Any]

_QUOTES = {"'", '"', "'''", '"""', "r'", 'r"', "r'''", 'r"""'}
_ESCAPES = {"n": "\n", "r": "\r", "t": "\t", "b": "\b", "f": "\f", "v": "\v"}
_LEADING_BLANK_LINE_RE = re.compile(r"[ \t]*\r?\n")

_CONSTRUCTOR_NODES = {"const_object_expression", "new_expression"}


def evaluate_constant(nodes: Sequence[Node], lookup: Lookup) -> Any:
    """Evaluate a constant expression given as sibling syntax nodes."""
    return _Evaluator(lookup).value(_significant(nodes))


def string_value(node: Node) -> str:
    """Decode a ``string_literal`` node, joining adjacent pieces.

    The grammar hides string contents, so each piece is read from the bytes
    between its quote tokens with escape sequences decoded in place.

    Raises:
        ConstantEvaluationError: the literal uses interpolation.
    """
    source = node.text
    base = node.start_byte
    pieces: list[str] = []
    opener: str | None = None
    chunks: list[str] = []
    pos = 0

    for child in node.children:
        if opener is None:
            if child.type in _QUOTES:
                opener, chunks, pos = child.type, [], child.end_byte
            continue

        delimiter = opener.lstrip("r")
        if child.type == delimiter:
            chunks.append(source[pos - base : child.start_byte - base].decode())
            piece = "".join(chunks)
            if len(delimiter) == 3:
                # A multi-line string drops its first line when that line is blank.
                match = _LEADING_BLANK_LINE_RE.match(piece)
                if match:
                    piece = piece[match.end() :]
            pieces.append(piece)
            opener = None
        elif child.type == "template_substitution":
            raise ConstantEvaluationError(f"string interpolation is not constant: {node.text.decode()}")
        elif child.type == "escape_sequence" and not opener.startswith("r"):
            chunks.append(source[pos - base : child.start_byte - base].decode())
            chunks.append(_unescape(child.text.decode()))
            pos = child.end_byte

    return "".join(pieces)


class _Evaluator:
    def __init__(self, lookup: Lookup):
        self.lookup = lookup

    def value(self, nodes: list[Node]) -> Any:
        if not nodes:
            raise ConstantEvaluationError("empty constant expression")
        head = nodes[0]
        if head.type == "identifier":
            return self.reference(head, nodes[1:])
        if len(nodes) > 1:
            raise _unsupported(nodes[1])

        kind = head.type
        if kind == "string_literal":
            return string_value(head)
        if kind in ("decimal_integer_literal", "hex_integer_literal", "decimal_floating_point_literal"):
            return _number(head)
        if kind == "true":
            return True
        if kind == "false":
            return False
        if kind == "null_literal":
            return None
        if kind == "parenthesized_expression":
            return self.value(_significant(head.children)[1:-1])
        if kind == "unary_expression":
            return self.negate(head)
        if kind == "additive_expression":
            return self.add(head)
        if kind == "list_literal":
            return self.list_literal(head)
        if kind in _CONSTRUCTOR_NODES:
            raise ConstantEvaluationError(f"constructor invocations are not supported: {_text(head)}")
        raise _unsupported(head)

    def reference(self, head: Node, selectors: list[Node]) -> Any:
        names = [_text(head)]
        for selector in selectors:
            inner = selector.named_children[0] if selector.type == "selector" and selector.named_children else None
            if inner is not None and inner.type == "argument_part":
                raise ConstantEvaluationError(f"constructor invocations are not supported: {names[-1]}")
            if inner is None or inner.type != "unconditional_assignable_selector":
                raise _unsupported(selector)
            names.extend(_text(c) for c in inner.named_children if c.type == "identifier")

        if len(names) == 1:
            return self.lookup(None, names[0])
        if len(names) == 2:
            return self.lookup(names[0], names[1])
        raise _unsupported(head)

    def negate(self, node: Node) -> Any:
        operator, *operand = _significant(node.children)
        if operator.type != "prefix_operator" or _text(operator) != "-":
            raise _unsupported(operator)
        value = self.value(operand)
        if not _is_number(value):
            raise ConstantEvaluationError("unary '-' needs a number")
        return -value

    def add(self, node: Node) -> Any:
        operands = _operands(node)
        value = self.value(operands[0])
        for operand in operands[1:]:
            right = self.value(operand)
            if isinstance(value, str) and isinstance(right, str):
                value += right
            elif _is_number(value) and _is_number(right):
                value += right
            else:
                raise ConstantEvaluationError("'+' needs two strings or two numbers")
        return value

    def list_literal(self, node: Node) -> list[Any]:
        items: list[Any] = []
        element: list[Node] = []
        for child in _significant(node.children):
            if child.type in ("const_builtin", "type_arguments", "["):
                continue
            if child.type in (",", "]"):
                if element:
                    items.append(self.value(element))
                element = []
                continue
            if child.type == "spread_element":
                raise ConstantEvaluationError("spread elements are not supported")
            element.append(child)
        return items


def _operands(node: Node) -> list[list[Node]]:
    """Split ``a + b + c`` into its operands.

    The grammar nests additive expressions to the right, so the right-hand
    side is flattened when it is itself a sum.
    """
    children = _significant(node.children)
    index = next(i for i, c in enumerate(children) if c.type == "additive_operator")
    operator = children[index]
    if _text(operator) != "+":
        raise _unsupported(operator)
    left, right = children[:index], children[index + 1 :]
    if len(right) == 1 and right[0].type == "additive_expression":
        return [left, *_operands(right[0])]
    return [left, right]


def _significant(nodes: Sequence[Node]) -> list[Node]:
    return [n for n in nodes if not n.is_extra]


def _text(node: Node) -> str:
    return node.text.decode()


def _unsupported(node: Node) -> ConstantEvaluationError:
    snippet = _text(node).splitlines()[0] if node.text else node.type
    return ConstantEvaluationError(f"unsupported constant expression near '{snippet}'")


def _unescape(sequence: str) -> str:
    ch = sequence[1:2]
    if ch == "x":
        return chr(int(sequence[2:4], 16))
    if ch == "u":
        digits = sequence[3:-1] if sequence.startswith("{", 2) else sequence[2:6]
        return chr(int(digits, 16))
    return _ESCAPES.get(ch, ch)


def _number(node: Node) -> int | float:
    cleaned = _text(node).replace("_", "")
    if node.type == "hex_integer_literal":
        return int(cleaned, 16)
    if node.type == "decimal_floating_point_literal":
        return float(cleaned)
    return int(cleaned)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)
