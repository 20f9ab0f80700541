"""Update, condition and key-condition expressions.

Expressions are tokenized and parsed by a small recursive-descent parser
into typed ASTs, which are then evaluated against an item document and
the request's ExpressionAttributeNames / ExpressionAttributeValues maps.

Parsing is deliberately lenient where clients depend on it:
- An update expression never fails. Clauses other than SET are skipped,
  and a malformed assignment is dropped while the well-formed ones in
  the same expression still apply.
- An unresolved ``#alias`` is used verbatim as the attribute name.
- An unresolved ``:placeholder`` skips the assignment in an update and
  makes a comparison false in a condition.
"""

import copy
import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from .models import KeySchema
from .schema import IDENTIFIER_KEY

logger = logging.getLogger(__name__)

Names = dict[str, str]
Values = dict[str, Any]

UPDATE_CLAUSES = ("SET", "REMOVE", "ADD", "DELETE")


class ExpressionSyntaxError(ValueError):
    """Raised when an expression cannot be parsed."""

    def __init__(self, message: str, position: int) -> None:
        self.position = position
        super().__init__(f"{message} at position {position}")


# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------


class TokenType(Enum):
    NAME = "name"
    ALIAS = "alias"
    PLACEHOLDER = "placeholder"
    COMPARATOR = "comparator"
    COMMA = "comma"
    LPAREN = "lparen"
    RPAREN = "rparen"
    DOT = "dot"
    UNKNOWN = "unknown"
    END = "end"


@dataclass(frozen=True)
class Token:
    type: TokenType
    text: str
    position: int


_TOKEN_PATTERN = re.compile(
    r"""
    (?P<space>\s+)
  | (?P<alias>\#[A-Za-z0-9_]+)
  | (?P<placeholder>:[A-Za-z0-9_]+)
  | (?P<comparator><>|<=|>=|=|<|>)
  | (?P<comma>,)
  | (?P<lparen>\()
  | (?P<rparen>\))
  | (?P<dot>\.)
  | (?P<name>[A-Za-z0-9_$]+)
  | (?P<unknown>.)
    """,
    re.VERBOSE | re.DOTALL,
)


def tokenize(expression: str) -> list[Token]:
    """Split an expression into tokens, ending with a single END token."""
    tokens = []
    for match in _TOKEN_PATTERN.finditer(expression):
        kind = match.lastgroup
        if kind == "space" or kind is None:
            continue
        tokens.append(Token(TokenType(kind), match.group(), match.start()))
    tokens.append(Token(TokenType.END, "", len(expression)))
    return tokens


# ---------------------------------------------------------------------------
# AST
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Path:
    """A document path such as ``#data.tokens``; segments are kept unresolved."""

    segments: tuple[str, ...]

    def resolve(self, names: Names) -> tuple[str, ...]:
        """Substitute ``#alias`` segments, leaving unknown aliases verbatim."""
        return tuple(names.get(s, s) if s.startswith("#") else s for s in self.segments)


@dataclass(frozen=True)
class Placeholder:
    name: str


Operand = Path | Placeholder


@dataclass(frozen=True)
class Assignment:
    target: Path
    source: Placeholder


@dataclass(frozen=True)
class UpdateExpression:
    assignments: tuple[Assignment, ...]


@dataclass(frozen=True)
class Comparison:
    left: Operand
    operator: str
    right: Operand


@dataclass(frozen=True)
class AttributeExists:
    path: Path
    negated: bool = False


@dataclass(frozen=True)
class BeginsWith:
    path: Path
    prefix: Operand


@dataclass(frozen=True)
class And:
    left: "Condition"
    right: "Condition"


@dataclass(frozen=True)
class Or:
    left: "Condition"
    right: "Condition"


@dataclass(frozen=True)
class Not:
    operand: "Condition"


Condition = Comparison | AttributeExists | BeginsWith | And | Or | Not


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class _Parser:
    def __init__(self, expression: str) -> None:
        self.tokens = tokenize(expression)
        self.pos = 0

    def peek(self) -> Token:
        return self.tokens[self.pos]

    def advance(self) -> Token:
        token = self.tokens[self.pos]
        if token.type is not TokenType.END:
            self.pos += 1
        return token

    def at_keyword(self, *words: str) -> bool:
        token = self.peek()
        return token.type is TokenType.NAME and token.text.upper() in words

    def expect(self, token_type: TokenType, text: str | None = None) -> Token:
        token = self.peek()
        if token.type is not token_type or (text is not None and token.text != text):
            raise ExpressionSyntaxError(f"Expected {text or token_type.value!r}", token.position)
        return self.advance()

    # -- paths and operands ---------------------------------------------------

    def parse_path(self) -> Path:
        segments = [self._segment()]
        while self.peek().type is TokenType.DOT:
            self.advance()
            segments.append(self._segment())
        return Path(tuple(segments))

    def _segment(self) -> str:
        token = self.peek()
        if token.type not in (TokenType.NAME, TokenType.ALIAS):
            raise ExpressionSyntaxError("Expected attribute name", token.position)
        return self.advance().text

    def parse_operand(self) -> Operand:
        if self.peek().type is TokenType.PLACEHOLDER:
            return Placeholder(self.advance().text)
        return self.parse_path()

    # -- update expressions ---------------------------------------------------

    def parse_update(self) -> UpdateExpression:
        assignments: list[Assignment] = []
        while self.peek().type is not TokenType.END:
            if self.at_keyword("SET"):
                self.advance()
                assignments.extend(self._parse_set_clause())
            else:
                # REMOVE / ADD / DELETE clauses and stray tokens
                self.advance()
        return UpdateExpression(tuple(assignments))

    def _parse_set_clause(self) -> list[Assignment]:
        assignments = []
        while True:
            try:
                assignments.append(self._parse_assignment())
            except ExpressionSyntaxError as e:
                logger.debug("Skipping malformed SET assignment: %s", e)
                self._recover()
            if self.peek().type is not TokenType.COMMA:
                return assignments
            self.advance()

    def _parse_assignment(self) -> Assignment:
        target = self.parse_path()
        self.expect(TokenType.COMPARATOR, "=")
        token = self.expect(TokenType.PLACEHOLDER)
        following = self.peek()
        if following.type not in (TokenType.COMMA, TokenType.END) and not self.at_keyword(
            *UPDATE_CLAUSES
        ):
            raise ExpressionSyntaxError("Unsupported assignment source", following.position)
        return Assignment(target, Placeholder(token.text))

    def _recover(self) -> None:
        """Skip to the next top-level comma, clause keyword or the end."""
        depth = 0
        while True:
            token = self.peek()
            if token.type is TokenType.END:
                return
            if depth == 0 and (token.type is TokenType.COMMA or self.at_keyword(*UPDATE_CLAUSES)):
                return
            if token.type is TokenType.LPAREN:
                depth += 1
            elif token.type is TokenType.RPAREN and depth > 0:
                depth -= 1
            self.advance()

    # -- conditions -----------------------------------------------------------

    def parse_condition(self) -> Condition:
        condition = self._parse_or()
        token = self.peek()
        if token.type is not TokenType.END:
            raise ExpressionSyntaxError(f"Unexpected token {token.text!r}", token.position)
        return condition

    def _parse_or(self) -> Condition:
        condition = self._parse_and()
        while self.at_keyword("OR"):
            self.advance()
            condition = Or(condition, self._parse_and())
        return condition

    def _parse_and(self) -> Condition:
        condition = self._parse_not()
        while self.at_keyword("AND"):
            self.advance()
            condition = And(condition, self._parse_not())
        return condition

    def _parse_not(self) -> Condition:
        if self.at_keyword("NOT"):
            self.advance()
            return Not(self._parse_not())
        return self._parse_primary()

    def _parse_primary(self) -> Condition:
        token = self.peek()
        if token.type is TokenType.LPAREN:
            self.advance()
            condition = self._parse_or()
            self.expect(TokenType.RPAREN)
            return condition

        if token.type is TokenType.NAME and self.tokens[self.pos + 1].type is TokenType.LPAREN:
            return self._parse_function()

        left = self.parse_operand()
        operator = self.expect(TokenType.COMPARATOR).text
        right = self.parse_operand()
        return Comparison(left, operator, right)

    def _parse_function(self) -> Condition:
        name_token = self.advance()
        name = name_token.text.lower()
        self.expect(TokenType.LPAREN)
        if name in ("attribute_exists", "attribute_not_exists"):
            path = self.parse_path()
            self.expect(TokenType.RPAREN)
            return AttributeExists(path, negated=name == "attribute_not_exists")
        if name == "begins_with":
            path = self.parse_path()
            self.expect(TokenType.COMMA)
            prefix = self.parse_operand()
            self.expect(TokenType.RPAREN)
            return BeginsWith(path, prefix)
        raise ExpressionSyntaxError(
            f"Unsupported function {name_token.text!r}", name_token.position
        )


def parse_update_expression(expression: str) -> UpdateExpression:
    """Parse an update expression. Never raises; malformed parts are dropped."""
    return _Parser(expression).parse_update()


def parse_condition_expression(expression: str) -> Condition:
    """
    Parse a condition expression.

    Raises:
        ExpressionSyntaxError: If the expression is malformed or uses an
            unsupported operator or function
    """
    return _Parser(expression).parse_condition()


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


class _Missing:
    def __repr__(self) -> str:
        return "<missing>"


MISSING: Any = _Missing()


def _child(value: Any, name: str) -> Any:
    if not isinstance(value, dict):
        return MISSING
    # Typed wire maps ({"M": {...}}) are descended transparently
    if len(value) == 1 and isinstance(value.get("M"), dict):
        value = value["M"]
    return value.get(name, MISSING)


def resolve_path(document: dict[str, Any] | None, segments: tuple[str, ...]) -> Any:
    """Return the value at a resolved path, or ``MISSING``."""
    if document is None:
        return MISSING
    value = document.get(segments[0], MISSING)
    for segment in segments[1:]:
        if value is MISSING:
            break
        value = _child(value, segment)
    return value


def _scalar(value: Any) -> Any:
    """Unwrap typed ``S`` / ``N`` values so they compare like plain JSON."""
    if isinstance(value, dict) and len(value) == 1:
        ((type_name, inner),) = value.items()
        if type_name == "S" and isinstance(inner, str):
            return inner
        if type_name == "N" and isinstance(inner, str):
            try:
                return Decimal(inner)
            except InvalidOperation:
                return inner
    return value


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float | Decimal) and not isinstance(value, bool)


def _compare(left: Any, operator: str, right: Any) -> bool:
    if left is MISSING or right is MISSING:
        return False
    left, right = _scalar(left), _scalar(right)
    if operator == "=":
        return bool(left == right)
    if operator == "<>":
        return bool(left != right)
    comparable = (isinstance(left, str) and isinstance(right, str)) or (
        _is_number(left) and _is_number(right)
    )
    if not comparable:
        return False
    if operator == "<":
        return bool(left < right)
    if operator == "<=":
        return bool(left <= right)
    if operator == ">":
        return bool(left > right)
    return bool(left >= right)


class _Evaluator:
    def __init__(self, document: dict[str, Any] | None, names: Names, values: Values) -> None:
        self.document = document
        self.names = names
        self.values = values

    def operand(self, operand: Operand) -> Any:
        if isinstance(operand, Placeholder):
            return self.values.get(operand.name, MISSING)
        return resolve_path(self.document, operand.resolve(self.names))

    def evaluate(self, condition: Condition) -> bool:
        match condition:
            case Comparison(left, operator, right):
                return _compare(self.operand(left), operator, self.operand(right))
            case AttributeExists(path, negated):
                exists = resolve_path(self.document, path.resolve(self.names)) is not MISSING
                return exists != negated
            case BeginsWith(path, prefix):
                value = _scalar(self.operand(path))
                expected = _scalar(self.operand(prefix))
                return (
                    isinstance(value, str)
                    and isinstance(expected, str)
                    and value.startswith(expected)
                )
            case And(left, right):
                return self.evaluate(left) and self.evaluate(right)
            case Or(left, right):
                return self.evaluate(left) or self.evaluate(right)
            case Not(operand):
                return not self.evaluate(operand)
        raise TypeError(f"Unknown condition node: {condition!r}")


def evaluate(
    condition: Condition,
    document: dict[str, Any] | None,
    names: Names | None = None,
    values: Values | None = None,
) -> bool:
    """Evaluate a parsed condition against a document (None if absent)."""
    return _Evaluator(document, names or {}, values or {}).evaluate(condition)


def evaluate_condition(
    document: dict[str, Any] | None,
    expression: str | None,
    names: Names | None = None,
    values: Values | None = None,
) -> bool:
    """
    Evaluate a condition expression against the current item.

    A missing or unparseable expression places no guard on the write.
    """
    if not expression:
        return True
    try:
        condition = parse_condition_expression(expression)
    except ExpressionSyntaxError as e:
        logger.warning("Ignoring unparseable condition %r: %s", expression, e)
        return True
    return evaluate(condition, document, names, values)


def _assign(document: dict[str, Any], segments: tuple[str, ...], value: Any) -> None:
    if len(segments) == 1:
        document[segments[0]] = value
        return
    parent = resolve_path(document, segments[:-1])
    if not isinstance(parent, dict):
        logger.debug("Skipping assignment to %s: parent is not a map", ".".join(segments))
        return
    if len(parent) == 1 and isinstance(parent.get("M"), dict):
        parent = parent["M"]
    parent[segments[-1]] = value


def apply_update(
    document: dict[str, Any],
    expression: str | None,
    names: Names | None = None,
    values: Values | None = None,
) -> dict[str, Any]:
    """
    Apply the SET assignments of an update expression.

    Returns a new document; ``document`` is not modified.
    """
    names = names or {}
    values = values or {}
    updated = copy.deepcopy(document)
    if not expression:
        return updated
    for assignment in parse_update_expression(expression).assignments:
        if assignment.source.name not in values:
            logger.debug("Skipping assignment: unresolved value %s", assignment.source.name)
            continue
        value = copy.deepcopy(values[assignment.source.name])
        _assign(updated, assignment.target.resolve(names), value)
    return updated


def update_targets(expression: str | None, names: Names | None = None) -> list[tuple[str, ...]]:
    """Resolved paths the SET assignments of an update expression write to."""
    if not expression:
        return []
    names = names or {}
    return [a.target.resolve(names) for a in parse_update_expression(expression).assignments]


# ---------------------------------------------------------------------------
# Key conditions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class KeyCondition:
    """
    What a Query's key condition selects.

    Attributes:
        attribute: Partition (or ``id``) attribute matched by equality,
            None when the expression names no usable key equality
        value: The value that attribute must equal
        sort_conditions: Clauses on the sort key, applied as a filter
        names: Name aliases the sort clauses are evaluated with
        values: Value placeholders the sort clauses are evaluated with
    """

    attribute: str | None = None
    value: Any = None
    sort_conditions: tuple[Condition, ...] = ()
    names: Names = field(default_factory=dict)
    values: Values = field(default_factory=dict)

    def matches(self, item: dict[str, Any]) -> bool:
        """True if the item satisfies every sort-key clause."""
        return all(evaluate(c, item, self.names, self.values) for c in self.sort_conditions)


def _conjuncts(condition: Condition) -> list[Condition]:
    if isinstance(condition, And):
        return _conjuncts(condition.left) + _conjuncts(condition.right)
    return [condition]


def _single_attribute(operand: Operand, names: Names) -> str | None:
    if isinstance(operand, Path) and len(operand.segments) == 1:
        return operand.resolve(names)[0]
    return None


def _equality(clause: Condition, names: Names, values: Values) -> tuple[str, Any] | None:
    if not isinstance(clause, Comparison) or clause.operator != "=":
        return None
    for path, other in ((clause.left, clause.right), (clause.right, clause.left)):
        attribute = _single_attribute(path, names)
        if attribute is not None and isinstance(other, Placeholder) and other.name in values:
            return attribute, values[other.name]
    return None


def _on_attribute(clause: Condition, attribute: str, names: Names) -> bool:
    if isinstance(clause, BeginsWith):
        return _single_attribute(clause.path, names) == attribute
    if isinstance(clause, Comparison):
        return attribute in (
            _single_attribute(clause.left, names),
            _single_attribute(clause.right, names),
        )
    return False


def parse_key_condition(
    expression: str | None,
    names: Names | None,
    values: Values | None,
    key_schema: KeySchema,
) -> KeyCondition:
    """
    Extract the partition equality and sort-key clauses of a key condition.

    Only the top-level AND conjunction is considered. An empty or
    unparseable expression yields a condition that selects the whole
    table.
    """
    names = names or {}
    values = values or {}
    if not expression:
        return KeyCondition()
    try:
        clauses = _conjuncts(parse_condition_expression(expression))
    except ExpressionSyntaxError as e:
        logger.warning("Ignoring unparseable key condition %r: %s", expression, e)
        return KeyCondition()

    equalities = [eq for eq in (_equality(c, names, values) for c in clauses) if eq is not None]
    attribute, value = None, None
    for candidate in (key_schema.partition_key, IDENTIFIER_KEY):
        matched = [v for name, v in equalities if name == candidate]
        if matched:
            attribute, value = candidate, matched[0]
            break

    sort_conditions: tuple[Condition, ...] = ()
    if key_schema.sort_key is not None:
        sort_key = key_schema.sort_key
        sort_conditions = tuple(c for c in clauses if _on_attribute(c, sort_key, names))
    return KeyCondition(
        attribute=attribute,
        value=value,
        sort_conditions=sort_conditions,
        names=names,
        values=values,
    )
