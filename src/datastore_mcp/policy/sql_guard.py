"""SQL statement intent classification.

Parses SQL text with sqlglot and answers whether it is exactly a set of
SELECT statements or contains INSERT/UPDATE/DELETE statements. The read path
requires every statement to be a SELECT; the write predicates match if any
statement qualifies; text that cannot be parsed counts as a mutation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Final

import sqlglot
from sqlglot import expressions as exp

logger = logging.getLogger(__name__)


class StatementKind(str, Enum):
    """Kind of a single parsed statement."""

    select = "select"
    insert = "insert"
    update = "update"
    delete = "delete"
    other = "other"
    select_into = "select_into"  # SELECT ... INTO creates a table
    unknown = "unknown"  # sqlglot fell back to an opaque command


_WRITE_KINDS: Final[frozenset[StatementKind]] = frozenset(
    {StatementKind.insert, StatementKind.update, StatementKind.delete}
)
_MUTATION_KINDS: Final[frozenset[StatementKind]] = _WRITE_KINDS | {
    StatementKind.select_into,
    StatementKind.unknown,
}

# Variant dialect names accepted by sqlglot's reader
SQL_DIALECTS: Final[frozenset[str]] = frozenset({"mysql", "postgres", "tsql", "sqlite"})


@dataclass(frozen=True)
class StatementIntent:
    """Classification of one SQL text."""

    kinds: tuple[StatementKind, ...]
    parsed: bool

    @property
    def is_select(self) -> bool:
        return (
            self.parsed
            and len(self.kinds) > 0
            and all(kind == StatementKind.select for kind in self.kinds)
        )

    @property
    def is_insert(self) -> bool:
        return StatementKind.insert in self.kinds

    @property
    def is_update(self) -> bool:
        return StatementKind.update in self.kinds

    @property
    def is_delete(self) -> bool:
        return StatementKind.delete in self.kinds

    @property
    def is_mutation(self) -> bool:
        if not self.parsed:
            return True
        return any(kind in _MUTATION_KINDS for kind in self.kinds)


UNPARSED: Final[StatementIntent] = StatementIntent(kinds=(), parsed=False)


_NESTED_WRITES: Final[tuple[tuple[type[exp.Expression], StatementKind], ...]] = (
    (exp.Insert, StatementKind.insert),
    (exp.Update, StatementKind.update),
    (exp.Delete, StatementKind.delete),
)


def _query_kinds(expression: exp.Query) -> tuple[StatementKind, ...]:
    # Writes hidden in CTEs or subqueries, e.g. WITH d AS (DELETE ... RETURNING *) SELECT
    kinds = tuple(
        kind for node_type, kind in _NESTED_WRITES if expression.find(node_type) is not None
    )
    if expression.find(exp.Into) is not None:
        kinds += (StatementKind.select_into,)
    return kinds or (StatementKind.select,)


def _statement_kinds(expression: exp.Expression) -> tuple[StatementKind, ...]:
    # Select, Union, Intersect, Except and parenthesized queries
    if isinstance(expression, exp.Query):
        return _query_kinds(expression)
    return (_statement_kind(expression),)


def _statement_kind(expression: exp.Expression) -> StatementKind:
    if isinstance(expression, exp.Insert):
        return StatementKind.insert
    if isinstance(expression, exp.Update):
        return StatementKind.update
    if isinstance(expression, exp.Delete):
        return StatementKind.delete
    if isinstance(expression, exp.Command):
        return StatementKind.unknown
    return StatementKind.other


def classify_sql(sql: str, *, dialect: str | None = None) -> StatementIntent:
    """Classify SQL text into statement kinds.

    Args:
        sql: Raw SQL, possibly several statements separated by semicolons.
        dialect: sqlglot dialect used for parsing (mysql, postgres, tsql, sqlite).

    Returns:
        The StatementIntent; ``parsed`` is False when sqlglot rejected the text.
    """
    if dialect is not None and dialect not in SQL_DIALECTS:
        raise ValueError(f"Unsupported SQL dialect: {dialect}")

    if not sql or not sql.strip():
        return StatementIntent(kinds=(), parsed=True)

    try:
        expressions = sqlglot.parse(sql, read=dialect)
    except Exception as e:
        # ParseError, TokenError and friends all mean the text is not classifiable
        logger.debug("SQL could not be parsed for classification: %s", e)
        return UNPARSED

    if not isinstance(expressions, list):
        return UNPARSED

    kinds = tuple(
        kind
        for expression in expressions
        if expression is not None
        for kind in _statement_kinds(expression)
    )
    return StatementIntent(kinds=kinds, parsed=True)
