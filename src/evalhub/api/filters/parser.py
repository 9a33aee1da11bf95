# evalhub/api/filters/parser.py
from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any, Iterable, Optional

import sqlglot
from fastapi import HTTPException
from sqlalchemy import (
    FromClause,
    and_,
    column,
    false,
    func,
    literal,
    not_,
    null,
    or_,
    true,
)
from sqlalchemy.sql.elements import ColumnElement
from sqlglot import exp

logger = logging.getLogger(__name__)


# ==============================================================================
# sqlglot configuration & guards
# ==============================================================================

ALLOWED_NODES = (
    exp.Where,
    exp.Column,
    exp.Identifier,
    exp.Literal,
    exp.Boolean,
    exp.Null,
    exp.Paren,
    exp.And,
    exp.Or,
    exp.Not,
    exp.Neg,
    exp.EQ,
    exp.NEQ,
    exp.GT,
    exp.GTE,
    exp.LT,
    exp.LTE,
    exp.Like,
    exp.ILike,
    exp.In,
    exp.Is,
)

ALLOWED_FUNCTIONS = {
    "lower",
    "upper",
    "length",
    "coalesce",
}

OP_MAP = {
    exp.EQ: lambda c, v: c == v,
    exp.NEQ: lambda c, v: c != v,
    exp.GT: lambda c, v: c > v,
    exp.GTE: lambda c, v: c >= v,
    exp.LT: lambda c, v: c < v,
    exp.LTE: lambda c, v: c <= v,
    exp.Like: lambda c, v: c.like(v),
    exp.ILike: lambda c, v: c.ilike(v),
}

# Clauses that must not ride along with the WHERE expression
FORBIDDEN_CLAUSES = ("joins", "group", "having", "order", "limit", "offset", "with")

ISO_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T")
SAFE_LITERAL = re.compile(r"'([^']|'')*'")


# ==============================================================================
# Semicolon guard
# ==============================================================================


def has_unquoted_semicolon(s: str) -> bool:
    idx = 0
    while idx < len(s):
        m = SAFE_LITERAL.match(s, idx)
        if m:
            idx = m.end()
            continue
        if s[idx] == ";":
            return True
        idx += 1
    return False


# ==============================================================================
# AST helpers
# ==============================================================================


def _require_expr(node: exp.Expression | None) -> exp.Expression:
    if node is None:
        raise HTTPException(400, "Invalid filter expression: missing operand")
    return node


def _func_name(node: exp.Func) -> str:
    if isinstance(node, exp.Anonymous):
        return (node.name or "").lower()
    return node.sql_name().lower()


def _convert_literal(lit: exp.Literal) -> Any:
    token = lit.this

    if lit.is_string:
        if ISO_RE.match(token):
            try:
                return datetime.fromisoformat(token.replace("Z", "+00:00"))
            except ValueError:
                pass
        return token

    if lit.is_int:
        return int(token)

    if lit.is_number:
        return float(token)

    return token


def _validate_ast(expr: exp.Expression) -> None:
    for node in expr.find_all(exp.Expression):
        # And/Or subclass Func in sqlglot, so check the allowlist first
        if isinstance(node, ALLOWED_NODES):
            continue

        if isinstance(node, exp.Func):
            fname = _func_name(node)
            if fname not in ALLOWED_FUNCTIONS:
                raise HTTPException(400, f"Function '{fname}' not allowed")
            continue

        raise HTTPException(400, f"Unsupported filter expression: {type(node).__name__}")


class _Converter:
    def __init__(self, table: FromClause, extra_columns: Iterable[str]):
        self.table = table
        self.extra_columns = set(extra_columns)

    def column(self, node: exp.Column) -> ColumnElement[Any]:
        name = node.name
        if name in self.table.c:
            return self.table.c[name]
        if name in self.extra_columns:
            return column(name)
        logger.debug("Unknown column referenced in filter: %s", name)
        raise HTTPException(400, f"Unknown column '{name}' in filter expression")

    def convert(self, node: exp.Expression) -> ColumnElement[Any]:
        if isinstance(node, (exp.Where, exp.Paren)):
            return self.convert(node.this)

        # --------------------------------------------------------------
        # Boolean connectives (before Func, see _validate_ast)
        # --------------------------------------------------------------
        if isinstance(node, exp.And):
            left = self.convert(_require_expr(node.args.get("this")))
            right = self.convert(_require_expr(node.args.get("expression")))
            return and_(left, right)

        if isinstance(node, exp.Or):
            left = self.convert(_require_expr(node.args.get("this")))
            right = self.convert(_require_expr(node.args.get("expression")))
            return or_(left, right)

        if isinstance(node, exp.Not):
            return not_(self.convert(_require_expr(node.this)))

        # --------------------------------------------------------------
        # Leaves
        # --------------------------------------------------------------
        if isinstance(node, exp.Column):
            return self.column(node)

        if isinstance(node, exp.Literal):
            return literal(_convert_literal(node))

        if isinstance(node, exp.Boolean):
            return true() if node.this else false()

        if isinstance(node, exp.Null):
            return null()

        if isinstance(node, exp.Neg):
            return -self.convert(_require_expr(node.this))

        # --------------------------------------------------------------
        # Predicates
        # --------------------------------------------------------------
        if isinstance(node, exp.In):
            if node.args.get("query") is not None:
                raise HTTPException(400, "Subqueries are not allowed in filters")
            target = self.convert(_require_expr(node.this))
            values = [self.convert(v) for v in node.expressions]
            if not values:
                raise HTTPException(400, "IN requires at least one value")
            return target.in_(values)

        if isinstance(node, exp.Is):
            target = self.convert(_require_expr(node.this))
            if not isinstance(node.expression, exp.Null):
                raise HTTPException(400, "Only IS NULL / IS NOT NULL are supported")
            return target.is_(None)

        for op_type, builder in OP_MAP.items():
            if isinstance(node, op_type):
                left = self.convert(_require_expr(node.args.get("this")))
                right = self.convert(_require_expr(node.args.get("expression")))
                return builder(left, right)

        if isinstance(node, exp.Func):
            name = _func_name(node)
            if name not in ALLOWED_FUNCTIONS:
                raise HTTPException(400, f"Function '{name}' not allowed")
            operands = [node.this] if isinstance(node.this, exp.Expression) else []
            operands.extend(node.expressions)
            return getattr(func, name)(*[self.convert(arg) for arg in operands])

        logger.debug("Unsupported node %s (%s)", node, type(node).__name__)
        raise HTTPException(400, f"Unsupported expression: {node}")


# ==============================================================================
# Entry point
# ==============================================================================


def parse_filter(
    filter_str: Optional[str],
    table: FromClause,
    extra_columns: Iterable[str] = (),
) -> ColumnElement[bool] | None:
    """
    Turn a user-supplied WHERE-style expression into a SQLAlchemy predicate.

    Column names resolve against ``table`` first, then against
    ``extra_columns`` (aliased projection columns, emitted unqualified).
    Any parse or validation failure is a 400.
    """
    if filter_str is None or filter_str.strip() == "":
        return None

    raw = filter_str.strip()
    logger.debug("Received filter: %s", raw)

    if has_unquoted_semicolon(raw):
        raise HTTPException(400, "Invalid filter: semicolons not allowed.")

    try:
        stmt = sqlglot.parse_one(f"SELECT * FROM t WHERE {raw}")
    except Exception as exc:
        raise HTTPException(400, f"Invalid filter: {exc}") from None

    if not isinstance(stmt, exp.Select):
        raise HTTPException(400, "Invalid filter expression")
    if any(stmt.args.get(key) for key in FORBIDDEN_CLAUSES):
        raise HTTPException(400, "Invalid filter expression")

    where = stmt.args.get("where")
    if where is None:
        raise HTTPException(400, "Invalid filter expression")

    _validate_ast(where)
    return _Converter(table, extra_columns).convert(where)
