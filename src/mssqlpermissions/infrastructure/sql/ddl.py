"""
Dynamic DDL builder.

CREATE/ALTER/DROP/GRANT/DENY/REVOKE do not take bound parameters, so DDL is
assembled server side: a string expression concatenates literal keywords
with QUOTENAME(@param) calls over bound values, and the result runs through
EXEC. Usage:

    sql, params = (
        Ddl("CREATE LOGIN ").name("name", login.name)
        .text(" WITH PASSWORD = ").secret("password", login.plain_password)
        .build()
    )

Literal text must never carry user input, except permission tokens and
schema names that already passed the validators.
"""

from __future__ import annotations

from typing import Any, Dict, List, Sequence, Tuple

from mssqlpermissions.domain.errors import ValidationError

_TEXT = "text"
_EXPR = "expr"

# QUOTENAME returns NULL for longer input
MAX_QUOTED_LENGTH = 128


def sql_literal(text: str) -> str:
    """Single-quoted T-SQL literal."""
    return "N'" + text.replace("'", "''") + "'"


class Ddl:
    """Builder for one dynamic DDL statement."""

    def __init__(self, text: str = "") -> None:
        self._parts: List[Tuple[str, str]] = []
        self._params: Dict[str, Any] = {}
        if text:
            self.text(text)

    @property
    def params(self) -> Dict[str, Any]:
        return dict(self._params)

    def _bind(self, param: str, value: Any) -> None:
        if param in self._params and self._params[param] != value:
            raise ValueError(f"parameter @{param} bound twice with different values")
        self._params[param] = value

    def _bind_quoted(self, param: str, value: str) -> None:
        if value is not None and len(value) > MAX_QUOTED_LENGTH:
            raise ValidationError(
                f"value bound to @{param} too long for QUOTENAME (max {MAX_QUOTED_LENGTH} characters)"
            )
        self._bind(param, value)

    def text(self, text: str) -> "Ddl":
        """Append keyword text (never user input)."""
        if self._parts and self._parts[-1][0] == _TEXT:
            self._parts[-1] = (_TEXT, self._parts[-1][1] + text)
        else:
            self._parts.append((_TEXT, text))
        return self

    def name(self, param: str, value: str) -> "Ddl":
        """Append a bracket-quoted identifier bound to ``@param``."""
        self._bind_quoted(param, value)
        self._parts.append((_EXPR, f"QUOTENAME(@{param})"))
        return self

    def secret(self, param: str, value: str) -> "Ddl":
        """Append a single-quoted string literal bound to ``@param``."""
        self._bind_quoted(param, value)
        self._parts.append((_EXPR, f"QUOTENAME(@{param}, '''')"))
        return self

    def extend(self, other: "Ddl") -> "Ddl":
        for param, value in other._params.items():
            self._bind(param, value)
        for kind, value in other._parts:
            if kind == _TEXT:
                self.text(value)
            else:
                self._parts.append((kind, value))
        return self

    def options(self, options: Sequence["Ddl"], keyword: str = " WITH ") -> "Ddl":
        """Append ``keyword opt1, opt2`` when any options are given."""
        if not options:
            return self
        self.text(keyword)
        for index, option in enumerate(options):
            if index:
                self.text(", ")
            self.extend(option)
        return self

    def expression(self) -> str:
        pieces = [sql_literal(value) if kind == _TEXT else value for kind, value in self._parts]
        return " + ".join(pieces) if pieces else "N''"

    def build(self) -> Tuple[str, Dict[str, Any]]:
        """Wrap the expression in DECLARE/SET/EXEC and return it with its params."""
        sql = (
            "DECLARE @sql NVARCHAR(MAX);\n"
            f"SET @sql = {self.expression()};\n"
            "EXEC (@sql);"
        )
        return sql, self.params
