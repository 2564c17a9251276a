"""MySQL to MariaDB 10.3 conversion engine."""

from .base import (
    DDL_CONTEXT_WINDOW,
    WIDE_VARCHAR_THRESHOLD,
    ConversionOptions,
    ConversionRule,
    RuleContext,
    RuleOutcome,
    in_ddl_context,
    line_number_of,
)
from .engine import DEFAULT_RULES, ConversionEngine, convert_mysql_to_mariadb
from .session_rules import COMMIT_FOOTER, SESSION_HEADER

__all__ = [
    "DDL_CONTEXT_WINDOW",
    "WIDE_VARCHAR_THRESHOLD",
    "ConversionOptions",
    "ConversionRule",
    "RuleContext",
    "RuleOutcome",
    "in_ddl_context",
    "line_number_of",
    "DEFAULT_RULES",
    "ConversionEngine",
    "convert_mysql_to_mariadb",
    "SESSION_HEADER",
    "COMMIT_FOOTER",
]
