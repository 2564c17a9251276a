"""
MySQL 8 feature rules.

Most of these only flag constructs for review. INVISIBLE attributes, JSON path
operators and `json` columns are rewritten.
"""

from __future__ import annotations

import re

from ...models.conversion import IssueCategory, IssueType
from .base import (
    COLUMN_DEFINITION_PREFIX,
    RuleContext,
    RuleOutcome,
    detect,
    line_start,
    string_literal_spans,
    substitute,
    substitute_outside,
)

WINDOW_FUNCTIONS = (
    "ROW_NUMBER",
    "RANK",
    "DENSE_RANK",
    "PERCENT_RANK",
    "CUME_DIST",
    "NTILE",
    "LAG",
    "LEAD",
    "FIRST_VALUE",
    "LAST_VALUE",
    "NTH_VALUE",
)
JSON_FUNCTIONS = (
    "JSON_EXTRACT",
    "JSON_UNQUOTE",
    "JSON_SET",
    "JSON_INSERT",
    "JSON_REPLACE",
    "JSON_REMOVE",
    "JSON_ARRAY",
    "JSON_OBJECT",
    "JSON_ARRAYAGG",
    "JSON_OBJECTAGG",
)
# Aggregates that MariaDB 10.3 does not implement at all
UNSUPPORTED_JSON_FUNCTIONS = frozenset({"JSON_ARRAYAGG", "JSON_OBJECTAGG"})

_CTE_RE = re.compile(
    r"\bWITH\s+(RECURSIVE\s+)?(`[^`\n]+`|[\w$]+)\s*(?:\([^()]*\)\s*)?AS\s*\(",
    re.IGNORECASE,
)
_WINDOW_FUNCTION_RE = re.compile(
    r"\b(" + "|".join(WINDOW_FUNCTIONS) + r")\s*\([^()]*\)\s*OVER\s*\(",
    re.IGNORECASE,
)
_GENERATED_COLUMN_RE = re.compile(r"\bAS\s*\((.*?)\)\s*(VIRTUAL|STORED)\b", re.IGNORECASE)
_CHECK_CONSTRAINT_RE = re.compile(r"\bCHECK\s*\(", re.IGNORECASE)
_JSON_FUNCTION_RE = re.compile(r"\b(" + "|".join(JSON_FUNCTIONS) + r")\s*\(", re.IGNORECASE)
_FULLTEXT_PARSER_RE = re.compile(r"\bWITH\s+PARSER\s+`?([\w$]+)`?", re.IGNORECASE)
_INVISIBLE_RE = re.compile(r"[ \t]*/\*!\d{5,6}\s+INVISIBLE\s*\*/|[ \t]+INVISIBLE\b", re.IGNORECASE)
# Index-level visibility: `ALTER INDEX idx INVISIBLE` and `KEY idx (...) INVISIBLE`
_ALTER_INDEX_TAIL_RE = re.compile(r"\bALTER\s+INDEX\s+(?:`[^`\n]+`|[\w$]+)\s*$", re.IGNORECASE)
_INDEX_DEFINITION_TAIL_RE = re.compile(
    r"(?:^\s*|\bADD\s+)(?:(?:UNIQUE|FULLTEXT|SPATIAL)\s+)?(?:KEY|INDEX)\b.*\)\s*$",
    re.IGNORECASE,
)

_JSON_OPERAND = r"((?:`[^`\n]+`|[A-Za-z_$][\w$]*)(?:\.(?:`[^`\n]+`|[A-Za-z_$][\w$]*))?)"
_JSON_UNQUOTE_PATH_RE = re.compile(_JSON_OPERAND + r"\s*->>\s*('[^'\n]*')")
_JSON_EXTRACT_PATH_RE = re.compile(_JSON_OPERAND + r"\s*->\s*('[^'\n]*')")

_JSON_COLUMN_RE = re.compile(COLUMN_DEFINITION_PREFIX + r"(json)\b", re.IGNORECASE | re.MULTILINE)
JSON_COLUMN_TYPE = "longtext COLLATE utf8mb4_bin"


def detect_ctes(ctx: RuleContext, text: str) -> RuleOutcome:
    def _report(match):
        kind = "Recursive common table expression" if match.group(1) else "Common table expression"
        return ctx.issue(
            "MDB401",
            IssueType.WARNING,
            IssueCategory.COMPATIBILITY,
            f"{kind} ({match.group(2).strip('`')}) detected - MySQL 8 feature, verify behaviour on MariaDB 10.3",
            matched=match.group(0),
        )

    return detect(_CTE_RE, text, _report)


def detect_window_functions(ctx: RuleContext, text: str) -> RuleOutcome:
    return detect(
        _WINDOW_FUNCTION_RE,
        text,
        lambda match: ctx.issue(
            "MDB402",
            IssueType.WARNING,
            IssueCategory.COMPATIBILITY,
            f"Window function {match.group(1).upper()}() detected - verify frame and ordering semantics on MariaDB 10.3",
            matched=match.group(0),
        ),
    )


def detect_generated_columns(ctx: RuleContext, text: str) -> RuleOutcome:
    return detect(
        _GENERATED_COLUMN_RE,
        text,
        lambda match: ctx.issue(
            "MDB403",
            IssueType.WARNING,
            IssueCategory.COMPATIBILITY,
            f"Generated {match.group(2).upper()} column detected - check that the expression "
            "uses functions available in MariaDB 10.3",
            matched=match.group(0),
        ),
    )


def detect_check_constraints(ctx: RuleContext, text: str) -> RuleOutcome:
    def _report(match):
        if not ctx.in_ddl(match.string, match.start()):
            return None
        return ctx.issue(
            "MDB404",
            IssueType.WARNING,
            IssueCategory.COMPATIBILITY,
            "CHECK constraint detected - MariaDB enforces CHECK constraints, existing rows must satisfy them",
            matched=match.group(0),
        )

    return detect(_CHECK_CONSTRAINT_RE, text, _report)


def detect_json_functions(ctx: RuleContext, text: str) -> RuleOutcome:
    def _report(match):
        name = match.group(1).upper()
        if name in UNSUPPORTED_JSON_FUNCTIONS:
            return ctx.issue(
                "MDB405",
                IssueType.ERROR,
                IssueCategory.COMPATIBILITY,
                f"JSON function {name}() is not available in MariaDB 10.3 and must be rewritten",
                matched=match.group(0),
            )
        return ctx.issue(
            "MDB405",
            IssueType.WARNING,
            IssueCategory.COMPATIBILITY,
            f"JSON function {name}() detected - MariaDB stores JSON as text, verify results",
            matched=match.group(0),
        )

    return detect(_JSON_FUNCTION_RE, text, _report)


def detect_fulltext_parsers(ctx: RuleContext, text: str) -> RuleOutcome:
    def _report(match):
        parser = match.group(1)
        if parser.lower() == "ngram":
            return None
        return ctx.issue(
            "MDB406",
            IssueType.WARNING,
            IssueCategory.COMPATIBILITY,
            f"FULLTEXT index parser '{parser}' is not available in MariaDB 10.3",
            matched=match.group(0),
        )

    return detect(_FULLTEXT_PARSER_RE, text, _report)


def strip_invisible_attribute(ctx: RuleContext, text: str) -> RuleOutcome:
    """
    Drop INVISIBLE from column and index definitions. `ALTER INDEX ... INVISIBLE`
    has nothing to fall back to in MariaDB 10.3 and is only reported.
    """

    def _replace(match):
        if not ctx.in_ddl(match.string, match.start()):
            return match.group(0), None
        before = match.string[line_start(match.string, match.start()):match.start()]
        if _ALTER_INDEX_TAIL_RE.search(before):
            return match.group(0), ctx.issue(
                "MDB407",
                IssueType.ERROR,
                IssueCategory.COMPATIBILITY,
                "ALTER INDEX ... INVISIBLE is not supported by MariaDB 10.3 (no invisible indexes); "
                "remove the statement or drop the index",
                matched=before.strip() + match.group(0),
            )
        if _INDEX_DEFINITION_TAIL_RE.search(before):
            return "", ctx.issue(
                "MDB407",
                IssueType.WARNING,
                IssueCategory.COMPATIBILITY,
                "Removed INVISIBLE index attribute (MariaDB 10.3 has no invisible indexes): "
                "the optimizer will use this index",
                matched=match.group(0),
                auto_fixed=True,
            )
        return "", ctx.issue(
            "MDB407",
            IssueType.ERROR,
            IssueCategory.COMPATIBILITY,
            "Removed INVISIBLE attribute (not supported by MariaDB 10.3): the column becomes visible "
            "to SELECT * and INSERT without a column list",
            matched=match.group(0),
            auto_fixed=True,
        )

    return substitute(_INVISIBLE_RE, text, _replace)


def rewrite_json_path_operators(ctx: RuleContext, text: str) -> RuleOutcome:
    """
    Rewrite `col->>'$.p'` first, then `col->'$.p'`. Arrows inside quoted literals
    such as row data are left alone.
    """

    def _unquote(match):
        replacement = f"JSON_UNQUOTE(JSON_EXTRACT({match.group(1)}, {match.group(2)}))"
        return replacement, ctx.issue(
            "MDB408",
            IssueType.WARNING,
            IssueCategory.SYNTAX,
            "Rewrote JSON ->> operator as JSON_UNQUOTE(JSON_EXTRACT(...))",
            matched=match.group(0),
            converted_text=replacement,
            auto_fixed=True,
        )

    def _extract(match):
        replacement = f"JSON_EXTRACT({match.group(1)}, {match.group(2)})"
        return replacement, ctx.issue(
            "MDB408",
            IssueType.WARNING,
            IssueCategory.SYNTAX,
            "Rewrote JSON -> operator as JSON_EXTRACT(...)",
            matched=match.group(0),
            converted_text=replacement,
            auto_fixed=True,
        )

    first = substitute_outside(string_literal_spans(text), _JSON_UNQUOTE_PATH_RE, text, _unquote)
    second = substitute_outside(
        string_literal_spans(first.text), _JSON_EXTRACT_PATH_RE, first.text, _extract
    )
    return RuleOutcome(text=second.text, issues=first.issues + second.issues)


def materialize_json_columns(ctx: RuleContext, text: str) -> RuleOutcome:
    """
    Rewrite `json` columns to `longtext COLLATE utf8mb4_bin`.

    Each issue carries the line of its own occurrence in the original dump: the
    occurrences found there are consumed in order as the working text is rewritten.
    """
    original_lines = iter(
        [
            ctx.original.count("\n", 0, match.start(2)) + 1
            for match in _JSON_COLUMN_RE.finditer(ctx.original)
            if ctx.in_ddl(ctx.original, match.start(2))
        ]
    )

    def _replace(match):
        if not ctx.in_ddl(match.string, match.start(2)):
            return match.group(0), None
        replacement = f"{match.group(1)}{JSON_COLUMN_TYPE}"
        return replacement, ctx.issue(
            "MDB409",
            IssueType.WARNING,
            IssueCategory.COMPATIBILITY,
            "Converted json column to longtext COLLATE utf8mb4_bin (MariaDB 10.3 JSON is a LONGTEXT alias)",
            matched=match.group(0).lstrip("(,"),
            converted_text=replacement.strip(" \t(,"),
            auto_fixed=True,
            line_number=next(original_lines, None),
        )

    return substitute(_JSON_COLUMN_RE, text, _replace)
