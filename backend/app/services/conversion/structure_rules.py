"""
Structural (DDL) rules: tables, engines, keys and partitioning.
"""

from __future__ import annotations

import re
from typing import Dict, List, Tuple

from ...models.conversion import ConversionIssue, IssueCategory, IssueType
from .base import RuleContext, RuleOutcome, detect, iter_create_table_statements, substitute

_IF_NOT_EXISTS_RE = re.compile(r"\bCREATE\s+TABLE\s+IF\s+NOT\s+EXISTS\b", re.IGNORECASE)
_USING_BTREE_RE = re.compile(r"[ \t]+USING\s+BTREE\b", re.IGNORECASE)
_ENGINE_INNODB_RE = re.compile(r"\bENGINE\s*=\s*InnoDB\b", re.IGNORECASE)
_INT_DISPLAY_WIDTH_RE = re.compile(r"\b(int)\s*\(\s*11\s*\)", re.IGNORECASE)
_TOGGLE_KEYS_RE = re.compile(r"\bALTER\s+TABLE\s+\S+\s+(DISABLE|ENABLE)\s+KEYS\b", re.IGNORECASE)
_ON_UPDATE_TIMESTAMP_RE = re.compile(
    r"\btimestamp\s+NOT\s+NULL\s+DEFAULT\s+CURRENT_TIMESTAMP\s+ON\s+UPDATE\s+CURRENT_TIMESTAMP\b",
    re.IGNORECASE,
)
_PARTITION_RE = re.compile(r"\bPARTITION\s+BY\s+((?:LINEAR\s+)?(?:RANGE|LIST|HASH|KEY))\b", re.IGNORECASE)
_ROW_FORMAT_RE = re.compile(r"\bROW_FORMAT\b", re.IGNORECASE)
_AUTO_INCREMENT_VALUE_RE = re.compile(r"\bAUTO_INCREMENT\s*=\s*(\d+)", re.IGNORECASE)

_VARCHAR_DEFINITION_RE = re.compile(
    r"(?:^|[(,])[ \t]*`?([\w$]+)`?[ \t]+varchar\s*\(\s*(\d+)\s*\)([^,\n]*)",
    re.IGNORECASE | re.MULTILINE,
)
_INLINE_KEY_RE = re.compile(r"\b(?:PRIMARY\s+KEY|UNIQUE)\b", re.IGNORECASE)
_INDEX_DEFINITION_RE = re.compile(
    r"(?:\b(FULLTEXT|SPATIAL|FOREIGN)\s+)?"
    r"\b(PRIMARY\s+KEY|UNIQUE(?:\s+(?:KEY|INDEX))?|KEY|INDEX)\s*"
    r"(?:(`[^`\n]+`|[\w$]+)\s*)?"
    r"\(((?:[^()]|\(\s*\d+\s*\))*)\)",
    re.IGNORECASE,
)
_INDEX_COLUMN_RE = re.compile(r"^\s*`?([\w$]+)`?\s*(?:\(\s*(\d+)\s*\))?", re.IGNORECASE)
_PLAIN_KEY_RE = re.compile(r"\b(KEY)\s+(?!\()([^\s(]+)\s*\(((?:[^()]|\(\s*\d+\s*\))*)\)", re.IGNORECASE)
_KEY_QUALIFIER_RE = re.compile(r"\b(?:PRIMARY|UNIQUE|FULLTEXT|SPATIAL|FOREIGN)\s+$", re.IGNORECASE)


def confirm_if_not_exists(ctx: RuleContext, text: str) -> RuleOutcome:
    return detect(
        _IF_NOT_EXISTS_RE,
        text,
        lambda match: ctx.issue(
            "MDB301",
            IssueType.INFO,
            IssueCategory.COMPATIBILITY,
            "CREATE TABLE IF NOT EXISTS is supported by MariaDB 10.3 and was kept as-is",
            matched=match.group(0),
        ),
    )


def strip_using_btree(ctx: RuleContext, text: str) -> RuleOutcome:
    def _replace(match):
        return "", ctx.issue(
            "MDB302",
            IssueType.INFO,
            IssueCategory.OPTIMIZATION,
            "Removed USING BTREE index hint (BTREE is the InnoDB default)",
            matched=match.group(0),
            auto_fixed=True,
        )

    return substitute(_USING_BTREE_RE, text, _replace)


def confirm_innodb_engine(ctx: RuleContext, text: str) -> RuleOutcome:
    return detect(
        _ENGINE_INNODB_RE,
        text,
        lambda match: ctx.issue(
            "MDB303",
            IssueType.INFO,
            IssueCategory.COMPATIBILITY,
            "Verified InnoDB engine declaration is MariaDB 10.3 compatible",
            matched=match.group(0),
        ),
    )


def simplify_int_display_width(ctx: RuleContext, text: str) -> RuleOutcome:
    def _replace(match):
        if not ctx.in_ddl(match.string, match.start()):
            return match.group(0), None
        replacement = match.group(1)
        return replacement, ctx.issue(
            "MDB304",
            IssueType.INFO,
            IssueCategory.OPTIMIZATION,
            "Simplified int(11) to int for better MariaDB 10.3 compatibility",
            matched=match.group(0),
            converted_text=replacement,
            auto_fixed=True,
        )

    return substitute(_INT_DISPLAY_WIDTH_RE, text, _replace)


def confirm_toggle_keys(ctx: RuleContext, text: str) -> RuleOutcome:
    return detect(
        _TOGGLE_KEYS_RE,
        text,
        lambda match: ctx.issue(
            "MDB305",
            IssueType.INFO,
            IssueCategory.COMPATIBILITY,
            f"{match.group(1).upper()} KEYS statement maintained for MariaDB compatibility",
            matched=match.group(0),
        ),
    )


def confirm_on_update_timestamp(ctx: RuleContext, text: str) -> RuleOutcome:
    return detect(
        _ON_UPDATE_TIMESTAMP_RE,
        text,
        lambda match: ctx.issue(
            "MDB306",
            IssueType.INFO,
            IssueCategory.COMPATIBILITY,
            "Verified timestamp with ON UPDATE CURRENT_TIMESTAMP is MariaDB compatible",
            matched=match.group(0),
        ),
    )


def confirm_auto_increment_values(ctx: RuleContext, text: str) -> RuleOutcome:
    def _report(match):
        if not ctx.in_ddl(text, match.start()):
            return None
        return ctx.issue(
            "MDB311",
            IssueType.INFO,
            IssueCategory.COMPATIBILITY,
            f"AUTO_INCREMENT value {match.group(1)} is compatible with MariaDB 10.3",
            matched=match.group(0),
        )

    return detect(_AUTO_INCREMENT_VALUE_RE, text, _report)


def detect_partitioning(ctx: RuleContext, text: str) -> RuleOutcome:
    """Flag partitioned tables, one issue per line of the original dump."""
    issues: List[ConversionIssue] = []
    for idx, line in enumerate(ctx.original.splitlines(), start=1):
        if line.lstrip().startswith("--"):
            continue
        match = _PARTITION_RE.search(line)
        if match is None:
            continue
        issues.append(
            ctx.issue(
                "MDB307",
                IssueType.WARNING,
                IssueCategory.COMPATIBILITY,
                f"Table partitioning detected (PARTITION BY {match.group(1).upper()}) - "
                "verify partition definitions and functions on MariaDB 10.3",
                matched=line,
                line_number=idx,
            )
        )
    return RuleOutcome(text=text, issues=issues)


def _varchar_columns(body: str) -> Tuple[Dict[str, int], List[Tuple[str, int, str]]]:
    """Map column name -> VARCHAR length, plus the columns keyed inline."""
    widths: Dict[str, int] = {}
    inline_keys: List[Tuple[str, int, str]] = []
    for match in _VARCHAR_DEFINITION_RE.finditer(body):
        name, width, rest = match.group(1), int(match.group(2)), match.group(3)
        widths[name.lower()] = width
        if _INLINE_KEY_RE.search(rest):
            inline_keys.append((name, width, match.group(0).strip(" \t(,")))
    return widths, inline_keys


def flag_wide_indexed_varchars(ctx: RuleContext, text: str) -> RuleOutcome:
    """
    Report keys whose VARCHAR columns may exceed the 767-byte key prefix once stored
    as 4-byte utf8mb4. Nothing is rewritten: prefix lengths, ROW_FORMAT=DYNAMIC or a
    schema change are all valid remedies.
    """
    threshold = ctx.options.wide_varchar_threshold
    issues: List[ConversionIssue] = []

    def _report(table: str, key: str, columns: List[Tuple[str, int]], snippet: str) -> None:
        described = ", ".join(f"{name} ({width} chars)" for name, width in columns)
        issues.append(
            ctx.issue(
                "MDB308",
                IssueType.ERROR,
                IssueCategory.COMPATIBILITY,
                f"Index {key} on table {table} covers VARCHAR column(s) wider than {threshold} characters: "
                f"{described}. Under utf8mb4 this may exceed the 767-byte key limit; use a prefix length, "
                "ROW_FORMAT=DYNAMIC or a narrower column",
                matched=snippet,
            )
        )

    for statement in iter_create_table_statements(text):
        body = statement.body(text)
        widths, inline_keys = _varchar_columns(body)
        if not widths:
            continue

        for name, width, snippet in inline_keys:
            if width > threshold:
                _report(statement.name, f"on column {name}", [(name, width)], snippet)

        for match in _INDEX_DEFINITION_RE.finditer(body):
            if match.group(1):
                continue
            wide: List[Tuple[str, int]] = []
            for part in match.group(4).split(","):
                column = _INDEX_COLUMN_RE.match(part)
                if column is None:
                    continue
                width = widths.get(column.group(1).lower())
                if width is None:
                    continue
                effective = int(column.group(2)) if column.group(2) else width
                if effective > threshold:
                    wide.append((column.group(1), effective))
            if wide:
                key_name = (match.group(3) or match.group(2)).replace("`", "")
                _report(statement.name, key_name, wide, match.group(0))

    return RuleOutcome(text=text, issues=issues)


def add_dynamic_row_format(ctx: RuleContext, text: str) -> RuleOutcome:
    threshold = ctx.options.wide_varchar_threshold
    pieces: List[str] = []
    issues: List[ConversionIssue] = []
    cursor = 0

    for statement in iter_create_table_statements(text):
        table_options = statement.options(text)
        engine = _ENGINE_INNODB_RE.search(table_options)
        if engine is None or _ROW_FORMAT_RE.search(table_options):
            continue
        if "utf8mb4" not in text[statement.start:statement.end].lower():
            continue
        widths, _ = _varchar_columns(statement.body(text))
        if not any(width > threshold for width in widths.values()):
            continue

        insert_at = statement.body_end + 1 + engine.end()
        pieces.append(text[cursor:insert_at])
        pieces.append(" ROW_FORMAT=DYNAMIC")
        cursor = insert_at
        issues.append(
            ctx.issue(
                "MDB309",
                IssueType.INFO,
                IssueCategory.OPTIMIZATION,
                f"Added ROW_FORMAT=DYNAMIC to table {statement.name} to allow long utf8mb4 index prefixes",
                matched=engine.group(0),
                converted_text=f"{engine.group(0)} ROW_FORMAT=DYNAMIC",
                auto_fixed=True,
            )
        )

    pieces.append(text[cursor:])
    return RuleOutcome(text="".join(pieces), issues=issues)


def normalize_plain_keys(ctx: RuleContext, text: str) -> RuleOutcome:
    def _replace(match):
        original = match.group(0)
        preceding = match.string[max(0, match.start() - 16):match.start()]
        if _KEY_QUALIFIER_RE.search(preceding) or not ctx.in_ddl(match.string, match.start()):
            return original, None
        key_name = re.sub(r"[^\w$]", "", match.group(2))
        if not key_name:
            return original, None
        replacement = f"{match.group(1)} `{key_name}` ({match.group(3)})"
        if replacement == original:
            return original, None
        return replacement, ctx.issue(
            "MDB310",
            IssueType.INFO,
            IssueCategory.COMPATIBILITY,
            "Ensured KEY syntax is MariaDB compatible",
            matched=original,
            converted_text=replacement,
            auto_fixed=True,
        )

    return substitute(_PLAIN_KEY_RE, text, _replace)
