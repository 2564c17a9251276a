"""
Character set and collation rules.

MariaDB 10.3 knows none of the MySQL 8 `_0900_` collations and still treats `utf8`
as the 3-byte `utf8mb3`, so dumps are moved onto `utf8mb4` with collations that keep
their case sensitivity.
"""

from __future__ import annotations

import re
from typing import Dict

from ...models.conversion import IssueCategory, IssueType
from .base import COLUMN_DEFINITION_PREFIX, RuleContext, RuleOutcome, substitute

UTF8MB4_PAIR = "CHARACTER SET utf8mb4 COLLATE utf8mb4_general_ci"

# MySQL 8 collation -> MariaDB 10.3 equivalent (case-sensitive stays case-sensitive)
MYSQL8_COLLATION_MAP: Dict[str, str] = {
    "utf8mb4_0900_ai_ci": "utf8mb4_unicode_ci",
    "utf8mb4_0900_as_ci": "utf8mb4_unicode_ci",
    "utf8mb4_0900_as_cs": "utf8mb4_bin",
    "utf8mb4_0900_bin": "utf8mb4_bin",
    "utf8_0900_ai_ci": "utf8mb4_unicode_ci",
    "utf8_0900_as_ci": "utf8mb4_unicode_ci",
    "utf8_0900_as_cs": "utf8mb4_bin",
    "utf8_0900_bin": "utf8mb4_bin",
}

_MYSQL8_COLLATION_RE = re.compile(
    r"\b(" + "|".join(re.escape(name) for name in sorted(MYSQL8_COLLATION_MAP, key=len, reverse=True)) + r")\b",
    re.IGNORECASE,
)
_SET_NAMES_UTF8_RE = re.compile(r"\bSET\s+NAMES\s+utf8\b", re.IGNORECASE)
_LATIN1_SWEDISH_RE = re.compile(r"\bCHARSET\s*=\s*latin1\s+COLLATE\s*=\s*latin1_swedish_ci\b", re.IGNORECASE)
_DEFAULT_CHARACTER_SET_RE = re.compile(r"\bDEFAULT\s+CHARACTER\s+SET\s+(\w+)(\s+COLLATE\s+\w+)?", re.IGNORECASE)
_DEFAULT_CHARSET_RE = re.compile(r"\bDEFAULT\s+CHARSET\s*=\s*(\w+)", re.IGNORECASE)

# A column that declares its own charset/collation is left alone.
_NO_OWN_CHARSET = r"(?![^,\n]*\b(?:CHARACTER\s+SET|CHARSET|COLLATE)\b)"
_TEXT_COLUMN_RE = re.compile(
    COLUMN_DEFINITION_PREFIX + r"(tinytext|mediumtext|longtext|text)\b" + _NO_OWN_CHARSET,
    re.IGNORECASE | re.MULTILINE,
)
_VARCHAR_COLUMN_RE = re.compile(
    COLUMN_DEFINITION_PREFIX + r"(varchar\s*\(\s*\d+\s*\))" + _NO_OWN_CHARSET,
    re.IGNORECASE | re.MULTILINE,
)

_UTF8_PAIR_RE = re.compile(
    r"\b(CHARACTER\s+SET|CHARSET)(\s*=\s*|\s+)utf8(\s+COLLATE\s*=?\s*)utf8_(general|unicode)_ci\b",
    re.IGNORECASE,
)
_DEFAULT_UTF8_RE = re.compile(r"\b(DEFAULT\s+(?:CHARSET|CHARACTER\s+SET)\s*=\s*)utf8\b", re.IGNORECASE)
_BARE_UTF8_RE = re.compile(r"\b(CHARSET|CHARACTER\s+SET)(\s*=\s*|\s+)utf8\b", re.IGNORECASE)


def normalize_mysql8_collations(ctx: RuleContext, text: str) -> RuleOutcome:
    def _replace(match):
        found = match.group(0)
        target = MYSQL8_COLLATION_MAP[found.lower()]
        return target, ctx.issue(
            "MDB101",
            IssueType.WARNING,
            IssueCategory.COMPATIBILITY,
            f"Replaced MySQL 8.0 collation {found} with MariaDB 10.3 compatible {target}",
            matched=found,
            converted_text=target,
            auto_fixed=True,
        )

    return substitute(_MYSQL8_COLLATION_RE, text, _replace)


def upgrade_set_names(ctx: RuleContext, text: str) -> RuleOutcome:
    def _replace(match):
        replacement = "SET NAMES utf8mb4"
        return replacement, ctx.issue(
            "MDB102",
            IssueType.WARNING,
            IssueCategory.COMPATIBILITY,
            "Upgraded SET NAMES utf8 to utf8mb4 for consistent character set handling",
            matched=match.group(0),
            converted_text=replacement,
            auto_fixed=True,
        )

    return substitute(_SET_NAMES_UTF8_RE, text, _replace)


def replace_latin1_swedish(ctx: RuleContext, text: str) -> RuleOutcome:
    def _replace(match):
        replacement = "CHARSET=utf8mb4 COLLATE=utf8mb4_general_ci"
        return replacement, ctx.issue(
            "MDB103",
            IssueType.WARNING,
            IssueCategory.COMPATIBILITY,
            "Converted legacy latin1/latin1_swedish_ci table charset to utf8mb4",
            matched=match.group(0),
            converted_text=replacement,
            auto_fixed=True,
        )

    return substitute(_LATIN1_SWEDISH_RE, text, _replace)


def normalize_default_character_set(ctx: RuleContext, text: str) -> RuleOutcome:
    def _replace(match):
        replacement = f"CHARACTER SET {match.group(1)}{match.group(2) or ''}"
        return replacement, ctx.issue(
            "MDB104",
            IssueType.INFO,
            IssueCategory.COMPATIBILITY,
            "Updated character set declaration for MariaDB 10.3 compatibility",
            matched=match.group(0),
            converted_text=replacement,
            auto_fixed=True,
        )

    return substitute(_DEFAULT_CHARACTER_SET_RE, text, _replace)


def normalize_default_charset(ctx: RuleContext, text: str) -> RuleOutcome:
    def _replace(match):
        replacement = f"CHARACTER SET={match.group(1)}"
        return replacement, ctx.issue(
            "MDB105",
            IssueType.WARNING,
            IssueCategory.SYNTAX,
            "Converted DEFAULT CHARSET to CHARACTER SET for MariaDB compatibility",
            matched=match.group(0),
            converted_text=replacement,
            auto_fixed=True,
        )

    return substitute(_DEFAULT_CHARSET_RE, text, _replace)


def _append_utf8mb4(ctx: RuleContext, text: str, pattern: re.Pattern, rule_id: str, kind: str) -> RuleOutcome:
    def _replace(match):
        if not ctx.in_ddl(match.string, match.start(2)):
            return match.group(0), None
        column_type = match.group(2)
        replacement = f"{match.group(1)}{column_type} {UTF8MB4_PAIR}"
        return replacement, ctx.issue(
            rule_id,
            IssueType.INFO,
            IssueCategory.COMPATIBILITY,
            f"Added explicit utf8mb4 character set to {kind} column ({column_type})",
            matched=match.group(0).lstrip("(,"),
            converted_text=replacement.strip(" \t(,"),
            auto_fixed=True,
        )

    return substitute(pattern, text, _replace)


def add_text_column_charset(ctx: RuleContext, text: str) -> RuleOutcome:
    return _append_utf8mb4(ctx, text, _TEXT_COLUMN_RE, "MDB106", "text")


def add_varchar_column_charset(ctx: RuleContext, text: str) -> RuleOutcome:
    return _append_utf8mb4(ctx, text, _VARCHAR_COLUMN_RE, "MDB107", "varchar")


def upgrade_utf8_charset_pair(ctx: RuleContext, text: str) -> RuleOutcome:
    def _replace(match):
        if not ctx.in_ddl(match.string, match.start()):
            return match.group(0), None
        replacement = f"{match.group(1)}{match.group(2)}utf8mb4{match.group(3)}utf8mb4_{match.group(4).lower()}_ci"
        return replacement, ctx.issue(
            "MDB108",
            IssueType.WARNING,
            IssueCategory.COMPATIBILITY,
            "Upgraded utf8 character set and collation pair to utf8mb4",
            matched=match.group(0),
            converted_text=replacement,
            auto_fixed=True,
        )

    return substitute(_UTF8_PAIR_RE, text, _replace)


def _collation_upgrade(source: str, target: str, rule_id: str):
    pattern = re.compile(r"(\bCOLLATE\s*=?\s*)" + re.escape(source) + r"\b", re.IGNORECASE)

    def _rule(ctx: RuleContext, text: str) -> RuleOutcome:
        def _replace(match):
            if not ctx.in_ddl(match.string, match.start()):
                return match.group(0), None
            replacement = f"{match.group(1)}{target}"
            return replacement, ctx.issue(
                rule_id,
                IssueType.INFO,
                IssueCategory.COMPATIBILITY,
                f"Updated collation to {target} for MariaDB 10.3 compatibility",
                matched=match.group(0),
                converted_text=replacement,
                auto_fixed=True,
            )

        return substitute(pattern, text, _replace)

    _rule.__name__ = f"upgrade_{source}"
    return _rule


upgrade_utf8_general_ci = _collation_upgrade("utf8_general_ci", "utf8mb4_general_ci", "MDB109")
upgrade_utf8_unicode_ci = _collation_upgrade("utf8_unicode_ci", "utf8mb4_unicode_ci", "MDB110")


def upgrade_default_utf8_charset(ctx: RuleContext, text: str) -> RuleOutcome:
    def _replace(match):
        if not ctx.in_ddl(match.string, match.start()):
            return match.group(0), None
        replacement = f"{match.group(1)}utf8mb4"
        return replacement, ctx.issue(
            "MDB111",
            IssueType.WARNING,
            IssueCategory.COMPATIBILITY,
            "Upgraded default table charset utf8 to utf8mb4",
            matched=match.group(0),
            converted_text=replacement,
            auto_fixed=True,
        )

    return substitute(_DEFAULT_UTF8_RE, text, _replace)


def upgrade_bare_utf8_charset(ctx: RuleContext, text: str) -> RuleOutcome:
    def _replace(match):
        if not ctx.in_ddl(match.string, match.start()):
            return match.group(0), None
        replacement = f"{match.group(1)}{match.group(2)}utf8mb4"
        return replacement, ctx.issue(
            "MDB112",
            IssueType.WARNING,
            IssueCategory.COMPATIBILITY,
            "Upgraded utf8 to utf8mb4 for full Unicode support in MariaDB 10.3",
            matched=match.group(0),
            converted_text=replacement,
            auto_fixed=True,
        )

    return substitute(_BARE_UTF8_RE, text, _replace)
