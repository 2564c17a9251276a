"""
Session, dump-tool and statement-level rules.

These rules deal with what mysqldump wraps around the schema: session variables,
DEFINER clauses, version-gated comments, table locks, and the preamble/commit
envelope of the converted file.
"""

from __future__ import annotations

import re

from ...models.conversion import IssueCategory, IssueType
from .base import RuleContext, RuleOutcome, conditional_comment_spans, line_start, substitute

REVIEW_MARKER = "-- Review for MariaDB compatibility"

SESSION_HEADER = (
    "-- MariaDB 10.3 compatible SQL dump (converted from MySQL)\n"
    "SET NAMES utf8mb4;\n"
    "SET CHARACTER_SET_CLIENT = utf8mb4;\n"
    "SET CHARACTER_SET_RESULTS = utf8mb4;\n"
    "SET COLLATION_CONNECTION = utf8mb4_general_ci;\n"
    "SET foreign_key_checks = 0;\n"
    "SET SQL_MODE = 'NO_AUTO_VALUE_ON_ZERO';\n"
    "SET AUTOCOMMIT = 0;\n"
    "START TRANSACTION;\n"
    "SET time_zone = '+00:00';\n"
    "\n"
)
COMMIT_FOOTER = "COMMIT;\n"

MYSQL_ONLY_SQL_MODES = frozenset({"NO_AUTO_CREATE_USER", "NO_ENGINE_SUBSTITUTION"})

_USER_PART = r"(?:`[^`\n]*`|'[^'\n]*'|\"[^\"\n]*\"|[\w.%-]+)"
_DEFINER_RE = re.compile(
    r"\bDEFINER\s*=\s*(?:" + _USER_PART + r"\s*@\s*" + _USER_PART + r"|CURRENT_USER(?:\s*\(\s*\))?)\s*",
    re.IGNORECASE,
)
_DUMP_NOISE_RE = re.compile(
    r"^--[ \t]*Dumping (?:structure|data|routines|events)\b[^\n]*(?:\n|\Z)",
    re.IGNORECASE | re.MULTILINE,
)
_CONDITIONAL_COMMENT_RE = re.compile(r"/\*!(\d{5,6})?\s*(.*?)\*/([ \t]*;)?", re.DOTALL)
_CONDITIONAL_DENY_RE = re.compile(
    r"@@|\b(?:USE|FORCE|IGNORE)[_\s]+INDEX\b|\bSQL_CALC_FOUND_ROWS\b",
    re.IGNORECASE,
)
_LOCAL_INFILE_RE = re.compile(
    r"(?<!-- )\bSET\s+(?:@@global\.|GLOBAL\s+)local_infile\s*=\s*[^;\n]+;?",
    re.IGNORECASE,
)
_FOREIGN_KEY_CHECKS_RE = re.compile(r"\bSET\s+FOREIGN_KEY_CHECKS\s*=\s*([01])[ \t]*;?", re.IGNORECASE)
_SQL_MODE_RE = re.compile(r"(\bSET\s+SQL_MODE\s*=\s*)(['\"])([^'\"\n]*)\2([ \t]*;?)", re.IGNORECASE)
_LOCK_TABLES_RE = re.compile(r"(?<!-- )\bLOCK\s+TABLES\b[^;]*;[ \t]*(?:\r?\n)?", re.IGNORECASE)
_UNLOCK_TABLES_RE = re.compile(r"(?<!-- )\bUNLOCK\s+TABLES\s*;[ \t]*(?:\r?\n)?", re.IGNORECASE)
_EXTRA_BLANK_LINES_RE = re.compile(r"(\r?\n)(?:[ \t]*\r?\n){2,}")
_LEADING_BLANK_LINES_RE = re.compile(r"\A(?:[ \t]*\r?\n)+")
_SET_NAMES_UTF8MB4_RE = re.compile(r"SET\s+NAMES\s+utf8mb4", re.IGNORECASE)


def strip_definer(ctx: RuleContext, text: str) -> RuleOutcome:
    def _replace(match):
        return "", ctx.issue(
            "MDB201",
            IssueType.WARNING,
            IssueCategory.COMPATIBILITY,
            "Removed DEFINER clause to prevent import failures due to missing user accounts",
            matched=match.group(0),
            converted_text="-- Removed DEFINER",
            auto_fixed=True,
        )

    return substitute(_DEFINER_RE, text, _replace)


def strip_dump_noise(ctx: RuleContext, text: str) -> RuleOutcome:
    def _replace(match):
        return "", ctx.issue(
            "MDB202",
            IssueType.INFO,
            IssueCategory.OPTIMIZATION,
            "Removed mysqldump progress comment",
            matched=match.group(0),
            auto_fixed=True,
        )

    return substitute(_DUMP_NOISE_RE, text, _replace)


def triage_conditional_comments(ctx: RuleContext, text: str) -> RuleOutcome:
    """
    Delete version-gated comments that only carry MySQL session state or optimizer
    hints; keep every other `/*!NNNNN ... */` block verbatim (MariaDB executes them).
    """

    def _replace(match):
        if not _CONDITIONAL_DENY_RE.search(match.group(2)):
            return match.group(0), None
        version = match.group(1) or "?"
        return "", ctx.issue(
            "MDB203",
            IssueType.WARNING,
            IssueCategory.SYNTAX,
            f"Removed MySQL {version} conditional comment with server variables or optimizer hints",
            matched=match.group(0),
            converted_text="-- Removed MySQL conditional comment",
            auto_fixed=True,
        )

    return substitute(_CONDITIONAL_COMMENT_RE, text, _replace)


def comment_out_local_infile(ctx: RuleContext, text: str) -> RuleOutcome:
    def _replace(match):
        statement = match.group(0).strip()
        replacement = f"-- {statement} -- Removed for MariaDB compatibility"
        return replacement, ctx.issue(
            "MDB204",
            IssueType.WARNING,
            IssueCategory.COMPATIBILITY,
            "Removed MySQL-specific @@global.local_infile setting not compatible with MariaDB",
            matched=match.group(0),
            converted_text=replacement,
            auto_fixed=True,
        )

    return substitute(_LOCAL_INFILE_RE, text, _replace)


def normalize_foreign_key_checks(ctx: RuleContext, text: str) -> RuleOutcome:
    # Statements inside `/*!NNNNN ... */` keep their own terminator.
    gated = conditional_comment_spans(text)

    def _replace(match):
        if match.start() in gated:
            return match.group(0), None
        replacement = f"SET foreign_key_checks = {match.group(1)};"
        if match.group(0) == replacement:
            return replacement, None
        return replacement, ctx.issue(
            "MDB205",
            IssueType.INFO,
            IssueCategory.COMPATIBILITY,
            "Updated FOREIGN_KEY_CHECKS syntax for MariaDB compatibility",
            matched=match.group(0),
            converted_text=replacement,
            auto_fixed=True,
        )

    return substitute(_FOREIGN_KEY_CHECKS_RE, text, _replace)


def clean_sql_mode(raw_modes: str) -> str:
    """Drop MySQL-only modes from a comma-separated SQL_MODE list."""
    modes = [mode.strip() for mode in raw_modes.split(",")]
    return ",".join(mode for mode in modes if mode and mode.upper() not in MYSQL_ONLY_SQL_MODES)


def normalize_sql_mode(ctx: RuleContext, text: str) -> RuleOutcome:
    """
    Clean SQL_MODE assignments. Plain statements are rewritten to the canonical
    `SET SQL_MODE = '...';`; inside a version-gated comment (mysqldump wraps every
    routine and trigger in one) only the mode list changes.
    """
    gated = conditional_comment_spans(text)

    def _replace(match):
        quote, raw_modes = match.group(2), match.group(3)
        cleaned = clean_sql_mode(raw_modes)
        if match.start() in gated:
            if cleaned == raw_modes:
                return match.group(0), None
            replacement = f"{match.group(1)}{quote}{cleaned}{quote}{match.group(4)}"
        else:
            replacement = f"SET SQL_MODE = '{cleaned}';"
        if match.group(0) == replacement:
            return replacement, None
        stripped = {m.strip().upper() for m in raw_modes.split(",")} & MYSQL_ONLY_SQL_MODES
        if stripped:
            issue_type = IssueType.WARNING
            description = (
                "Cleaned SQL_MODE setting to remove MySQL-specific modes not available in MariaDB: "
                + ", ".join(sorted(stripped))
            )
        else:
            issue_type = IssueType.INFO
            description = "Normalized SQL_MODE assignment"
        return replacement, ctx.issue(
            "MDB206",
            issue_type,
            IssueCategory.COMPATIBILITY,
            description,
            matched=match.group(0),
            converted_text=replacement,
            auto_fixed=True,
        )

    return substitute(_SQL_MODE_RE, text, _replace)


def _comment_out_statement(ctx: RuleContext, pattern: re.Pattern, text: str, rule_id: str, label: str) -> RuleOutcome:
    def _replace(match):
        statement = match.group(0).strip()
        before = match.string[line_start(match.string, match.start()):match.start()]
        lead = "\n" if before.strip() else ""
        replacement = f"{lead}-- {statement} {REVIEW_MARKER}\n"
        return replacement, ctx.issue(
            rule_id,
            IssueType.WARNING,
            IssueCategory.COMPATIBILITY,
            f"Commented out {label} statement - verify MariaDB compatibility",
            matched=statement,
            converted_text=f"-- {statement}",
            auto_fixed=True,
        )

    return substitute(pattern, text, _replace)


def comment_out_lock_tables(ctx: RuleContext, text: str) -> RuleOutcome:
    return _comment_out_statement(ctx, _LOCK_TABLES_RE, text, "MDB207", "LOCK TABLES")


def comment_out_unlock_tables(ctx: RuleContext, text: str) -> RuleOutcome:
    return _comment_out_statement(ctx, _UNLOCK_TABLES_RE, text, "MDB208", "UNLOCK TABLES")


def collapse_blank_lines(ctx: RuleContext, text: str) -> RuleOutcome:
    text = _EXTRA_BLANK_LINES_RE.sub(lambda m: m.group(1) * 2, text)
    return RuleOutcome(text=_LEADING_BLANK_LINES_RE.sub("", text))


def append_commit_footer(ctx: RuleContext, text: str) -> RuleOutcome:
    """Append COMMIT; unless the text mentions `commit` anywhere (case-insensitive)."""
    if not ctx.options.add_commit_footer or "commit" in text.lower():
        return RuleOutcome(text=text)
    body = text
    if body and not body.endswith("\n"):
        body += "\n"
    if body.strip():
        body += "\n"
    issue = ctx.issue(
        "MDB502",
        IssueType.INFO,
        IssueCategory.COMPATIBILITY,
        "Appended COMMIT; to close the transaction opened by the session preamble",
        converted_text=COMMIT_FOOTER.strip(),
        auto_fixed=True,
        line_number=ctx.original.count("\n") + 1,
    )
    return RuleOutcome(text=body + COMMIT_FOOTER, issues=[issue])


def prepend_session_header(ctx: RuleContext, text: str) -> RuleOutcome:
    if not ctx.options.add_session_header or _SET_NAMES_UTF8MB4_RE.search(text):
        return RuleOutcome(text=text)
    issue = ctx.issue(
        "MDB501",
        IssueType.INFO,
        IssueCategory.COMPATIBILITY,
        "Added MariaDB 10.3 session preamble (utf8mb4 connection charset, foreign key checks off, "
        "safe SQL_MODE, explicit transaction, UTC time zone)",
        converted_text=SESSION_HEADER.strip(),
        auto_fixed=True,
        line_number=1,
    )
    return RuleOutcome(text=SESSION_HEADER + text, issues=[issue])
