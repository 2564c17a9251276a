"""
Conversion engine: an explicit fold over the ordered rule table.

The working text is threaded through every rule in `DEFAULT_RULES`; each rule sees
the output of the rules before it. Issues are accumulated centrally and the stats
are derived from them once all rules ran.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

from ...models.conversion import ConversionIssue, ConversionResult, ConversionStats
from . import charset_rules, mysql8_rules, session_rules, structure_rules
from .base import ConversionOptions, ConversionRule, RuleContext

logger = logging.getLogger(__name__)


DEFAULT_RULES: Tuple[ConversionRule, ...] = (
    # 1-2. connection charset and MySQL 8 collations
    ConversionRule("MDB101", "mysql8_collations", charset_rules.normalize_mysql8_collations),
    ConversionRule("MDB102", "set_names_utf8mb4", charset_rules.upgrade_set_names),
    # 3-5. dump envelope
    ConversionRule("MDB201", "definer", session_rules.strip_definer),
    ConversionRule("MDB202", "dump_noise", session_rules.strip_dump_noise),
    ConversionRule("MDB203", "conditional_comments", session_rules.triage_conditional_comments),
    # 6-8
    ConversionRule("MDB301", "if_not_exists", structure_rules.confirm_if_not_exists),
    ConversionRule("MDB103", "latin1_swedish", charset_rules.replace_latin1_swedish),
    ConversionRule("MDB302", "using_btree", structure_rules.strip_using_btree),
    # 9-11. session statements
    ConversionRule("MDB204", "local_infile", session_rules.comment_out_local_infile),
    ConversionRule("MDB205", "foreign_key_checks", session_rules.normalize_foreign_key_checks),
    ConversionRule("MDB206", "sql_mode", session_rules.normalize_sql_mode),
    ConversionRule("MDB207", "lock_tables", session_rules.comment_out_lock_tables),
    ConversionRule("MDB208", "unlock_tables", session_rules.comment_out_unlock_tables),
    # 12. charset declarations
    ConversionRule("MDB104", "default_character_set", charset_rules.normalize_default_character_set),
    ConversionRule("MDB105", "default_charset", charset_rules.normalize_default_charset),
    # 13. engine and column cosmetics
    ConversionRule("MDB303", "innodb_engine", structure_rules.confirm_innodb_engine),
    ConversionRule("MDB304", "int_display_width", structure_rules.simplify_int_display_width),
    ConversionRule("MDB305", "toggle_keys", structure_rules.confirm_toggle_keys),
    ConversionRule("MDB311", "auto_increment_values", structure_rules.confirm_auto_increment_values),
    ConversionRule("MDB306", "on_update_timestamp", structure_rules.confirm_on_update_timestamp),
    # 14. MySQL 8 features (flag only)
    ConversionRule("MDB401", "cte", mysql8_rules.detect_ctes),
    ConversionRule("MDB402", "window_functions", mysql8_rules.detect_window_functions),
    ConversionRule("MDB403", "generated_columns", mysql8_rules.detect_generated_columns),
    ConversionRule("MDB404", "check_constraints", mysql8_rules.detect_check_constraints),
    ConversionRule("MDB405", "json_functions", mysql8_rules.detect_json_functions),
    ConversionRule("MDB406", "fulltext_parser", mysql8_rules.detect_fulltext_parsers),
    ConversionRule("MDB307", "partitioning", structure_rules.detect_partitioning),
    # 15. MySQL 8 features (rewritten)
    ConversionRule("MDB407", "invisible", mysql8_rules.strip_invisible_attribute),
    ConversionRule("MDB408", "json_path_operators", mysql8_rules.rewrite_json_path_operators),
    # 16-18. utf8mb4 table layout
    ConversionRule("MDB308", "wide_indexed_varchar", structure_rules.flag_wide_indexed_varchars),
    ConversionRule("MDB309", "row_format_dynamic", structure_rules.add_dynamic_row_format),
    ConversionRule("MDB409", "json_columns", mysql8_rules.materialize_json_columns),
    # 19. column charsets
    ConversionRule("MDB106", "text_column_charset", charset_rules.add_text_column_charset),
    ConversionRule("MDB107", "varchar_column_charset", charset_rules.add_varchar_column_charset),
    # 20. remaining utf8 upgrades
    ConversionRule("MDB108", "utf8_charset_pair", charset_rules.upgrade_utf8_charset_pair),
    ConversionRule("MDB109", "utf8_general_ci", charset_rules.upgrade_utf8_general_ci),
    ConversionRule("MDB110", "utf8_unicode_ci", charset_rules.upgrade_utf8_unicode_ci),
    ConversionRule("MDB111", "default_utf8_charset", charset_rules.upgrade_default_utf8_charset),
    ConversionRule("MDB112", "bare_utf8_charset", charset_rules.upgrade_bare_utf8_charset),
    # 21-22
    ConversionRule("MDB310", "plain_keys", structure_rules.normalize_plain_keys),
    ConversionRule("MDB000", "blank_lines", session_rules.collapse_blank_lines),
    # 23. the footer check must see the body before the preamble adds AUTOCOMMIT
    ConversionRule("MDB502", "commit_footer", session_rules.append_commit_footer),
    ConversionRule("MDB501", "session_header", session_rules.prepend_session_header),
)


class ConversionEngine:
    """
    Applies an ordered rule table to MySQL dump text.

    An engine holds no per-run state and can be shared between threads.
    """

    def __init__(
        self,
        options: Optional[ConversionOptions] = None,
        rules: Optional[Sequence[ConversionRule]] = None,
    ):
        self.options = options or ConversionOptions()
        self.rules: Tuple[ConversionRule, ...] = tuple(rules) if rules is not None else DEFAULT_RULES

    def convert(self, sql_text: str) -> ConversionResult:
        """Convert `sql_text`. Never raises: a failing rule is logged and skipped."""
        context = RuleContext(original=sql_text, options=self.options)
        text = sql_text
        issues: List[ConversionIssue] = []

        for rule in self.rules:
            try:
                outcome = rule.apply(context, text)
            except Exception:
                logger.exception(f"❌ Conversion rule {rule.rule_id} ({rule.name}) failed, skipping it")
                continue
            text = outcome.text
            issues.extend(outcome.issues)

        stats = ConversionStats.from_issues(issues)
        logger.debug(
            f"Converted {len(sql_text)} chars: {stats.total_issues} issues "
            f"({stats.errors_count} errors, {stats.warnings_count} warnings, {stats.auto_fixed} auto-fixed)"
        )
        return ConversionResult(converted_sql=text, issues=issues, stats=stats)


_default_engine = ConversionEngine()


def convert_mysql_to_mariadb(sql_text: str, options: Optional[ConversionOptions] = None) -> ConversionResult:
    """Convert a MySQL dump to MariaDB 10.3 compatible SQL."""
    engine = ConversionEngine(options) if options is not None else _default_engine
    return engine.convert(sql_text)
