from __future__ import annotations

import pytest

from backend.app.models.conversion import IssueCategory, IssueType
from backend.app.services.conversion import RuleContext
from backend.app.services.conversion.charset_rules import (
    add_text_column_charset,
    add_varchar_column_charset,
    normalize_default_character_set,
    normalize_default_charset,
    normalize_mysql8_collations,
    replace_latin1_swedish,
    upgrade_bare_utf8_charset,
    upgrade_default_utf8_charset,
    upgrade_set_names,
    upgrade_utf8_charset_pair,
    upgrade_utf8_general_ci,
    upgrade_utf8_unicode_ci,
)


def _run(rule, sql):
    return rule(RuleContext(original=sql), sql)


@pytest.mark.parametrize(
    "source, target",
    [
        ("utf8mb4_0900_ai_ci", "utf8mb4_unicode_ci"),
        ("utf8mb4_0900_as_ci", "utf8mb4_unicode_ci"),
        ("utf8mb4_0900_as_cs", "utf8mb4_bin"),
        ("utf8mb4_0900_bin", "utf8mb4_bin"),
        ("utf8_0900_ai_ci", "utf8mb4_unicode_ci"),
        ("UTF8MB4_0900_AS_CS", "utf8mb4_bin"),
    ],
)
def test_mysql8_collations_are_mapped(source, target) -> None:
    outcome = _run(normalize_mysql8_collations, f"name varchar(10) COLLATE {source}")
    assert outcome.text == f"name varchar(10) COLLATE {target}"
    assert len(outcome.issues) == 1
    issue = outcome.issues[0]
    assert issue.issue_type == IssueType.WARNING
    assert issue.category == IssueCategory.COMPATIBILITY
    assert issue.auto_fixed
    assert issue.converted_text == target


def test_mysql8_collation_requires_whole_token() -> None:
    sql = "SELECT utf8mb4_0900_ai_ci_extra FROM t"
    outcome = _run(normalize_mysql8_collations, sql)
    assert outcome.text == sql
    assert outcome.issues == []


def test_set_names_utf8_upgraded_but_not_utf8mb4() -> None:
    outcome = _run(upgrade_set_names, "SET NAMES utf8;\nSET NAMES utf8mb4;")
    assert outcome.text == "SET NAMES utf8mb4;\nSET NAMES utf8mb4;"
    assert len(outcome.issues) == 1
    assert outcome.issues[0].line_number == 1


def test_latin1_swedish_table_charset() -> None:
    outcome = _run(replace_latin1_swedish, ") ENGINE=InnoDB CHARSET=latin1 COLLATE=latin1_swedish_ci;")
    assert outcome.text == ") ENGINE=InnoDB CHARSET=utf8mb4 COLLATE=utf8mb4_general_ci;"


def test_default_character_set_keeps_collation() -> None:
    outcome = _run(normalize_default_character_set, "CREATE DATABASE d DEFAULT CHARACTER SET utf8 COLLATE utf8_bin;")
    assert outcome.text == "CREATE DATABASE d CHARACTER SET utf8 COLLATE utf8_bin;"
    assert outcome.issues[0].issue_type == IssueType.INFO


def test_default_charset_becomes_character_set() -> None:
    outcome = _run(normalize_default_charset, ") ENGINE=InnoDB DEFAULT CHARSET=utf8mb4;")
    assert outcome.text == ") ENGINE=InnoDB CHARACTER SET=utf8mb4;"
    assert outcome.issues[0].category == IssueCategory.SYNTAX


class TestColumnCharsets:
    """Bare text/varchar columns get an explicit utf8mb4 charset inside DDL only."""

    def test_text_columns(self) -> None:
        sql = "CREATE TABLE t (\n  `body` mediumtext NOT NULL,\n  `note` text\n);"
        outcome = _run(add_text_column_charset, sql)
        assert "`body` mediumtext CHARACTER SET utf8mb4 COLLATE utf8mb4_general_ci NOT NULL," in outcome.text
        assert "`note` text CHARACTER SET utf8mb4 COLLATE utf8mb4_general_ci\n" in outcome.text
        assert len(outcome.issues) == 2
        assert outcome.issues[0].line_number == 2

    def test_varchar_on_single_line_definition(self) -> None:
        outcome = _run(add_varchar_column_charset, "CREATE TABLE t (a varchar(20), b VARCHAR(30) NOT NULL);")
        assert outcome.text == (
            "CREATE TABLE t (a varchar(20) CHARACTER SET utf8mb4 COLLATE utf8mb4_general_ci, "
            "b VARCHAR(30) CHARACTER SET utf8mb4 COLLATE utf8mb4_general_ci NOT NULL);"
        )

    def test_column_with_own_charset_is_left_alone(self) -> None:
        sql = "CREATE TABLE t (a varchar(20) CHARACTER SET latin1, b text COLLATE utf8mb4_bin);"
        assert _run(add_varchar_column_charset, sql).text == sql
        assert _run(add_text_column_charset, sql).text == sql

    def test_alter_table_add_column(self) -> None:
        outcome = _run(add_text_column_charset, "ALTER TABLE t ADD COLUMN c longtext;")
        assert outcome.text == "ALTER TABLE t ADD COLUMN c longtext CHARACTER SET utf8mb4 COLLATE utf8mb4_general_ci;"

    def test_outside_ddl_is_untouched(self) -> None:
        sql = "SELECT a text FROM t;"
        assert _run(add_text_column_charset, sql).text == sql


class TestUtf8Upgrades:
    def test_charset_pair(self) -> None:
        sql = "CREATE TABLE t (a char(1) CHARACTER SET utf8 COLLATE utf8_general_ci);"
        outcome = _run(upgrade_utf8_charset_pair, sql)
        assert outcome.text == "CREATE TABLE t (a char(1) CHARACTER SET utf8mb4 COLLATE utf8mb4_general_ci);"

    def test_collations(self) -> None:
        sql = "CREATE TABLE t (a char(1)) COLLATE=utf8_general_ci;"
        assert _run(upgrade_utf8_general_ci, sql).text == "CREATE TABLE t (a char(1)) COLLATE=utf8mb4_general_ci;"
        sql = "CREATE TABLE t (a char(1) COLLATE utf8_unicode_ci);"
        assert _run(upgrade_utf8_unicode_ci, sql).text == "CREATE TABLE t (a char(1) COLLATE utf8mb4_unicode_ci);"

    def test_default_charset_keeps_default(self) -> None:
        sql = "CREATE TABLE t (a int) DEFAULT CHARACTER SET = utf8;"
        outcome = _run(upgrade_default_utf8_charset, sql)
        assert outcome.text == "CREATE TABLE t (a int) DEFAULT CHARACTER SET = utf8mb4;"

    def test_bare_charset(self) -> None:
        sql = "CREATE TABLE t (a int) CHARACTER SET=utf8;"
        outcome = _run(upgrade_bare_utf8_charset, sql)
        assert outcome.text == "CREATE TABLE t (a int) CHARACTER SET=utf8mb4;"
        assert _run(upgrade_bare_utf8_charset, outcome.text).issues == []

    def test_collation_inside_insert_after_create_is_untouched(self) -> None:
        sql = (
            "CREATE TABLE t (c varchar(50));\n"
            "INSERT INTO t VALUES ('COLLATE utf8_general_ci and CHARSET=utf8');\n"
        )
        assert _run(upgrade_utf8_general_ci, sql).text == sql
        assert _run(upgrade_bare_utf8_charset, sql).text == sql
