"""
End-to-end tests for the conversion engine.

Covers the contract of `convert_mysql_to_mariadb`: header/footer envelope,
idempotence, stats consistency and the documented scenarios.
"""

from __future__ import annotations

import pytest

from backend.app.models.conversion import IssueCategory, IssueType
from backend.app.services.conversion import (
    COMMIT_FOOTER,
    DEFAULT_RULES,
    SESSION_HEADER,
    ConversionEngine,
    ConversionOptions,
    ConversionRule,
    RuleOutcome,
    convert_mysql_to_mariadb,
)


MYSQLDUMP_SAMPLE = """-- MySQL dump 10.13  Distrib 8.0.34, for Linux (x86_64)
/*!40101 SET @OLD_CHARACTER_SET_CLIENT=@@CHARACTER_SET_CLIENT */;
/*!40014 SET @OLD_FOREIGN_KEY_CHECKS=@@FOREIGN_KEY_CHECKS, FOREIGN_KEY_CHECKS=0 */;

--
-- Dumping structure for table `users`
--

CREATE TABLE `users` (
  `id` int(11) NOT NULL AUTO_INCREMENT,
  `email` varchar(255) NOT NULL,
  `bio` text,
  `settings` json DEFAULT NULL,
  PRIMARY KEY (`id`),
  UNIQUE KEY `email_idx` (`email`),
  KEY `bio-idx` (`bio`(10)) USING BTREE
) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4 COLLATE=utf8mb4_0900_ai_ci;

LOCK TABLES `users` WRITE;
/*!40000 ALTER TABLE `users` DISABLE KEYS */;
INSERT INTO `users` VALUES (1,'a@example.com','varchar(10) COLLATE utf8_general_ci',NULL);
/*!40000 ALTER TABLE `users` ENABLE KEYS */;
UNLOCK TABLES;
"""


def _by_rule(result, rule_id):
    return [issue for issue in result.issues if issue.rule_id == rule_id]


def test_empty_input_yields_header_and_commit() -> None:
    result = convert_mysql_to_mariadb("")
    assert result.converted_sql == SESSION_HEADER + COMMIT_FOOTER
    assert result.stats.total_issues >= 1
    assert {issue.rule_id for issue in result.issues} == {"MDB501", "MDB502"}


def test_session_header_is_idempotent() -> None:
    first = convert_mysql_to_mariadb(MYSQLDUMP_SAMPLE)
    second = convert_mysql_to_mariadb(first.converted_sql)

    assert second.converted_sql.count("SET NAMES utf8mb4") == 1
    assert second.converted_sql.count(COMMIT_FOOTER.strip()) == 1
    assert not _by_rule(second, "MDB501")
    assert not _by_rule(second, "MDB502")


def test_empty_input_round_trip_is_stable() -> None:
    first = convert_mysql_to_mariadb("")
    second = convert_mysql_to_mariadb(first.converted_sql)
    assert second.converted_sql == first.converted_sql
    assert second.stats.total_issues == 0


def test_collation_end_to_end_scenario() -> None:
    result = convert_mysql_to_mariadb(
        "CREATE TABLE users (name VARCHAR(255) COLLATE utf8mb4_0900_ai_ci);"
    )
    assert "COLLATE utf8mb4_unicode_ci" in result.converted_sql
    assert "utf8mb4_0900_ai_ci" not in result.converted_sql
    assert any(
        issue.auto_fixed and issue.category == IssueCategory.COMPATIBILITY for issue in result.issues
    )


def test_lock_tables_end_to_end_scenario() -> None:
    sql = "LOCK TABLES t WRITE;\nINSERT INTO t VALUES (1);\nUNLOCK TABLES;\n"
    result = convert_mysql_to_mariadb(sql)
    lines = result.converted_sql.splitlines()

    assert any(line.startswith("-- LOCK TABLES t WRITE;") for line in lines)
    assert any(line.startswith("-- UNLOCK TABLES;") for line in lines)
    lock_issues = _by_rule(result, "MDB207") + _by_rule(result, "MDB208")
    assert len(lock_issues) == 2
    assert all(issue.issue_type == IssueType.WARNING for issue in lock_issues)


def test_definer_is_stripped_and_rest_preserved() -> None:
    sql = "CREATE DEFINER=`root`@`localhost` PROCEDURE foo() BEGIN SELECT 1; END"
    result = convert_mysql_to_mariadb(sql)
    assert "DEFINER" not in result.converted_sql
    assert "CREATE PROCEDURE foo() BEGIN SELECT 1; END" in result.converted_sql


def test_invisible_column_produces_exactly_one_error() -> None:
    sql = "CREATE TABLE t (\n  id int NOT NULL,\n  secret varchar(10) INVISIBLE\n);\n"
    result = convert_mysql_to_mariadb(sql)

    errors = [issue for issue in result.issues if issue.issue_type == IssueType.ERROR]
    assert len(errors) == 1
    assert errors[0].rule_id == "MDB407"
    assert "INVISIBLE" not in result.converted_sql


def test_data_literals_are_not_rewritten() -> None:
    sql = "INSERT INTO t (c) VALUES ('varchar(10) is a string');"
    result = convert_mysql_to_mariadb(sql)
    assert "('varchar(10) is a string')" in result.converted_sql


def test_json_arrow_inside_row_data_is_preserved() -> None:
    sql = "INSERT INTO notes VALUES (1,'see a->','$.x');\n"
    result = convert_mysql_to_mariadb(sql)
    assert sql in result.converted_sql
    assert not _by_rule(result, "MDB408")


def test_routine_preamble_stays_importable() -> None:
    sql = (
        "/*!50003 SET @saved_sql_mode       = @@sql_mode */ ;\n"
        "/*!50003 SET sql_mode              = 'STRICT_TRANS_TABLES,NO_ENGINE_SUBSTITUTION' */ ;\n"
        "DELIMITER ;;\n"
        "CREATE PROCEDURE `p`() BEGIN SELECT 1; END ;;\n"
        "DELIMITER ;\n"
        "/*!50003 SET sql_mode              = @saved_sql_mode */ ;\n"
    )
    result = convert_mysql_to_mariadb(sql)
    converted = result.converted_sql

    assert "/*!50003 SET sql_mode              = 'STRICT_TRANS_TABLES' */ ;" in converted
    assert "/*!50003 SET sql_mode              = @saved_sql_mode */ ;" in converted
    assert ";*/" not in converted


@pytest.mark.parametrize(
    "sql",
    [
        "",
        "SELECT 1;",
        MYSQLDUMP_SAMPLE,
        "CREATE TABLE t (a int(11)) ENGINE=MyISAM DEFAULT CHARSET=latin1;",
        "/* unterminated comment",
        "CREATE TABLE broken (",
    ],
)
def test_stats_are_consistent_with_issues(sql) -> None:
    result = convert_mysql_to_mariadb(sql)
    stats = result.stats
    assert stats.total_issues == len(result.issues)
    assert stats.errors_count + stats.warnings_count + stats.optimizations_count == stats.total_issues
    assert stats.auto_fixed == sum(1 for issue in result.issues if issue.auto_fixed)


class TestMysqldumpSample:
    """A realistic mysqldump export goes through every rule family."""

    @pytest.fixture(scope="class")
    def result(self):
        return convert_mysql_to_mariadb(MYSQLDUMP_SAMPLE)

    def test_header_and_footer(self, result) -> None:
        assert result.converted_sql.startswith(SESSION_HEADER)
        assert result.converted_sql.endswith(COMMIT_FOOTER)

    def test_session_variable_comments_are_removed(self, result) -> None:
        assert "@OLD_CHARACTER_SET_CLIENT" not in result.converted_sql
        assert "@OLD_FOREIGN_KEY_CHECKS" not in result.converted_sql

    def test_dump_noise_is_removed(self, result) -> None:
        assert "Dumping structure" not in result.converted_sql

    def test_table_definition_is_upgraded(self, result) -> None:
        sql = result.converted_sql
        assert "`id` int NOT NULL AUTO_INCREMENT" in sql
        assert "`settings` longtext COLLATE utf8mb4_bin DEFAULT NULL" in sql
        assert "`bio` text CHARACTER SET utf8mb4 COLLATE utf8mb4_general_ci" in sql
        assert "`email` varchar(255) CHARACTER SET utf8mb4 COLLATE utf8mb4_general_ci NOT NULL" in sql
        assert "KEY `bioidx` (`bio`(10))" in sql
        assert "USING BTREE" not in sql
        assert "ENGINE=InnoDB ROW_FORMAT=DYNAMIC CHARACTER SET=utf8mb4 COLLATE=utf8mb4_unicode_ci" in sql

    def test_wide_unique_key_is_flagged(self, result) -> None:
        issues = _by_rule(result, "MDB308")
        assert len(issues) == 1
        assert issues[0].issue_type == IssueType.ERROR
        assert not issues[0].auto_fixed
        assert "email" in issues[0].description

    def test_insert_literal_is_untouched(self, result) -> None:
        assert "'varchar(10) COLLATE utf8_general_ci'" in result.converted_sql

    def test_disable_enable_keys_are_kept(self, result) -> None:
        assert "/*!40000 ALTER TABLE `users` DISABLE KEYS */;" in result.converted_sql
        assert len(_by_rule(result, "MDB305")) == 2

    def test_json_column_issue_reports_its_own_line(self, result) -> None:
        issues = _by_rule(result, "MDB409")
        assert [issue.line_number for issue in issues] == [13]


class TestEngineFold:
    """The engine threads text through the rule table and isolates failures."""

    def test_rules_see_previous_output(self) -> None:
        rules = [
            ConversionRule("T1", "upper", lambda ctx, text: RuleOutcome(text=text.upper())),
            ConversionRule("T2", "suffix", lambda ctx, text: RuleOutcome(text=text + "!")),
        ]
        result = ConversionEngine(rules=rules).convert("abc")
        assert result.converted_sql == "ABC!"
        assert result.stats.total_issues == 0

    def test_failing_rule_is_skipped(self) -> None:
        def _boom(ctx, text):
            raise RuntimeError("boom")

        rules = [
            ConversionRule("T1", "boom", _boom),
            ConversionRule("T2", "suffix", lambda ctx, text: RuleOutcome(text=text + "!")),
        ]
        result = ConversionEngine(rules=rules).convert("abc")
        assert result.converted_sql == "abc!"

    def test_default_rule_ids_are_unique(self) -> None:
        ids = [rule.rule_id for rule in DEFAULT_RULES]
        assert len(ids) == len(set(ids))

    def test_footer_runs_before_header(self) -> None:
        names = [rule.name for rule in DEFAULT_RULES]
        assert names[-2:] == ["commit_footer", "session_header"]

    def test_options_can_disable_envelope(self) -> None:
        options = ConversionOptions(add_session_header=False, add_commit_footer=False)
        result = convert_mysql_to_mariadb("SELECT 1;", options)
        assert result.converted_sql == "SELECT 1;"
        assert result.stats.total_issues == 0

    def test_input_is_not_mutated(self) -> None:
        sql = "CREATE TABLE t (a int(11));"
        convert_mysql_to_mariadb(sql)
        assert sql == "CREATE TABLE t (a int(11));"
