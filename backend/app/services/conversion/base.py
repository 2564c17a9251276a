"""
Shared primitives for the conversion rules.

A rule is a pure function `(context, text) -> RuleOutcome`. Rules never mutate shared
state: the engine threads the working text from one rule to the next and collects
the issues each rule reports.
"""

from __future__ import annotations

import re
from bisect import bisect_right
from dataclasses import dataclass, field
from typing import Callable, Iterator, List, Optional, Tuple

from ...models.conversion import ConversionIssue, IssueCategory, IssueType

# Lookback (in characters) used by the DDL context guard.
DDL_CONTEXT_WINDOW = 1000

# 767-byte InnoDB key prefix limit / 4 bytes per utf8mb4 character.
WIDE_VARCHAR_THRESHOLD = 191


@dataclass(frozen=True)
class ConversionOptions:
    """Tunables of a conversion run."""

    ddl_context_window: int = DDL_CONTEXT_WINDOW
    wide_varchar_threshold: int = WIDE_VARCHAR_THRESHOLD
    add_session_header: bool = True
    add_commit_footer: bool = True


@dataclass(frozen=True)
class RuleOutcome:
    text: str
    issues: List[ConversionIssue] = field(default_factory=list)


@dataclass(frozen=True)
class RuleContext:
    """Read-only state visible to every rule of one run."""

    original: str
    options: ConversionOptions = field(default_factory=ConversionOptions)

    def line_of(self, snippet: Optional[str]) -> int:
        return line_number_of(self.original, snippet)

    def in_ddl(self, text: str, offset: int) -> bool:
        return in_ddl_context(text, offset, self.options.ddl_context_window)

    def issue(
        self,
        rule_id: str,
        issue_type: IssueType,
        category: IssueCategory,
        description: str,
        *,
        matched: Optional[str] = None,
        converted_text: Optional[str] = None,
        auto_fixed: bool = False,
        line_number: Optional[int] = None,
    ) -> ConversionIssue:
        """Build an issue; the line number defaults to the first occurrence of `matched`."""
        if line_number is None:
            line_number = self.line_of(matched)
        return ConversionIssue(
            rule_id=rule_id,
            issue_type=issue_type,
            category=category,
            description=description,
            line_number=line_number,
            original_text=matched.strip() if matched else None,
            converted_text=converted_text,
            auto_fixed=auto_fixed,
        )


RuleFunc = Callable[[RuleContext, str], RuleOutcome]


@dataclass(frozen=True)
class ConversionRule:
    """A named entry of the ordered rule table."""

    rule_id: str
    name: str
    apply: RuleFunc


def line_number_of(content: str, snippet: Optional[str]) -> int:
    """
    1-based line of the first occurrence of `snippet` in `content`.

    Falls back to line 1 when the snippet is empty or cannot be found (for example
    because an earlier rule already rewrote it).
    """
    if not snippet:
        return 1
    index = content.find(snippet)
    if index < 0:
        index = content.find(snippet.strip())
    if index < 0:
        return 1
    return content.count("\n", 0, index) + 1


_STATEMENT_KEYWORD_RE = re.compile(
    r"\b(?:"
    r"(CREATE\s+(?:TEMPORARY\s+)?TABLE|ALTER\s+(?:IGNORE\s+)?TABLE)"
    r"|INSERT\s+(?:(?:LOW_PRIORITY|DELAYED|HIGH_PRIORITY|IGNORE)\s+)*INTO"
    r"|REPLACE\s+(?:(?:LOW_PRIORITY|DELAYED)\s+)?INTO"
    r"|UPDATE\s+[`\w.]+\s+SET"
    r"|DELETE\s+FROM"
    r")\b",
    re.IGNORECASE,
)


def in_ddl_context(text: str, offset: int, window: int = DDL_CONTEXT_WINDOW) -> bool:
    """
    True when the closest statement keyword within `window` characters before
    `offset` is CREATE TABLE or ALTER TABLE.

    This is a bounded backward scan, not a parse: a CREATE TABLE further away than
    the window is not seen, and a data statement in between wins.
    """
    chunk = text[max(0, offset - window):offset]
    last: Optional[re.Match[str]] = None
    for last in _STATEMENT_KEYWORD_RE.finditer(chunk):
        pass
    return last is not None and last.group(1) is not None


Replacement = Tuple[str, Optional[ConversionIssue]]


def substitute(pattern: re.Pattern[str], text: str, replace: Callable[[re.Match[str]], Replacement]) -> RuleOutcome:
    """Run `pattern.sub` with a callback that also reports at most one issue per match."""
    issues: List[ConversionIssue] = []

    def _callback(match: re.Match[str]) -> str:
        replacement, issue = replace(match)
        if issue is not None:
            issues.append(issue)
        return replacement

    return RuleOutcome(text=pattern.sub(_callback, text), issues=issues)


def detect(pattern: re.Pattern[str], text: str, report: Callable[[re.Match[str]], Optional[ConversionIssue]]) -> RuleOutcome:
    """Report issues for every match without touching the text."""
    issues = [issue for issue in (report(m) for m in pattern.finditer(text)) if issue is not None]
    return RuleOutcome(text=text, issues=issues)


def line_start(text: str, offset: int) -> int:
    return text.rfind("\n", 0, offset) + 1


class TextSpans:
    """Sorted, non-overlapping `[start, end)` ranges of a text."""

    def __init__(self, spans: List[Tuple[int, int]]):
        self._starts = [start for start, _ in spans]
        self._ends = [end for _, end in spans]

    def end_of(self, offset: int) -> Optional[int]:
        """End of the span containing `offset`, or None when it lies outside every span."""
        index = bisect_right(self._starts, offset) - 1
        if index >= 0 and offset < self._ends[index]:
            return self._ends[index]
        return None

    def __contains__(self, offset: int) -> bool:
        return self.end_of(offset) is not None

    def __len__(self) -> int:
        return len(self._starts)


# Quoted literals and plain comments, scanned left to right so that a quote inside
# a comment (or a comment marker inside a string) is not mistaken for the other.
_LEXICAL_RE = re.compile(
    r"'(?:[^'\\]|\\.|'')*'"
    r'|"(?:[^"\\]|\\.|"")*"'
    r"|`[^`]*`"
    r"|--(?=[ \t\r\n]|\Z)[^\n]*"
    r"|#[^\n]*"
    r"|/\*(?!!).*?\*/",
    re.DOTALL,
)
_CONDITIONAL_COMMENT_SPAN_RE = re.compile(r"/\*!.*?\*/", re.DOTALL)


def string_literal_spans(text: str) -> TextSpans:
    """Spans of the single- and double-quoted literals of `text`."""
    return TextSpans([m.span() for m in _LEXICAL_RE.finditer(text) if m.group(0)[0] in "'\""])


def conditional_comment_spans(text: str) -> TextSpans:
    """Spans of the version-gated `/*!NNNNN ... */` blocks of `text`."""
    return TextSpans([m.span() for m in _CONDITIONAL_COMMENT_SPAN_RE.finditer(text)])


def substitute_outside(
    spans: TextSpans,
    pattern: re.Pattern[str],
    text: str,
    replace: Callable[[re.Match[str]], Replacement],
) -> RuleOutcome:
    """
    Like `substitute`, but matches starting inside `spans` are skipped and the search
    resumes at the end of that span, so a skipped match never swallows a real one.
    """
    issues: List[ConversionIssue] = []
    parts: List[str] = []
    last = pos = 0
    while pos <= len(text):
        match = pattern.search(text, pos)
        if match is None:
            break
        span_end = spans.end_of(match.start())
        if span_end is not None:
            pos = span_end
            continue
        replacement, issue = replace(match)
        if issue is not None:
            issues.append(issue)
        parts.append(text[last:match.start()])
        parts.append(replacement)
        last = match.end()
        pos = match.end() if match.end() > match.start() else match.end() + 1
    parts.append(text[last:])
    return RuleOutcome(text="".join(parts), issues=issues)


# --- CREATE TABLE statement scanning -------------------------------------------------

_CREATE_TABLE_RE = re.compile(
    r"\bCREATE\s+(?:TEMPORARY\s+)?TABLE\s+(?:IF\s+NOT\s+EXISTS\s+)?"
    r"((?:`[^`]+`|[\w$]+)(?:\.(?:`[^`]+`|[\w$]+))?)\s*\(",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class CreateTableStatement:
    """Offsets of one CREATE TABLE statement inside a text."""

    name: str
    start: int
    body_start: int  # first character after the opening parenthesis
    body_end: int  # index of the closing parenthesis
    end: int  # index just past the terminating `;` (or end of text)

    def body(self, text: str) -> str:
        return text[self.body_start:self.body_end]

    def options(self, text: str) -> str:
        """Table options between the closing parenthesis and the end of the statement."""
        return text[self.body_end + 1:self.end]


def _skip_quoted(text: str, index: int) -> int:
    quote = text[index]
    index += 1
    size = len(text)
    while index < size:
        char = text[index]
        if char == "\\" and quote != "`":
            index += 2
            continue
        if char == quote:
            if index + 1 < size and text[index + 1] == quote:
                index += 2
                continue
            return index + 1
        index += 1
    return size


def _find_closing_paren(text: str, index: int) -> int:
    depth = 1
    size = len(text)
    while index < size:
        char = text[index]
        if char in "'\"`":
            index = _skip_quoted(text, index)
            continue
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return index
        index += 1
    return -1


def _find_statement_end(text: str, index: int) -> int:
    size = len(text)
    while index < size:
        char = text[index]
        if char in "'\"`":
            index = _skip_quoted(text, index)
            continue
        if char == ";":
            return index + 1
        index += 1
    return size


def iter_create_table_statements(text: str) -> Iterator[CreateTableStatement]:
    """Yield every CREATE TABLE statement whose column list is balanced."""
    pos = 0
    while True:
        match = _CREATE_TABLE_RE.search(text, pos)
        if match is None:
            return
        body_end = _find_closing_paren(text, match.end())
        if body_end < 0:
            return
        end = _find_statement_end(text, body_end + 1)
        yield CreateTableStatement(
            name=match.group(1).replace("`", ""),
            start=match.start(),
            body_start=match.end(),
            body_end=body_end,
            end=end,
        )
        pos = end


# Start of a column definition: line start, `(` or `,` (or ALTER ... ADD/MODIFY),
# followed by the column name. Group 1 captures everything up to the type.
COLUMN_DEFINITION_PREFIX = (
    r"((?:^|[(,]|\b(?:ADD|MODIFY)(?:\s+COLUMN)?)[ \t]*"
    r"(?:`[^`\n]+`|[A-Za-z_$][\w$]*)[ \t]+)"
)
