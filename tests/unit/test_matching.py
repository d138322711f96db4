"""Tests for rule-content matching and glob translation."""

from __future__ import annotations

import re

import pytest

from permgate.permissions.matching import (
    IgnoreSpec,
    PatternError,
    content_matches,
    path_pattern_matches,
    rule_matches,
    tool_name_matches,
    translate_glob,
)
from permgate.types.rules import RuleValue

# --- Glob translation ---


class TestTranslateGlob:
    def _full(self, pattern: str, path: str) -> bool:
        return re.fullmatch(translate_glob(pattern), path) is not None

    def test_star_stays_in_segment(self):
        assert self._full("*.py", "app.py")
        assert not self._full("*.py", "src/app.py")

    def test_double_star_crosses_directories(self):
        assert self._full("src/**", "src/a/b/c.py")

    def test_double_star_slash_matches_zero_dirs(self):
        assert self._full("**/test.py", "test.py")
        assert self._full("**/test.py", "a/b/test.py")

    def test_question_mark(self):
        assert self._full("file?.txt", "file1.txt")
        assert not self._full("file?.txt", "file/.txt")

    def test_character_class(self):
        assert self._full("log[0-9].txt", "log3.txt")
        assert not self._full("log[0-9].txt", "logx.txt")

    @pytest.mark.parametrize("neg", ["!", "^"])
    def test_negated_character_class(self, neg):
        pattern = f"log[{neg}0-9].txt"
        assert self._full(pattern, "logx.txt")
        assert not self._full(pattern, "log3.txt")

    def test_literal_characters_escaped(self):
        assert self._full("a+b.txt", "a+b.txt")
        assert not self._full("a.txt", "abtxt")

    def test_unterminated_class_raises(self):
        with pytest.raises(PatternError):
            translate_glob("log[0-9.txt")

    def test_pattern_error_is_value_error(self):
        assert issubclass(PatternError, ValueError)


# --- Gitignore-style specs ---


class TestIgnoreSpec:
    def test_unanchored_matches_any_depth(self):
        spec = IgnoreSpec(("*.log",))
        assert spec.match("output.log")
        assert spec.match("build/output.log")

    def test_leading_slash_anchors(self):
        spec = IgnoreSpec(("/build",))
        assert spec.match("build/output.log")
        assert not spec.match("src/build/output.log")

    def test_trailing_slash_covers_contents(self):
        spec = IgnoreSpec(("node_modules/",))
        assert spec.match("node_modules/pkg/index.js")
        assert spec.match("web/node_modules/pkg/index.js")

    def test_comments_and_blank_lines_skipped(self):
        spec = IgnoreSpec(("# comment", "", "*.tmp"))
        assert spec.match("a.tmp")
        assert not spec.match("# comment")

    def test_negation_last_match_wins(self):
        spec = IgnoreSpec(("*.log", "!keep.log"))
        assert spec.match("debug.log")
        assert not spec.match("keep.log")

    def test_renegation(self):
        spec = IgnoreSpec(("*.log", "!keep.log", "keep.log"))
        assert spec.match("keep.log")

    def test_case_sensitive(self):
        assert not IgnoreSpec(("*.LOG",)).match("out.log")

    def test_malformed_raises(self):
        with pytest.raises(PatternError):
            IgnoreSpec(("[abc",))


class TestPathPatternMatches:
    def test_star_matches_everything(self):
        assert path_pattern_matches("*", "a/b/c.py")

    def test_prefix_suffix_is_ignored_for_paths(self):
        assert path_pattern_matches("src/:*", "src/app.py")

    def test_nested_glob(self):
        assert path_pattern_matches("src/**/*.py", "src/pkg/mod.py")
        assert path_pattern_matches("src/**/*.py", "src/mod.py")
        assert not path_pattern_matches("src/**/*.py", "tests/mod.py")


# --- Command / generic content ---


class TestContentMatches:
    def test_star(self):
        assert content_matches("*", "anything at all")

    def test_exact(self):
        assert content_matches("git status", "git status")
        assert not content_matches("git status", "git status -s")

    def test_prefix_word_boundary(self):
        assert content_matches("npm test:*", "npm test")
        assert content_matches("npm test:*", "npm test --watch")
        assert not content_matches("npm test:*", "npm testing")

    def test_empty_prefix_matches_all(self):
        assert content_matches(":*", "ls")

    def test_case_sensitive(self):
        assert not content_matches("Git status", "git status")


# --- Tool names ---


class TestToolNameMatches:
    def test_exact_and_case_sensitive(self):
        assert tool_name_matches(RuleValue("Bash"), "Bash")
        assert not tool_name_matches(RuleValue("bash"), "Bash")

    def test_mcp_server_rule(self):
        assert tool_name_matches(RuleValue("mcp__github"), "mcp__github__create_issue")
        assert not tool_name_matches(RuleValue("mcp__github"), "mcp__gitlab__create_issue")

    def test_mcp_server_wildcard(self):
        assert tool_name_matches(RuleValue("mcp__github__*"), "mcp__github__list_prs")

    def test_mcp_server_rule_with_content_is_not_server_wide(self):
        assert not tool_name_matches(RuleValue("mcp__github", "x"), "mcp__github__create_issue")

    def test_no_generic_tool_globbing(self):
        assert not tool_name_matches(RuleValue("B*"), "Bash")


# --- rule_matches ---


class TestRuleMatches:
    def test_no_content_matches_every_invocation(self):
        assert rule_matches(RuleValue("Bash"), "Bash", "rm -rf /")

    def test_other_tool_never_matches(self):
        assert not rule_matches(RuleValue("Bash", "*"), "Read", "x")

    def test_command_prefix(self):
        rule = RuleValue("Bash", "npm test:*")
        assert rule_matches(rule, "Bash", "npm test --watch")
        assert not rule_matches(rule, "Bash", "npm testing")

    def test_command_whitespace_trimmed(self):
        assert rule_matches(RuleValue("Bash", "ls"), "Bash", "  ls\n")

    def test_path_relative_to_root(self, tmp_project):
        rule = RuleValue("Read", "src/**")
        assert rule_matches(rule, "Read", "src/app.py", str(tmp_project))
        assert rule_matches(rule, "Read", str(tmp_project / "src" / "app.py"), str(tmp_project))
        assert not rule_matches(rule, "Read", "docs/index.md", str(tmp_project))

    def test_path_outside_root_never_matches(self, tmp_project):
        assert not rule_matches(RuleValue("Read", "*"), "Read", "../other/x", str(tmp_project))

    def test_malformed_path_glob_never_matches(self, tmp_project, caplog):
        rule = RuleValue("Read", "src/[oops")
        assert not rule_matches(rule, "Read", "src/app.py", str(tmp_project))
        assert "never matches" in caplog.text

    def test_web_domain(self):
        rule = RuleValue("WebFetch", "domain:example.com")
        assert rule_matches(rule, "WebFetch", "https://example.com/docs")
        assert not rule_matches(rule, "WebFetch", "https://evil.com/?example.com")
        assert not rule_matches(rule, "WebFetch", "https://sub.example.com/")

    def test_web_exact_url(self):
        rule = RuleValue("WebFetch", "https://example.com/a")
        assert rule_matches(rule, "WebFetch", "https://example.com/a")
        assert not rule_matches(rule, "WebFetch", "https://example.com/b")
