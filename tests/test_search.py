"""Tests for the search engines."""

from __future__ import annotations

import pytest

from unified_history.errors import UsageError
from unified_history.services.search import (
    BufferedSearchEngine,
    StreamingSearchEngine,
    compile_pattern,
    get_engine,
    recent,
    search,
    search_with_context,
)

ENGINE_CLASSES = [StreamingSearchEngine, BufferedSearchEngine]


@pytest.fixture
def git_store(make_store):
    """15 git commands interleaved with other commands under changing markers."""
    lines = []
    for i in range(15):
        lines.append(f"#{1000 + i}")
        lines.append(f"git commit -m 'change {i}'")
        lines.append(f"make build-{i}")
    return make_store("\n".join(lines) + "\n")


@pytest.fixture
def numbered_store(make_store):
    return make_store("#500\n" + "".join(f"cmd{i}\n" for i in range(10)))


class TestCompilePattern:
    def test_empty_pattern_is_usage_error(self):
        with pytest.raises(UsageError):
            compile_pattern("")

    def test_blank_pattern_is_usage_error(self):
        with pytest.raises(UsageError):
            compile_pattern("   ")

    def test_case_insensitive(self):
        assert compile_pattern("GIT").search("git status")

    def test_regex(self):
        assert compile_pattern(r"^git\s+st").search("git status")

    def test_invalid_regex_matches_literally(self):
        regex = compile_pattern("echo (")
        assert regex.search("echo (unbalanced")
        assert not regex.search("echo unbalanced")


@pytest.mark.parametrize("engine_cls", ENGINE_CLASSES)
class TestSearchEngine:
    def test_truncates_to_last_matches(self, engine_cls, git_store):
        result = engine_cls().search(git_store, "git", max_results=10)
        assert result.total == 15
        assert result.truncated is True
        assert len(result.matches) == 10
        assert [m.index for m in result.matches] == list(range(6, 16))
        assert result.matches[0].record.text == "git commit -m 'change 5'"
        assert result.matches[-1].record.text == "git commit -m 'change 14'"

    def test_no_truncation_when_limit_covers_matches(self, engine_cls, git_store):
        result = engine_cls().search(git_store, "git", max_results=15)
        assert result.total == 15
        assert result.truncated is False
        assert len(result.matches) == 15

    def test_show_all(self, engine_cls, git_store):
        result = engine_cls().search(git_store, "git", max_results=3, show_all=True)
        assert result.total == 15
        assert result.truncated is False
        assert [m.index for m in result.matches] == list(range(1, 16))

    def test_default_limit_is_ten(self, engine_cls, git_store):
        assert len(engine_cls().search(git_store, "make").matches) == 10

    def test_matches_carry_marker_timestamp(self, engine_cls, git_store):
        result = engine_cls().search(git_store, "build-3$")
        assert [(m.record.text, m.record.timestamp) for m in result.matches] == [("make build-3", 1003)]

    def test_spans(self, engine_cls, make_store):
        store = make_store("#1\nGit add . && git push\n")
        match = engine_cls().search(store, "git").matches[0]
        assert match.spans == ((0, 3), (13, 16))

    def test_zero_matches(self, engine_cls, git_store):
        result = engine_cls().search(git_store, "docker")
        assert result.total == 0
        assert result.matches == []
        assert result.truncated is False

    def test_pattern_only_matches_commands(self, engine_cls, git_store):
        assert engine_cls().search(git_store, "1003").total == 0

    def test_missing_store(self, engine_cls, store):
        assert engine_cls().search(store, "git").total == 0

    def test_empty_pattern(self, engine_cls, git_store):
        with pytest.raises(UsageError):
            engine_cls().search(git_store, "")

    def test_invalid_limit(self, engine_cls, git_store):
        with pytest.raises(UsageError):
            engine_cls().search(git_store, "git", max_results=0)

    def test_engine_name(self, engine_cls, git_store):
        assert engine_cls().search(git_store, "git").engine == engine_cls.name


class TestEngineConformance:
    @pytest.mark.parametrize(
        "pattern,max_results,show_all",
        [
            ("git", 10, False),
            ("git", 1, False),
            ("GIT", 100, False),
            ("make", 4, True),
            (r"change [12]", 2, False),
            ("build-1", 10, False),
            ("nothing-matches", 10, False),
            ("(", 10, False),
        ],
    )
    def test_engines_agree(self, git_store, pattern, max_results, show_all):
        streaming = StreamingSearchEngine().search(git_store, pattern, max_results, show_all)
        buffered = BufferedSearchEngine().search(git_store, pattern, max_results, show_all)
        assert streaming.matches == buffered.matches
        assert streaming.total == buffered.total
        assert streaming.truncated == buffered.truncated


class TestGetEngine:
    def test_auto_prefers_streaming(self):
        assert isinstance(get_engine("auto"), StreamingSearchEngine)

    def test_buffered(self):
        assert isinstance(get_engine("buffered"), BufferedSearchEngine)

    def test_unknown(self):
        with pytest.raises(UsageError):
            get_engine("awk")

    def test_search_uses_named_engine(self, git_store):
        assert search(git_store, "git", engine="buffered").engine == "buffered"


class TestSearchWithContext:
    def test_window_around_match(self, numbered_store):
        blocks = search_with_context(numbered_store, "cmd5", context_lines=2)
        assert len(blocks) == 1
        block = blocks[0]
        assert [r.text for r in block.before] == ["cmd3", "cmd4"]
        assert block.match.text == "cmd5"
        assert [r.text for r in block.after] == ["cmd6", "cmd7"]
        assert [r.position for r in block.records] == [3, 4, 5, 6, 7]
        assert all(r.timestamp == 500 for r in block.records)

    def test_first_record_has_no_before(self, numbered_store):
        block = search_with_context(numbered_store, "cmd0", context_lines=3)[0]
        assert block.before == []
        assert [r.text for r in block.after] == ["cmd1", "cmd2", "cmd3"]

    def test_last_record_has_no_after(self, numbered_store):
        block = search_with_context(numbered_store, "cmd9", context_lines=3)[0]
        assert [r.text for r in block.before] == ["cmd6", "cmd7", "cmd8"]
        assert block.after == []

    def test_overlapping_windows_not_merged(self, numbered_store):
        blocks = search_with_context(numbered_store, "cmd[45]", context_lines=1)
        assert [[r.text for r in b.records] for b in blocks] == [
            ["cmd3", "cmd4", "cmd5"],
            ["cmd4", "cmd5", "cmd6"],
        ]

    def test_default_context_is_three(self, numbered_store):
        block = search_with_context(numbered_store, "cmd5")[0]
        assert len(block.before) == 3
        assert len(block.after) == 3

    def test_zero_context(self, numbered_store):
        block = search_with_context(numbered_store, "cmd5", context_lines=0)[0]
        assert block.records == [block.match]

    def test_case_insensitive_with_spans(self, numbered_store):
        block = search_with_context(numbered_store, "CMD7")[0]
        assert block.spans == ((0, 4),)

    def test_negative_context(self, numbered_store):
        with pytest.raises(UsageError):
            search_with_context(numbered_store, "cmd", context_lines=-1)

    def test_no_matches(self, numbered_store):
        assert search_with_context(numbered_store, "ssh") == []

    def test_empty_pattern(self, numbered_store):
        with pytest.raises(UsageError):
            search_with_context(numbered_store, "")


class TestRecent:
    def test_last_records_in_order(self, numbered_store):
        assert [r.text for r in recent(numbered_store, 3)] == ["cmd7", "cmd8", "cmd9"]

    def test_count_larger_than_store(self, numbered_store):
        assert len(recent(numbered_store, 50)) == 10

    def test_zero(self, numbered_store):
        assert recent(numbered_store, 0) == []

    def test_negative(self, numbered_store):
        with pytest.raises(UsageError):
            recent(numbered_store, -1)

    def test_missing_store(self, store):
        assert recent(store, 5) == []
