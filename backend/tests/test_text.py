"""Tests for text helpers."""

from vault_index.utils.text import find_positions, inline_tags, query_terms, strip_fenced_code


def test_inline_tags_skip_closed_fences() -> None:
    text = "Intro #alpha\n\n```python\n# comment #beta\n```\n\nOutro #gamma #alpha\n"
    assert inline_tags(text) == ["alpha", "gamma"]


def test_inline_tags_skip_unclosed_fence_to_end_of_document() -> None:
    text = "#keep\n\n```\n#inside\nstill code #more\n"
    assert inline_tags(text) == ["keep"]


def test_inline_tags_skip_indented_fence() -> None:
    text = "Note #outer\n\n  ~~~\n  #hidden\n  ~~~\n"
    assert inline_tags(text) == ["outer"]


def test_inline_tags_ignore_numbers_and_headings() -> None:
    assert inline_tags("# Title\n\nIssue #42 is tagged #bug/ui") == ["bug/ui"]


def test_strip_fenced_code_keeps_prose_lines() -> None:
    text = "before\n```\ncode\n```\nafter\n"
    assert strip_fenced_code(text) == "before\nafter\n"


def test_query_terms_and_positions() -> None:
    assert query_terms("Vector, vector SEARCH a") == ["vector", "search"]
    assert find_positions("Vector search over vectors", "vector") == [(0, 6), (19, 25)]
