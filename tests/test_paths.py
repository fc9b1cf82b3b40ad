import pytest

from src.core.paths import breadcrumbs, join, normalize, split


@pytest.mark.parametrize(
    "path, expected",
    [
        (None, ""),
        ("", ""),
        ("/", ""),
        ("///", ""),
        ("/a//b/", "a/b"),
        ("a/b/c", "a/b/c"),
        ("//docs///guides//", "docs/guides"),
    ],
)
def test_normalize(path, expected):
    assert normalize(path) == expected


@pytest.mark.parametrize("path", ["", "/", "a", "/a//b/", "a///b//c/", "//", "x/ /y"])
def test_normalize_is_idempotent(path):
    assert normalize(normalize(path)) == normalize(path)


def test_join():
    assert join("a/b", "", "c.txt") == "a/b/c.txt"
    assert join("", "file.txt") == "file.txt"
    assert join("/", "file.txt") == "file.txt"
    assert join("docs/", "/guide.md") == "docs/guide.md"
    assert join(None, "a", None) == "a"
    assert join() == ""
    assert join("", "/") == ""


def test_split_and_breadcrumbs():
    assert split("/a//b/") == ["a", "b"]
    assert split("") == []
    assert breadcrumbs("a/b") == [("Root", ""), ("a", "a"), ("b", "a/b")]
    assert breadcrumbs("") == [("Root", "")]
