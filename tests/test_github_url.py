"""Tests for GitHub tree URL parsing."""
import pytest

from repobot.collection.github_crawler import parse_github_url
from repobot.errors import InvalidSourceUrlError


def test_parses_tree_url_into_contents_api():
    location = parse_github_url("https://github.com/acme/repo/tree/main/docs")

    assert location.api_url == "https://api.github.com/repos/acme/repo/contents/"
    assert location.starting_path == "docs"
    assert (location.owner, location.repo, location.branch) == ("acme", "repo", "main")


def test_keeps_nested_path_and_drops_trailing_slash():
    location = parse_github_url("https://github.com/acme/repo/tree/master/docs/guides/")

    assert location.branch == "master"
    assert location.starting_path == "docs/guides"


def test_accepts_surrounding_whitespace():
    location = parse_github_url("  https://github.com/acme/repo/tree/main/docs \n")

    assert location.starting_path == "docs"


@pytest.mark.parametrize(
    "url",
    [
        "https://github.com/acme/repo",
        "https://github.com/acme/repo/docs",
        "https://github.com/acme/repo/blob/main/README.md",
        "https://github.com/acme/repo/tree/main",
        "https://github.com/acme/repo/tree/main/",
        "https://github.com/acme/repo/tree/develop/docs",
        "https://gitlab.com/acme/repo/tree/main/docs",
        "ftp://github.com/acme/repo/tree/main/docs",
        "not a url",
        "",
    ],
)
def test_rejects_other_shapes(url):
    with pytest.raises(InvalidSourceUrlError):
        parse_github_url(url)


def test_allowed_branches_are_configurable():
    location = parse_github_url(
        "https://github.com/acme/repo/tree/develop/docs", allowed_branches=("develop",)
    )

    assert location.branch == "develop"
    with pytest.raises(InvalidSourceUrlError):
        parse_github_url("https://github.com/acme/repo/tree/main/docs", allowed_branches=("develop",))
