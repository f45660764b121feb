"""Tests for glob matching and source discovery."""

import pytest
from pathlib import Path

from fabrica.assets.sources import SourceFile, discover, glob_base, matches


def touch(root, *paths):
    for rel in paths:
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(rel)


class TestGlobBase:
    """Tests for glob_base."""

    @pytest.mark.parametrize("pattern,expected", [
        ("assets/css/**/*.css", "assets/css"),
        ("includes/.env", "includes"),
        ("*.json", ""),
        ("templates/**/*.twig", "templates"),
        ("assets/*/img.png", "assets"),
    ])
    def test_static_prefix(self, pattern, expected):
        assert glob_base(pattern) == expected


class TestMatches:
    """Tests for the glob matcher."""

    def test_star_stays_in_segment(self):
        assert matches("*.php", "setup.php")
        assert not matches("*.php", "vendor/lib.php")

    def test_double_star(self):
        assert matches("assets/js/**/*.js", "assets/js/main.js")
        assert matches("assets/js/**/*.js", "assets/js/a/b/c.js")
        assert not matches("assets/js/**/*.js", "assets/css/main.js")

    def test_alternatives(self):
        assert matches("*.{css,pcss}", "main.css")
        assert matches("*.{css,pcss}", "main.pcss")
        assert not matches("*.{css,pcss}", "main.scss")

    def test_question_mark(self):
        assert matches("a?.js", "ab.js")
        assert not matches("a?.js", "a/.js")

    def test_dotfiles_need_literal_names(self):
        assert not matches("includes/*", "includes/.env")
        assert matches("includes/.env", "includes/.env")
        assert not matches("**/*.js", ".cache/x.js")

    def test_special_characters_escaped(self):
        assert matches("lib/jquery.min.js", "lib/jquery.min.js")
        assert not matches("lib/jquery.min.js", "lib/jqueryXminXjs")


class TestDiscover:
    """Tests for discover."""

    def test_relative_to_glob_base(self, tmp_path):
        touch(tmp_path, "assets/js/main.js", "assets/js/lib/a.js")
        found = discover(tmp_path, ["assets/js/**/*.js"], 'scripts')
        assert [s.relative for s in found] == ["lib/a.js", "main.js"]
        assert all(s.asset_class == 'scripts' for s in found)

    def test_sorted_per_pattern(self, tmp_path):
        """Each pattern's matches are sorted; patterns keep their order."""
        touch(tmp_path, "includes/b.php", "includes/a.php", "includes/.env")
        found = discover(tmp_path, ["includes/**/*.php", "includes/.env"])
        assert [s.relative for s in found] == ["a.php", "b.php", ".env"]

    def test_duplicates_listed_once(self, tmp_path):
        touch(tmp_path, "src/a.js")
        found = discover(tmp_path, ["src/*.js", "src/**/*.js"])
        assert len(found) == 1

    def test_missing_base(self, tmp_path):
        assert discover(tmp_path, ["nope/**/*"]) == []

    def test_top_level(self, tmp_path):
        touch(tmp_path, "includes/a.php", "includes/vendor/b.php")
        found = discover(tmp_path, ["includes/**/*.php"])
        assert {s.relative: s.is_top_level for s in found} == {
            "a.php": True,
            "vendor/b.php": False,
        }

    def test_read(self, tmp_path):
        touch(tmp_path, "a.txt")
        source = SourceFile(path=tmp_path / "a.txt", base=tmp_path)
        assert source.read() == b"a.txt"
        assert source.relative == "a.txt"
