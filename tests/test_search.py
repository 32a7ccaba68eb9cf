"""Accent/case folding used by list name filters."""
from sqlalchemy import String, column, select
from sqlalchemy.dialects import sqlite

from app.adminkit.search import fold, matches, name_filter


class TestFold:
    def test_turkish_letters_fold_to_ascii(self):
        assert fold("çğıöşü") == "cgiosu"
        assert fold("ÇĞİÖŞÜ") == "cgiosu"

    def test_plain_text_is_lowercased(self):
        assert fold("Hello World") == "hello world"

    def test_empty(self):
        assert fold("") == ""
        assert fold(None) == ""


class TestMatches:
    def test_accent_insensitive_both_sides(self):
        assert matches("Çiçek Şubesi", "cicek")
        assert matches("cicek subesi", "ÇİÇEK")
        assert matches("Işık", "isik")

    def test_substring_only(self):
        assert not matches("Ankara", "izmir")

    def test_blank_keyword_matches_everything(self):
        assert matches("anything", "")


def test_name_filter_escapes_wildcards():
    clause = name_filter(column("name", String), "50%_off")
    compiled = str(select(column("id")).where(clause).compile(dialect=sqlite.dialect()))
    assert "replace" in compiled.lower()
    assert "ESCAPE" in compiled
