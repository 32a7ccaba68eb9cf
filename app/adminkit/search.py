"""
Accent-insensitive name matching for the Turkish letter set.

The same folding is applied to the stored column (in SQL) and to the search
term (in Python) so both sides compare in the same alphabet.
"""
from __future__ import annotations

from sqlalchemy import String, func
from sqlalchemy.sql.elements import ColumnElement

FOLD_MAP = {
    "ç": "c", "Ç": "c",
    "ğ": "g", "Ğ": "g",
    "ı": "i", "İ": "i",
    "ö": "o", "Ö": "o",
    "ş": "s", "Ş": "s",
    "ü": "u", "Ü": "u",
}


def fold(text: str | None) -> str:
    if not text:
        return ""
    return "".join(FOLD_MAP.get(ch, ch) for ch in text).lower()


def matches(text: str | None, keyword: str | None) -> bool:
    return fold(keyword) in fold(text)


def folded(column) -> ColumnElement[str]:
    # lower() runs last: SQLite only lower-cases ASCII, so accented capitals go first.
    expr = column
    for src, dst in FOLD_MAP.items():
        expr = func.replace(expr, src, dst, type_=String)
    return func.lower(expr, type_=String)


def name_filter(column, term: str) -> ColumnElement[bool]:
    return folded(column).contains(fold(term.strip()), autoescape=True)
