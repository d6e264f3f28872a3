"""Product matching and display-name normalization.

Products are joined across stages by their label. `match_product` is the
only place that decides whether two labels are the same product, so a
future join on a stable product id only has to change this module.
"""

import re
from typing import Iterable, Optional, TypeVar

from models.canonical import parse_number

__all__ = [
    "parse_number",
    "match_product",
    "find_product",
    "clean_product_name",
    "bill_product_name",
    "split_names",
]

T = TypeVar("T")

_LEADING_CODE = re.compile(r"^\d+\s*-\s*")
_TAMIL = re.compile(r"[\u0B80-\u0BFF]+")
_EMPTY_PARENS = re.compile(r"\(\s*\)")
_BOX_SUFFIX = re.compile(r"\s*BOX\s*\d+", re.IGNORECASE)
_KG_SUFFIX = re.compile(r"\s*\d+KG", re.IGNORECASE)
_SPACES = re.compile(r"\s+")


def match_product(a: Optional[str], b: Optional[str]) -> bool:
    """Exact label equality. Empty labels never match."""
    if not a or not b:
        return False
    return a == b


def find_product(product: str, items: Iterable[T]) -> Optional[T]:
    """First item whose `product` matches."""
    for item in items:
        if match_product(product, getattr(item, "product", None)):
            return item
    return None


def clean_product_name(name: Optional[str]) -> str:
    """Display form of a product label.

    "12 - Tomato (தக்காளி)" -> "Tomato"
    """
    if not name:
        return ""
    text = _LEADING_CODE.sub("", name)
    text = _TAMIL.sub("", text)
    text = _EMPTY_PARENS.sub("", text)
    return _SPACES.sub(" ", text).strip()


def bill_product_name(name: Optional[str]) -> str:
    """Upper-cased product label with box and kg pack markers removed."""
    text = clean_product_name(name).upper()
    text = _BOX_SUFFIX.sub("", text)
    text = _KG_SUFFIX.sub("", text)
    return _SPACES.sub(" ", text).strip()


def split_names(value: Optional[str]) -> list:
    """Split a comma-separated labour string, dropping blanks and '-'."""
    if not value or value == "-":
        return []
    return [part.strip() for part in value.split(",") if part.strip() and part.strip() != "-"]
