"""Short human-readable reference codes for ledger entries"""

from typing import Callable


def initials(label: str) -> str:
    """
    Initials of a person label.

    "Surname, Given[, Middle]" takes the first character of each comma
    segment in order. Otherwise the first characters of the first and last
    whitespace-separated tokens are used.

    Examples:
        "Dela Cruz, Juan, Santos" -> "DJS"
        "Juan Dela Cruz" -> "JC"
        "Cher" -> "C"
    """
    if "," in label:
        segments = [segment.strip() for segment in label.split(",")]
        return "".join(segment[0] for segment in segments if segment)

    tokens = label.split()
    if not tokens:
        return ""
    if len(tokens) == 1:
        return tokens[0][0]
    return tokens[0][0] + tokens[-1][0]


def group_prefix(group_name: str, length: int = 5) -> str:
    """Up to `length` leading non-whitespace characters of a group name, unpadded"""
    return "".join(group_name.split())[:length]


def generate(
    borrower_label: str,
    lender_label: str,
    borrower_is_group: bool = False,
    group_code_length: int = 5,
) -> str:
    """Base code: borrower part followed by lender initials, uppercased"""
    if borrower_is_group:
        borrower_part = group_prefix(borrower_label, group_code_length)
    else:
        borrower_part = initials(borrower_label)

    return (borrower_part + initials(lender_label)).upper()


def unique_code(base: str, exists: Callable[[str], bool]) -> str:
    """
    Make `base` unique by appending 1, 2, 3, ... until `exists` is False.

    The counter restarts for every base code.
    """
    if not exists(base):
        return base

    suffix = 1
    while exists(f"{base}{suffix}"):
        suffix += 1
    return f"{base}{suffix}"
