"""Version-string rules: sanity check, major.minor bucketing, ordering.

The ordering follows the conventions of the update server's ecosystem:
versions are split into numeric and alphabetic parts, and the alphabetic
parts rank as ``dev < alpha = a < beta = b < RC = rc < (number) < pl = p``.
Anything unrecognised sorts below ``dev``.
"""

import re
from functools import cmp_to_key

OBFUSCATED = "obfuscated"

_NORMAL_VERSION_RE = re.compile(r"^\d{1,2}\.\d")
_AGGREGATE_RE = re.compile(r"^(\d{1,2}\.\d{1,3})(?:\.|$)")

_SPECIAL_FORMS = (
    ("dev", 0),
    ("alpha", 1),
    ("a", 1),
    ("beta", 2),
    ("b", 2),
    ("RC", 3),
    ("rc", 3),
    ("#", 4),
    ("pl", 5),
    ("p", 5),
)
# Stand-in for "a numeric part" when comparing against a special form.
_NUMBER_FORM = "#N#"


def looks_like_normal_version(version: str) -> bool:
    """True if *version* starts like ``4.7`` or ``10.2``."""
    return _NORMAL_VERSION_RE.match(version) is not None


def aggregate_version(version: str | None) -> str | None:
    """Get the major and minor parts of a version number.

    ``"1.2.3-RC1"`` becomes ``"1.2"``. The obfuscated sentinel aggregates to
    itself and anything else that doesn't look like a version becomes None.
    """
    if version is None:
        return None
    match = _AGGREGATE_RE.match(version)
    if match:
        return match.group(1)
    if version == OBFUSCATED:
        return version
    return None


def _is_digit(ch: str) -> bool:
    return "0" <= ch <= "9"


def _is_alnum(ch: str) -> bool:
    return ch.isascii() and ch.isalnum()


def _canonicalize(version: str) -> str:
    """Normalise separators and split digit/non-digit runs with dots."""
    out = [version[0]]
    last = version[0]
    for ch in version[1:]:
        if ch in "-_+":
            if out[-1] != ".":
                out.append(".")
        elif ch != "." and last != "." and _is_digit(last) != _is_digit(ch):
            if out[-1] != ".":
                out.append(".")
            out.append(ch)
        elif not _is_alnum(ch):
            if out[-1] != ".":
                out.append(".")
        else:
            out.append(ch)
        last = ch
    return "".join(out)


def _special_order(form: str) -> int:
    for name, order in _SPECIAL_FORMS:
        if form.startswith(name):
            return order
    return -1


def _sign(value: int) -> int:
    return (value > 0) - (value < 0)


def _compare_parts(left: str, right: str) -> int:
    left_numeric = left[:1].isdigit()
    right_numeric = right[:1].isdigit()
    if left_numeric and right_numeric:
        return _sign(int(left) - int(right))
    if left_numeric:
        return _sign(_special_order(_NUMBER_FORM) - _special_order(right))
    if right_numeric:
        return _sign(_special_order(left) - _special_order(_NUMBER_FORM))
    return _sign(_special_order(left) - _special_order(right))


def version_compare(left: str, right: str) -> int:
    """Three-way comparison of two version strings (-1, 0 or 1)."""
    if not left or not right:
        if not left and not right:
            return 0
        return 1 if left else -1

    left_parts = [p for p in _canonicalize(left).split(".") if p]
    right_parts = [p for p in _canonicalize(right).split(".") if p]

    for left_part, right_part in zip(left_parts, right_parts):
        result = _compare_parts(left_part, right_part)
        if result != 0:
            return result

    common = len(right_parts)
    if len(left_parts) > common:
        rest = left_parts[common:]
        if rest[0][:1].isdigit():
            return 1
        return version_compare(".".join(rest), _NUMBER_FORM)

    common = len(left_parts)
    if len(right_parts) > common:
        rest = right_parts[common:]
        if rest[0][:1].isdigit():
            return -1
        return version_compare(_NUMBER_FORM, ".".join(rest))

    return 0


def compare_versions_desc(left: str, right: str) -> int:
    return -version_compare(left, right)


version_key = cmp_to_key(version_compare)
version_key_desc = cmp_to_key(compare_versions_desc)
