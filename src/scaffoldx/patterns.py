"""Regex patterns and replacement strings as configurations write them."""

from __future__ import annotations

import re

REGEX_FLAGS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL, "u": 0, "g": 0, "y": 0}


def compile_pattern(pattern: str, flags: str) -> tuple[re.Pattern[str], int]:
    """Compile a pattern with letter flags; returns the regex and a ``re.sub`` count."""
    options = 0
    for flag in flags:
        if flag not in REGEX_FLAGS:
            raise ValueError(f"Unsupported regex flag {flag!r}")
        options |= REGEX_FLAGS[flag]
    # configurations write named groups as (?<name>...)
    translated = re.sub(r"\(\?<(?![=!])", "(?P<", pattern)
    return re.compile(translated, options), 0 if "g" in flags else 1


def replacement_template(replacement: str) -> str:
    """Translate ``$1``/``$&``/``$<name>``/``$$`` into ``re.sub`` syntax."""
    out: list[str] = []
    i = 0
    while i < len(replacement):
        ch = replacement[i]
        if ch == "\\":
            out.append("\\\\")
        elif ch == "$" and i + 1 < len(replacement):
            nxt = replacement[i + 1]
            if nxt == "$":
                out.append("$")
                i += 1
            elif nxt == "&":
                out.append(r"\g<0>")
                i += 1
            elif nxt.isdigit():
                digits = re.match(r"\d{1,2}", replacement[i + 1 :])
                assert digits is not None
                out.append(rf"\g<{int(digits.group(0))}>")
                i += len(digits.group(0))
            elif nxt == "<" and ">" in replacement[i + 2 :]:
                end = replacement.index(">", i + 2)
                out.append(rf"\g<{replacement[i + 2 : end]}>")
                i = end
            else:
                out.append(ch)
        else:
            out.append(ch)
        i += 1
    return "".join(out)

