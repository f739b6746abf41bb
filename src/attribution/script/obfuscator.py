"""Cosmetic obfuscation of rendered tracking scripts.

The obfuscator renames a fixed set of identifiers, sprinkles filler comments
and collapses whitespace.  It works on a token stream that separates code from
literals (strings, template strings, regex literals and comments) so that
cookie values, URLs and regex text are never rewritten.

Input scripts must terminate statements with explicit semicolons: newlines are
collapsed, so code relying on automatic semicolon insertion would change
meaning.
"""

from __future__ import annotations

import random
import re
from typing import NamedTuple

RESERVED_FUNCTIONS: tuple[str, ...] = (
    "setCookie",
    "getCookie",
    "checkReferrer",
    "checkCookieA",
    "executeScript",
)
RESERVED_VARIABLES: tuple[str, ...] = ("cookieA", "cookieB", "referrer", "domain", "expiry")

FILLER_COMMENTS: tuple[str, ...] = (
    "/* Optimized for performance */",
    "/* Enhanced tracking */",
    "/* Secure implementation */",
    "/* Advanced analytics */",
    "/* Real-time monitoring */",
)

CODE = "code"
STRING = "string"
TEMPLATE = "template"
REGEX = "regex"
COMMENT = "comment"

LITERAL_KINDS = frozenset({STRING, TEMPLATE, REGEX})

# Keywords after which a "/" starts a regex literal rather than a division.
_REGEX_KEYWORDS = frozenset(
    {
        "return", "typeof", "case", "do", "else", "in", "of", "new",
        "delete", "void", "throw", "instanceof", "yield", "await",
    }
)
_REGEX_PRECEDERS = set("(,=:[!&|?{};+-*%<>~^")

_RESERVED_PATTERN = re.compile(
    r"(?<![\w$])(" + "|".join(RESERVED_FUNCTIONS + RESERVED_VARIABLES) + r")(?![\w$])"
)
_TRAILING_WORD = re.compile(r"[\w$]+$")
_WHITESPACE = re.compile(r"\s+")
_PUNCTUATION_SPACING = re.compile(r"\s*([{}();,=])\s*")


class Segment(NamedTuple):
    """One region of a script: ``kind`` is ``code`` or a literal/comment kind."""

    kind: str
    text: str


def _scan_quoted(code: str, start: int, quote: str) -> int:
    i = start + 1
    while i < len(code):
        ch = code[i]
        if ch == "\\":
            i += 2
            continue
        if ch == quote:
            return i + 1
        if ch == "\n" and quote != "`":
            return i
        i += 1
    return len(code)


def _scan_regex(code: str, start: int) -> int:
    i = start + 1
    in_class = False
    while i < len(code):
        ch = code[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "\n":
            return i
        if ch == "[":
            in_class = True
        elif ch == "]":
            in_class = False
        elif ch == "/" and not in_class:
            i += 1
            break
        i += 1
    while i < len(code) and (code[i].isalpha()):
        i += 1
    return i


def _regex_allowed(pending: str, after_literal: bool) -> bool:
    """Decide whether a ``/`` following *pending* code opens a regex literal."""
    tail = pending.rstrip()
    if not tail:
        return not after_literal
    if tail[-1] in _REGEX_PRECEDERS:
        return True
    word = _TRAILING_WORD.search(tail)
    if word:
        return word.group() in _REGEX_KEYWORDS
    return False


def tokenize(code: str) -> list[Segment]:
    """Split JavaScript source into code and literal segments.

    Concatenating the ``text`` of every segment reproduces *code* exactly.
    """
    segments: list[Segment] = []
    pending: list[str] = []
    after_literal = False

    def flush() -> None:
        if pending:
            segments.append(Segment(CODE, "".join(pending)))
            pending.clear()

    i = 0
    while i < len(code):
        ch = code[i]
        if ch in "\"'`":
            end = _scan_quoted(code, i, ch)
            kind = TEMPLATE if ch == "`" else STRING
        elif code.startswith("//", i):
            newline = code.find("\n", i)
            end = len(code) if newline == -1 else newline
            kind = COMMENT
        elif code.startswith("/*", i):
            close = code.find("*/", i + 2)
            end = len(code) if close == -1 else close + 2
            kind = COMMENT
        elif ch == "/" and _regex_allowed("".join(pending), after_literal):
            end = _scan_regex(code, i)
            kind = REGEX
        else:
            pending.append(ch)
            if not ch.isspace():
                after_literal = False
            i += 1
            continue

        flush()
        segments.append(Segment(kind, code[i:end]))
        if kind in LITERAL_KINDS:
            after_literal = True
        i = end

    flush()
    return segments


def _is_member_or_key(text: str, start: int, end: int) -> bool:
    before = text[:start].rstrip()
    if before.endswith(".") and not before.endswith("..."):
        return True
    after = text[end:].lstrip()
    return after.startswith(":") and before.endswith(("{", ","))


def _merge_code(segments: list[Segment]) -> list[Segment]:
    merged: list[Segment] = []
    for seg in segments:
        if merged and seg.kind == CODE and merged[-1].kind == CODE:
            merged[-1] = Segment(CODE, merged[-1].text + seg.text)
        else:
            merged.append(seg)
    return merged


class Obfuscator:
    """Per-render renaming table plus the random source used to fill it.

    A new instance must be used for every script so that aliases differ
    between renders.
    """

    def __init__(self, rng: random.Random | None = None, *, comment_ratio: float = 0.1) -> None:
        self._rng = rng or random.Random()
        self._comment_ratio = comment_ratio
        self._aliases: dict[str, str] = {}

    @property
    def aliases(self) -> dict[str, str]:
        """Return a copy of the identifier -> alias table built so far."""
        return dict(self._aliases)

    def alias_for(self, name: str) -> str:
        """Return the alias for *name*, generating one on first use."""
        alias = self._aliases.get(name)
        if alias is None:
            prefix = "fn" if name in RESERVED_FUNCTIONS else "var"
            taken = set(self._aliases.values())
            while alias is None or alias in taken:
                alias = f"{prefix}_{self._rng.getrandbits(64):016x}"
            self._aliases[name] = alias
        return alias

    def obfuscate(self, code: str) -> str:
        segments = [self._rename(seg) for seg in tokenize(code)]
        segments = self._drop_comments(segments)
        segments = _merge_code(self._add_filler_comments(segments))
        return "".join(self._collapse(seg) for seg in segments).strip()

    def _rename(self, segment: Segment) -> Segment:
        if segment.kind != CODE:
            return segment
        text = segment.text

        def replace(match: re.Match[str]) -> str:
            if _is_member_or_key(text, match.start(), match.end()):
                return match.group()
            return self.alias_for(match.group())

        return Segment(CODE, _RESERVED_PATTERN.sub(replace, text))

    @staticmethod
    def _drop_comments(segments: list[Segment]) -> list[Segment]:
        # A removed comment still separates the tokens around it.
        return [Segment(CODE, " ") if seg.kind == COMMENT else seg for seg in segments]

    def _add_filler_comments(self, segments: list[Segment]) -> list[Segment]:
        result: list[Segment] = []
        line_has_content = False
        for seg in segments:
            if seg.kind != CODE:
                result.append(seg)
                line_has_content = True
                continue
            lines = seg.text.split("\n")
            for index, part in enumerate(lines):
                if part.strip():
                    line_has_content = True
                is_last = index == len(lines) - 1
                if part or not is_last:
                    result.append(Segment(CODE, part))
                if is_last:
                    continue
                if line_has_content and self._rng.random() < self._comment_ratio:
                    result.append(Segment(COMMENT, self._rng.choice(FILLER_COMMENTS)))
                result.append(Segment(CODE, "\n"))
                line_has_content = False
        return result

    @staticmethod
    def _collapse(segment: Segment) -> str:
        if segment.kind != CODE:
            return segment.text
        text = _WHITESPACE.sub(" ", segment.text)
        return _PUNCTUATION_SPACING.sub(r"\1", text)


def obfuscate(code: str, rng: random.Random | None = None) -> str:
    """Obfuscate *code* with a fresh :class:`Obfuscator`."""
    return Obfuscator(rng).obfuscate(code)
