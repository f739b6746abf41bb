"""Tests for the script tokenizer and obfuscator."""

from __future__ import annotations

import random
import re

from attribution.script.obfuscator import (
    CODE,
    COMMENT,
    FILLER_COMMENTS,
    REGEX,
    STRING,
    TEMPLATE,
    Obfuscator,
    obfuscate,
    tokenize,
)

ALIAS = re.compile(r"(fn|var)_[0-9a-f]{16}")


# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------


class TestTokenize:
    def test_concatenation_reproduces_input(self) -> None:
        code = 'var s = "a/b"; // note\nvar r = /x\\/y/g; x = a / b; `t ${y}`;'
        assert "".join(seg.text for seg in tokenize(code)) == code

    def test_literal_kinds(self) -> None:
        code = 'var s = "a/b"; // note\nvar r = /x\\/y/g; /* c */ var t = `tpl`;'
        kinds = {seg.text: seg.kind for seg in tokenize(code) if seg.kind != CODE}
        assert kinds == {
            '"a/b"': STRING,
            "// note": COMMENT,
            "/x\\/y/g": REGEX,
            "/* c */": COMMENT,
            "`tpl`": TEMPLATE,
        }

    def test_division_is_not_a_regex(self) -> None:
        segments = tokenize("var half = total / 2 / count;")
        assert [seg.kind for seg in segments] == [CODE]

    def test_regex_after_return(self) -> None:
        segments = tokenize("return /ab+c/i.test(s);")
        assert [seg.kind for seg in segments] == [CODE, REGEX, CODE]

    def test_escaped_quote_stays_in_string(self) -> None:
        [_, literal, _] = tokenize("x = 'it\\'s'; y();")
        assert literal.text == "'it\\'s'"


# ---------------------------------------------------------------------------
# Renaming
# ---------------------------------------------------------------------------


class TestRenaming:
    def test_reserved_identifiers_renamed(self) -> None:
        out = Obfuscator(random.Random(1)).obfuscate(
            "function setCookie(domain) { return domain; }"
        )
        assert "setCookie" not in out
        assert "domain" not in out
        assert len({m.group() for m in ALIAS.finditer(out)}) == 2

    def test_member_access_kept(self) -> None:
        out = Obfuscator(random.Random(1)).obfuscate(
            "var referrer = document.referrer; var d = document.domain;"
        )
        assert "document.referrer" in out
        assert "document.domain" in out
        assert out.count("referrer") == 1

    def test_object_keys_kept_values_renamed(self) -> None:
        out = Obfuscator(random.Random(1)).obfuscate("var o = { expiry: 1, cookieA: cookieA };")
        assert "expiry:" in out
        assert "cookieA:" in out
        assert out.count("cookieA") == 1

    def test_literals_never_rewritten(self) -> None:
        out = Obfuscator(random.Random(1)).obfuscate(
            'var cookieA = "cookieA domain"; var p = /referrer/; var t = `expiry`;'
        )
        assert '"cookieA domain"' in out
        assert "/referrer/" in out
        assert "`expiry`" in out
        assert out.startswith("var var_")

    def test_consistent_alias_within_one_script(self) -> None:
        obfuscator = Obfuscator(random.Random(7))
        out = obfuscator.obfuscate("checkCookieA(); checkCookieA();")
        alias = obfuscator.aliases["checkCookieA"]
        assert out == f"{alias}();{alias}();"

    def test_alias_format_and_uniqueness(self) -> None:
        obfuscator = Obfuscator(random.Random(3))
        fn = obfuscator.alias_for("executeScript")
        var = obfuscator.alias_for("cookieB")
        assert re.fullmatch(r"fn_[0-9a-f]{16}", fn)
        assert re.fullmatch(r"var_[0-9a-f]{16}", var)
        assert obfuscator.alias_for("executeScript") == fn
        assert fn != var

    def test_aliases_property_is_a_copy(self) -> None:
        obfuscator = Obfuscator(random.Random(3))
        obfuscator.alias_for("cookieA")
        obfuscator.aliases.clear()
        assert "cookieA" in obfuscator.aliases

    def test_fresh_obfuscators_disagree(self) -> None:
        code = "getCookie(cookieA);"
        assert Obfuscator(random.Random(1)).obfuscate(code) != Obfuscator(
            random.Random(2)
        ).obfuscate(code)

    def test_seeded_output_is_reproducible(self) -> None:
        code = "getCookie(cookieA);\nsetCookie(cookieB);\n"
        assert obfuscate(code, random.Random(5)) == obfuscate(code, random.Random(5))


# ---------------------------------------------------------------------------
# Comments and whitespace
# ---------------------------------------------------------------------------


class TestCommentsAndWhitespace:
    def test_source_comments_removed(self) -> None:
        out = Obfuscator(random.Random(1), comment_ratio=0).obfuscate(
            "var a = 1; // secret note\n/* block */ var b = 2;"
        )
        assert "secret" not in out
        assert "block" not in out
        assert out == "var a=1;var b=2;"

    def test_filler_comments_inserted(self) -> None:
        out = Obfuscator(random.Random(3), comment_ratio=1.0).obfuscate(
            "var a = 1;\nvar b = 2;\n"
        )
        assert any(comment in out for comment in FILLER_COMMENTS)

    def test_no_filler_after_blank_lines(self) -> None:
        out = Obfuscator(random.Random(3), comment_ratio=1.0).obfuscate("\n\n\n")
        assert out == ""

    def test_whitespace_collapsed(self) -> None:
        out = Obfuscator(random.Random(0), comment_ratio=0).obfuscate(
            "if (a)   {\n\n    b ( c ,  d ) ;\n}\n"
        )
        assert out == "if(a){b(c,d);}"

    def test_whitespace_inside_strings_preserved(self) -> None:
        out = obfuscate('var s = "a   b";', random.Random(0))
        assert '"a   b"' in out
