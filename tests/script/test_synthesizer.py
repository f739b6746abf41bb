"""Tests for per-campaign script rendering."""

from __future__ import annotations

import random
import re

import pytest

from attribution.domain.errors import UnsupportedTemplateError
from attribution.domain.models import Campaign, TemplateConfig
from attribution.script.obfuscator import CODE, COMMENT, RESERVED_FUNCTIONS, Obfuscator, tokenize
from attribution.script.synthesizer import build_context, render, track_url
from attribution.storage.memory import InMemoryRepository

BASE = "https://track.example.com"


@pytest.fixture
def script_campaign(memory_repo: InMemoryRepository, template_config: TemplateConfig) -> Campaign:
    return memory_repo.create_campaign("Spring Push", "Lucky Casino", template_config)


def _with_config(campaign: Campaign, **changes) -> Campaign:
    config = campaign.template_config.model_copy(update=changes)
    return campaign.model_copy(update={"template_config": config})


class TestContext:
    def test_track_url(self) -> None:
        assert track_url(BASE + "/") == f"{BASE}/api/events/track"

    def test_values_bound(self, script_campaign: Campaign) -> None:
        context = build_context(script_campaign, BASE)
        assert context["campaign_id"] == script_campaign.id
        assert context["cookie_a"]["value"] == "partner-123"
        assert context["cookie_b"]["expiry"] == "2030-01-01T00:00:00+00:00"
        assert context["referrer_regex"] == r"ref\d+"


class TestRenderPlain:
    def test_embeds_campaign_values(self, script_campaign: Campaign) -> None:
        code = render(script_campaign, api_base_url=BASE, obfuscate=False)
        assert f'"{script_campaign.id}"' in code
        assert '"partner-123"' in code
        assert '"stuffed-456"' in code
        assert '".casino.example"' in code
        assert '"ref\\\\d+"' in code
        assert f'"{BASE}/api/events/track"' in code
        assert "DOMContentLoaded" in code

    def test_values_are_escaped_as_js_strings(self, script_campaign: Campaign) -> None:
        tricky = _with_config(
            script_campaign,
            cookie_b=script_campaign.template_config.cookie_b.model_copy(
                update={"value": 'x";alert(1);"'}
            ),
        )
        code = render(tricky, api_base_url=BASE, obfuscate=False)
        assert 'x\\";alert(1);\\"' in code

    def test_template_has_no_line_comments(self, script_campaign: Campaign) -> None:
        code = render(script_campaign, api_base_url=BASE, obfuscate=False)
        assert all(seg.kind != "comment" for seg in tokenize(code))


class TestRenderObfuscated:
    def test_reserved_functions_hidden(self, script_campaign: Campaign) -> None:
        code = render(script_campaign, api_base_url=BASE, rng=random.Random(11))
        for name in RESERVED_FUNCTIONS:
            assert name not in code
        assert "fn_" in code
        assert "\n" not in code

    def test_browser_apis_survive(self, script_campaign: Campaign) -> None:
        code = render(script_campaign, api_base_url=BASE, rng=random.Random(11))
        assert "document.referrer" in code
        assert "document.cookie" in code
        assert '"DOMContentLoaded"' in code
        assert '"partner-123"' in code

    def test_reserved_words_in_values_untouched(self, script_campaign: Campaign) -> None:
        campaign = _with_config(
            script_campaign,
            cookie_b=script_campaign.template_config.cookie_b.model_copy(
                update={"value": "referrer", "domain": "domain"}
            ),
        )
        code = render(campaign, api_base_url=BASE, rng=random.Random(11))
        assert '"value": "referrer"' in code
        assert '"domain": "domain"' in code

    def test_each_render_uses_new_aliases(self, script_campaign: Campaign) -> None:
        first = render(script_campaign, api_base_url=BASE, rng=random.Random(1))
        second = render(script_campaign, api_base_url=BASE, rng=random.Random(2))
        assert first != second

    def test_unseeded_renders_differ(self, script_campaign: Campaign) -> None:
        assert render(script_campaign, api_base_url=BASE) != render(
            script_campaign, api_base_url=BASE
        )


class TestUnsupportedTemplate:
    def test_unknown_template_type(self, script_campaign: Campaign) -> None:
        campaign = _with_config(script_campaign, template_type="Income Access")
        with pytest.raises(UnsupportedTemplateError) as exc_info:
            render(campaign, api_base_url=BASE)
        assert exc_info.value.template_type == "Income Access"


# ---------------------------------------------------------------------------
# Obfuscated script keeps the plain script's behaviour
# ---------------------------------------------------------------------------

SEEDS = [0, 1, 2, 3, 7, 42, 1234, 99999]

_LEXEME = re.compile(r"[\w$]+|\S")


def _literals(code: str) -> list[str]:
    return [seg.text for seg in tokenize(code) if seg.kind not in (CODE, COMMENT)]


def _lexemes(code: str, aliases: dict[str, str] | None = None) -> list[str]:
    """Flatten *code* into identifier/punctuation tokens and whole literals.

    Comments and whitespace are dropped; *aliases* are mapped back to the
    identifiers they replaced.
    """
    originals = {alias: name for name, alias in (aliases or {}).items()}
    lexemes: list[str] = []
    for seg in tokenize(code):
        if seg.kind == COMMENT:
            continue
        if seg.kind != CODE:
            lexemes.append(seg.text)
            continue
        lexemes.extend(originals.get(tok, tok) for tok in _LEXEME.findall(seg.text))
    return lexemes


class TestObfuscationEquivalence:
    @pytest.mark.parametrize("seed", SEEDS)
    def test_literals_unchanged_and_in_order(self, script_campaign: Campaign, seed: int) -> None:
        plain = render(script_campaign, api_base_url=BASE, obfuscate=False)
        obfuscated = Obfuscator(random.Random(seed), comment_ratio=1.0).obfuscate(plain)

        assert _literals(obfuscated) == _literals(plain)

    @pytest.mark.parametrize("seed", SEEDS)
    def test_code_tokens_match_after_unaliasing(
        self, script_campaign: Campaign, seed: int
    ) -> None:
        plain = render(script_campaign, api_base_url=BASE, obfuscate=False)
        obfuscator = Obfuscator(random.Random(seed), comment_ratio=1.0)
        obfuscated = obfuscator.obfuscate(plain)

        assert obfuscator.aliases
        assert _lexemes(obfuscated, obfuscator.aliases) == _lexemes(plain)

    @pytest.mark.parametrize("seed", SEEDS)
    def test_no_reserved_function_survives_as_code(
        self, script_campaign: Campaign, seed: int
    ) -> None:
        plain = render(script_campaign, api_base_url=BASE, obfuscate=False)
        obfuscator = Obfuscator(random.Random(seed), comment_ratio=1.0)
        obfuscated = obfuscator.obfuscate(plain)

        code_tokens = _lexemes(obfuscated)
        for name in RESERVED_FUNCTIONS:
            if name in obfuscator.aliases:
                assert name not in code_tokens

    @pytest.mark.parametrize("seed", SEEDS[:3])
    def test_render_uses_the_same_obfuscation(
        self, script_campaign: Campaign, seed: int
    ) -> None:
        plain = render(script_campaign, api_base_url=BASE, obfuscate=False)
        served = render(script_campaign, api_base_url=BASE, rng=random.Random(seed))

        assert served == Obfuscator(random.Random(seed)).obfuscate(plain)

    def test_literal_heavy_config_survives(self, script_campaign: Campaign) -> None:
        campaign = _with_config(script_campaign, referrer_regex=r"^https?://(www\.)?ref/\d+")
        plain = render(campaign, api_base_url=BASE, obfuscate=False)
        obfuscator = Obfuscator(random.Random(5), comment_ratio=1.0)
        obfuscated = obfuscator.obfuscate(plain)

        assert _literals(obfuscated) == _literals(plain)
        assert _lexemes(obfuscated, obfuscator.aliases) == _lexemes(plain)
