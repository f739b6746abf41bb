"""Tracking script synthesis: Jinja2 templates plus cosmetic obfuscation."""

from attribution.script.obfuscator import Obfuscator, Segment, obfuscate, tokenize
from attribution.script.synthesizer import TEMPLATES, build_context, render, track_url

__all__ = [
    "Obfuscator",
    "Segment",
    "TEMPLATES",
    "build_context",
    "obfuscate",
    "render",
    "track_url",
    "tokenize",
]
