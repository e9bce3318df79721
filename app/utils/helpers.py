"""Shared utility functions for blueprints and services.

clean_text:      strip + tag removal for free-text input
parse_int_arg:   tolerant query-string integer parsing
"""
import re

from flask import request

_TAG_RE = re.compile(r"<[^>]*>")


def clean_text(value):
    """Strip surrounding whitespace and HTML tags from user-supplied text.

    Returns "" for None so callers can test emptiness directly.
    """
    if value is None:
        return ""
    return _TAG_RE.sub("", str(value)).strip()


def parse_int_arg(name, default=None, minimum=None):
    """Read an integer query-string argument, falling back to ``default``.

    Bad input is ignored rather than rejected; values below ``minimum`` are clamped.
    """
    try:
        value = int(request.args.get(name, default))
    except (ValueError, TypeError):
        return default
    if minimum is not None and value < minimum:
        value = minimum
    return value
