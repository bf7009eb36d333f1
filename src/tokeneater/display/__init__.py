"""Display utilities for tokeneater.

This module provides rendering and output utilities for both terminal
(Rich-based) and JSON output modes.
"""
from __future__ import annotations

from tokeneater.display.json import error_payload
from tokeneater.display.json import output_json
from tokeneater.display.json import output_json_error
from tokeneater.display.json import output_json_pretty
from tokeneater.display.rich import UsageDisplay
from tokeneater.display.rich import format_bucket
from tokeneater.display.rich import format_error
from tokeneater.display.rich import format_pacing
from tokeneater.display.rich import render_usage_bar

__all__ = [
    # Rich rendering
    "render_usage_bar",
    "format_bucket",
    "format_pacing",
    "format_error",
    "UsageDisplay",
    # JSON output
    "output_json",
    "output_json_pretty",
    "output_json_error",
    "error_payload",
]
