"""Local per-model token totals from the Claude CLI state file."""

from __future__ import annotations

import logging
from collections import defaultdict
from pathlib import Path

import msgspec

from tokeneater.config.paths import claude_json_file
from tokeneater.models import ModelTokenStats

logger = logging.getLogger(__name__)

TOKEN_FIELDS = (
    "inputTokens",
    "outputTokens",
    "cacheReadInputTokens",
    "cacheCreationInputTokens",
)

MODEL_FAMILIES = ("opus", "sonnet", "haiku")


def short_model_name(model_id: str) -> str:
    """Shorten a model id for display.

    "claude-sonnet-4-6-20251101" -> "Sonnet 4.6". Ids outside the known
    families are returned unchanged.
    """
    lower = model_id.lower()
    family = next((f for f in MODEL_FAMILIES if f in lower), None)
    if family is None:
        return model_id

    parts = lower.split("-")[2:]
    version = ".".join(p for p in parts if not (len(p) == 8 and p.isdigit()))
    display = family.capitalize()
    return f"{display} {version}" if version else display


def _tokens(usage: dict) -> int:
    total = 0
    for field in TOKEN_FIELDS:
        value = usage.get(field, 0)
        if isinstance(value, int) and not isinstance(value, bool):
            total += value
    return total


def read_model_stats(path: Path | None = None) -> list[ModelTokenStats]:
    """Sum `projects.*.lastModelUsage` tokens per shortened model name.

    Best effort: a missing or unreadable file yields an empty list.
    """
    path = path or claude_json_file()
    try:
        data = msgspec.json.decode(path.read_bytes())
    except FileNotFoundError:
        return []
    except (OSError, msgspec.DecodeError) as e:
        logger.debug("Cannot read model stats from %s: %s", path, e)
        return []

    projects = data.get("projects") if isinstance(data, dict) else None
    if not isinstance(projects, dict):
        return []

    totals: dict[str, int] = defaultdict(int)
    for project in projects.values():
        if not isinstance(project, dict):
            continue
        model_usage = project.get("lastModelUsage")
        if not isinstance(model_usage, dict):
            continue
        for model_id, usage in model_usage.items():
            if isinstance(usage, dict):
                totals[short_model_name(model_id)] += _tokens(usage)

    stats = [
        ModelTokenStats(model_name=name, total_tokens=tokens)
        for name, tokens in totals.items()
        if tokens > 0
    ]
    stats.sort(key=lambda s: s.total_tokens, reverse=True)
    return stats
