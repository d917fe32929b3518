"""
Keyword-spec parsing for N-of-M answer grading.

A keyword spec is a list of entries; each entry is one concept group whose
alternatives are separated by "|" (e.g. "process|프로세스"). An alternative
written as /pattern/ is a case-insensitive regular expression.
"""

import json
import logging
import math
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from mneme.application.utils.text import normalize
from mneme.domain.constants import KEYWORD_DEFAULT_RATIO

logger = logging.getLogger(__name__)

_DELIMITERS = re.compile(r"[,;\n]+")
_FRACTION = re.compile(r"^(\d+)\s*/\s*(\d+)$")


@dataclass
class KeywordGroup:
    """
    One required concept. Satisfied by any of its alternatives.

    Attributes:
        label: First alternative as written, used for feedback display.
        texts: Normalized plain-text alternatives.
        patterns: Compiled regex alternatives.
    """

    label: str
    texts: list[str] = field(default_factory=list)
    patterns: list[re.Pattern] = field(default_factory=list)


def coerce_keyword_list(raw: Any) -> list[str]:
    """
    Normalize a keyword spec into a plain ordered list of entries.

    Accepts a list/tuple, a JSON-encoded array, a delimited string
    (comma, semicolon or newline), or a mapping holding a `keywords`/`items`
    list or only string values. Anything else degrades to an empty list.
    """
    if raw is None:
        return []

    if isinstance(raw, (list, tuple)):
        entries: list[str] = []
        for item in raw:
            if item is None:
                continue
            if isinstance(item, (list, tuple)):
                # Pre-grouped alternatives
                item = "|".join(str(x) for x in item if x is not None)
            text = str(item).strip()
            if text:
                entries.append(text)
        return entries

    if isinstance(raw, str):
        s = raw.strip()
        if not s:
            return []
        if s.startswith("["):
            try:
                parsed = json.loads(s)
            except json.JSONDecodeError:
                logger.debug(f"Keyword spec looks like JSON but does not parse: {s[:50]!r}")
            else:
                if isinstance(parsed, list):
                    return coerce_keyword_list(parsed)
        return [part.strip() for part in _DELIMITERS.split(s) if part.strip()]

    if isinstance(raw, Mapping):
        for key in ("keywords", "items"):
            if isinstance(raw.get(key), (list, tuple)):
                return coerce_keyword_list(raw[key])
        values = list(raw.values())
        if values and all(isinstance(v, str) for v in values):
            return coerce_keyword_list(values)
        logger.warning("Unsupported keyword mapping; treating as empty")
        return []

    logger.warning(f"Unsupported keyword spec type {type(raw).__name__}; treating as empty")
    return []


def build_keyword_groups(raw: Any) -> list[KeywordGroup]:
    groups: list[KeywordGroup] = []

    for entry in coerce_keyword_list(raw):
        parts = [p.strip() for p in entry.split("|") if p.strip()]
        if not parts:
            continue

        group = KeywordGroup(label=parts[0])
        for part in parts:
            if len(part) > 2 and part.startswith("/") and part.endswith("/"):
                try:
                    group.patterns.append(re.compile(part[1:-1], re.IGNORECASE))
                except re.error as e:
                    logger.warning(f"Skipping invalid keyword regex {part!r}: {e}")
                continue
            text = normalize(part)
            if text:
                group.texts.append(text)

        if group.texts or group.patterns:
            groups.append(group)
        else:
            logger.debug(f"Dropping keyword entry with no usable alternative: {entry!r}")

    return groups


def parse_threshold(
    raw: Any, group_count: int, default_ratio: float = KEYWORD_DEFAULT_RATIO
) -> int:
    """
    Resolve the number of groups an answer must hit.

    - int/float: rounded, clamped to [1, group_count]
    - "n/d": ceil(n/d * group_count), clamped
    - numeric string: as int, clamped
    - anything else ("default", None, garbage): ceil(default_ratio * group_count)

    Returns 0 when there are no groups.
    """
    if group_count <= 0:
        return 0

    def clamp(v: int) -> int:
        return max(1, min(group_count, v))

    # Subtract a hair so 0.7 * 10 does not ceil to 8
    default = clamp(math.ceil(default_ratio * group_count - 1e-9))

    if isinstance(raw, bool) or raw is None:
        return default

    if isinstance(raw, (int, float)):
        if not math.isfinite(raw):
            return default
        return clamp(math.floor(raw + 0.5))

    if isinstance(raw, str):
        s = raw.strip()
        m = _FRACTION.match(s)
        if m:
            n, d = int(m.group(1)), int(m.group(2))
            if d > 0:
                return clamp(-(-n * group_count // d))
            return default
        if s.isdigit():
            return clamp(int(s))

    return default
