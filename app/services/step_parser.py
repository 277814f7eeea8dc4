"""Extraction of manual test steps from the Azure DevOps step table.

This is a tolerant, regex based extractor for the single table layout Azure
DevOps emits (one row per step, action cell first, expected result second).
It is not an HTML parser and must never raise on malformed markup.
"""
import re
from typing import List, Optional

import structlog

from app.models.azure_devops import ParsedStep

logger = structlog.get_logger()

ROW_PATTERN = re.compile(r"<tr\b[^>]*>.*?</tr>", re.IGNORECASE | re.DOTALL)
CELL_PATTERN = re.compile(r"<td\b[^>]*>(.*?)</td>", re.IGNORECASE | re.DOTALL)
TAG_PATTERN = re.compile(r"<[^>]*>")

# Decoded in this order
HTML_ENTITIES = (
    ("&nbsp;", " "),
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
)


def strip_html(fragment: str) -> str:
    """Remove markup, decode the handful of entities the step table uses, trim"""
    text = TAG_PATTERN.sub("", fragment)
    for entity, replacement in HTML_ENTITIES:
        text = text.replace(entity, replacement)
    return text.strip()


def parse_steps(html: Optional[str], log=None) -> List[ParsedStep]:
    """Return the ordered (action, expected result) pairs found in `html`.

    Rows with fewer than two cells or an empty action are dropped and do not
    consume a position.
    """
    if not html:
        return []

    log = log or logger
    try:
        steps: List[ParsedStep] = []
        for row in ROW_PATTERN.findall(html):
            cells = CELL_PATTERN.findall(row)
            if len(cells) < 2:
                continue

            action = strip_html(cells[0])
            if not action:
                continue

            steps.append(
                ParsedStep(
                    position=len(steps) + 1,
                    action=action,
                    expected_result=strip_html(cells[1]),
                )
            )
        return steps
    except Exception as e:
        log.warning("Failed to parse test steps HTML", error=str(e))
        return []
