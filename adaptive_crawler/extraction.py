"""
Candidate extraction from fetched HTML.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from .config import TargetConfig
from .models import DataType, ExtractionTarget

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
PHONE_RE = re.compile(r"(?:\+\d{1,3}[\s.-]?)?(?:\(\d{2,4}\)|\d{2,4})[\s.-]?\d{3,4}[\s.-]?\d{3,4}\b")

_NOISE_TAGS = ["script", "style", "nav", "footer", "header", "aside"]
_DEFAULT_SELECTORS = {
    DataType.URL: ["a[href]"],
    DataType.IMAGE_URL: ["img[src]"],
    DataType.JSON: ['script[type="application/ld+json"]'],
}


# --------------------------------------------------------------------------- #
# Named post-processors usable from YAML
def _http_only(value: Any) -> Optional[Any]:
    return value if isinstance(value, str) and value.startswith("http") else None


POST_PROCESSORS: Dict[str, Callable[[Any], Any]] = {
    "strip": lambda v: v.strip() if isinstance(v, str) else v,
    "lower": lambda v: v.lower() if isinstance(v, str) else v,
    "collapse_whitespace": lambda v: " ".join(v.split()) if isinstance(v, str) else v,
    "http_only": _http_only,
}


def build_target(cfg: TargetConfig) -> ExtractionTarget:
    """Turn a YAML target into an :class:`ExtractionTarget`; unknown processor names raise KeyError."""
    processors = []
    for name in cfg.post_processors:
        if name not in POST_PROCESSORS:
            raise KeyError(f"Unknown post-processor '{name}'. Available: {sorted(POST_PROCESSORS)}")
        processors.append(POST_PROCESSORS[name])
    return ExtractionTarget(
        data_type=cfg.data_type,
        selectors=cfg.selectors,
        patterns=cfg.patterns,
        post_processors=processors,
    )


# --------------------------------------------------------------------------- #
def _select(soup: BeautifulSoup, selector: str) -> list:
    try:
        return soup.select(selector)
    except Exception as e:
        logger.warning(f"Selector extraction failed for {selector}: {e}")
        return []


def _pattern_matches(text: str, patterns: List[str]) -> List[str]:
    found: List[str] = []
    for pattern in patterns:
        try:
            found.extend(m.group(0) for m in re.finditer(pattern, text, re.IGNORECASE))
        except re.error as e:
            logger.warning(f"Pattern extraction failed for {pattern}: {e}")
    return found


def _attribute_urls(soup: BeautifulSoup, selectors: List[str], attr: str, base: str) -> List[str]:
    urls: List[str] = []
    for selector in selectors:
        for el in _select(soup, selector):
            value = el.get(attr)
            if value:
                urls.append(urljoin(base, value.strip()))
    return urls


def _json_blocks(soup: BeautifulSoup, selectors: List[str]) -> List[Any]:
    blocks: List[Any] = []
    for selector in selectors:
        for el in _select(soup, selector):
            raw = el.string or el.get_text()
            if not raw or not raw.strip():
                continue
            try:
                blocks.append(json.loads(raw))
            except ValueError as e:
                logger.warning(f"Skipping malformed JSON block from {selector}: {e}")
    return blocks


def apply_post_processors(items: List[Any], processors: List[Callable[[Any], Any]]) -> List[Any]:
    for processor in processors:
        processed: List[Any] = []
        for item in items:
            try:
                value = processor(item)
            except Exception as e:
                logger.warning(f"Post-processor failed: {e}")
                continue
            if value is not None:
                processed.append(value)
        items = processed
    return items


def extract_candidates(content: str, target: ExtractionTarget, source_url: str) -> List[Any]:
    """Run one extraction target against a page and return its candidates."""
    soup = BeautifulSoup(content, "html.parser")
    selectors = target.selectors or _DEFAULT_SELECTORS.get(target.data_type, [])

    # Structured data lives in <script> tags, so read it before stripping them.
    if target.data_type == DataType.JSON:
        return apply_post_processors(_json_blocks(soup, selectors), target.post_processors)

    for el in soup(_NOISE_TAGS):
        el.decompose()
    text = soup.get_text(" ")

    items: List[Any] = []
    if target.data_type in (DataType.TEXT, DataType.CUSTOM):
        for selector in selectors:
            for el in _select(soup, selector):
                value = el.get_text(" ", strip=True)
                if value:
                    items.append(value)
        source = text if target.data_type == DataType.TEXT else content
        items.extend(_pattern_matches(source, target.patterns))
    elif target.data_type == DataType.URL:
        items.extend(_attribute_urls(soup, selectors, "href", source_url))
    elif target.data_type == DataType.IMAGE_URL:
        items.extend(_attribute_urls(soup, selectors, "src", source_url))
    elif target.data_type == DataType.EMAIL:
        items.extend(m.group(0) for m in EMAIL_RE.finditer(text))
        items.extend(_pattern_matches(text, target.patterns))
    elif target.data_type == DataType.PHONE:
        items.extend(m.group(0).strip() for m in PHONE_RE.finditer(text))

    return apply_post_processors(items, target.post_processors)
