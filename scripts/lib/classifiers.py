"""
Heuristic classifiers for account attributes.

Functions:
  extract_brand()            - Brand label from an account name
  normalize_traffic_source() - Canonical traffic source category
  classify_landing_page()    - Named landing page bucket for a first-visit URL
  extract_state()            - Two-letter US state from a free-text address

Every rule list is evaluated in order, first match wins. The lists
themselves come from configs/classification_rules.yaml.
"""
from __future__ import annotations

import re
from typing import Optional
from urllib.parse import urlsplit

from scripts.lib.rules import ClassificationRules, load_rules

# State code directly followed by an optional comma and a trailing ZIP / ZIP+4.
STATE_PATTERN = re.compile(r"\b([A-Z]{2})\b(?=,?\s*\d{5}(-\d{4})?$)")
_WORD_SPLIT = re.compile(r"[\s,]+")


def extract_brand(account_name: str, rules: ClassificationRules = None) -> str:
    """
    Map an account name to a brand label.

    Known tokens are matched case-insensitively. A generic corporate suffix
    ("LLC", "Corp", ...) with text in front of it yields that text instead,
    so "Bright Cleaning, LLC" becomes "Bright Cleaning". Without a known
    token the first word is used, unless it is short or an article.
    """
    brand_rules = (rules or load_rules()).brands
    name = account_name or ""
    lowered = name.lower()

    for token in brand_rules.known_tokens:
        idx = lowered.find(token.lower())
        if idx == -1:
            continue
        if token in brand_rules.generic_suffixes:
            prefix = name[:idx].strip()
            if prefix.endswith(","):
                prefix = prefix[:-1].strip()
            if prefix:
                return prefix
        return token

    first_word = _WORD_SPLIT.split(name)[0]
    if len(first_word) > 2 and first_word not in brand_rules.ignored_first_words:
        return first_word
    return brand_rules.fallback_label


def normalize_traffic_source(source: Optional[str], rules: ClassificationRules = None) -> str:
    """Collapse a free-text analytics source into a canonical category."""
    source_rules = (rules or load_rules()).traffic_sources
    if not source or source == source_rules.unknown_label:
        return source_rules.unknown_label

    lowered = source.lower()
    for category in source_rules.categories:
        if any(keyword in lowered for keyword in category.keywords):
            return category.label
    return source


def _truncate(text: str, limit: int) -> str:
    return text[:limit] + "..." if len(text) > limit else text


def classify_landing_page(url: Optional[str], rules: ClassificationRules = None) -> Optional[str]:
    """
    Bucket a first-visit URL by its path.

    Returns None for blank input. URLs without a scheme and host are not
    parseable and are keyed by the (truncated) raw string instead.
    """
    if not url or not url.strip():
        return None
    page_rules = (rules or load_rules()).landing_pages

    try:
        parts = urlsplit(url)
        if not parts.scheme or not parts.netloc:
            raise ValueError(f"not an absolute URL: {url!r}")
    except ValueError:
        return _truncate(url, page_rules.max_raw_length)

    path = parts.path
    if path in ("", "/"):
        return page_rules.root_label
    for page in page_rules.pages:
        if any(pattern in path for pattern in page.patterns):
            return page.label
    return _truncate(path, page_rules.max_path_length)


def extract_state(address: Optional[str]) -> Optional[str]:
    """Two-letter state code preceding a trailing ZIP, or None."""
    if not address:
        return None
    match = STATE_PATTERN.search(address)
    return match.group(1) if match else None
