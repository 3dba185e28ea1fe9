"""
Classification rule loader.

Reads configs/classification_rules.yaml: the ordered brand tokens, traffic
source keyword lists, landing page patterns and lifecycle-stage value
estimates used by the classifiers and the record transformer.

Usage:
    from scripts.lib.rules import load_rules
    rules = load_rules()
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from scripts.lib.errors import ConfigError
from scripts.lib.logger import setup_logger

logger = setup_logger("rules")

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
RULES_PATH = PROJECT_ROOT / "configs" / "classification_rules.yaml"


class BrandRules(BaseModel):
    known_tokens: List[str]
    generic_suffixes: List[str] = Field(default_factory=list)
    ignored_first_words: List[str] = Field(default_factory=list)
    fallback_label: str = "Other"


class LabelledKeywords(BaseModel):
    label: str
    keywords: List[str]


class TrafficSourceRules(BaseModel):
    unknown_label: str = "Unknown"
    categories: List[LabelledKeywords]


class LandingPage(BaseModel):
    label: str
    patterns: List[str]


class LandingPageRules(BaseModel):
    root_label: str = "Homepage"
    max_path_length: int = 30
    max_raw_length: int = 40
    pages: List[LandingPage]


class ClassificationRules(BaseModel):
    brands: BrandRules
    traffic_sources: TrafficSourceRules
    landing_pages: LandingPageRules
    stage_value_estimates: Dict[str, float]


def read_rules(path: Path) -> ClassificationRules:
    """Parse and validate a rules file."""
    if not path.exists():
        raise ConfigError(f"Classification rules not found: {path}", config_path=str(path))

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Malformed classification rules: {e}", config_path=str(path)) from e

    try:
        rules = ClassificationRules.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid classification rules: {e}", config_path=str(path)) from e

    logger.debug(
        "Loaded %d brand tokens, %d traffic categories, %d landing pages from %s",
        len(rules.brands.known_tokens),
        len(rules.traffic_sources.categories),
        len(rules.landing_pages.pages),
        path.name,
    )
    return rules


@lru_cache(maxsize=None)
def _cached_rules(path: str) -> ClassificationRules:
    return read_rules(Path(path))


def load_rules(path: Optional[Path] = None) -> ClassificationRules:
    """Load the rules file once per path and reuse it."""
    return _cached_rules(str(path or RULES_PATH))
