"""YAML rules loader for questionnaire-driven document requirements."""
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

# Cache for loaded rules
_requirements_cache: Dict[str, Any] = {}


def get_rules_path() -> Path:
    """Get the path to the rules directory."""
    return Path(__file__).parent


def load_document_requirement_rules(
    force_reload: bool = False, path: Optional[Path] = None
) -> Dict[str, Any]:
    """
    Load document requirement rules from YAML file.

    Args:
        force_reload: Force reload from disk even if cached
        path: Alternate rules file (bypasses the cache)

    Returns:
        Dictionary with a "rules" list

    Raises:
        FileNotFoundError, yaml.YAMLError: the rule table is required configuration
    """
    global _requirements_cache

    if path is None and _requirements_cache and not force_reload:
        return _requirements_cache

    rules_path = path or get_rules_path() / "document_requirements.yaml"

    try:
        with open(rules_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.error(f"Document requirement rules not found: {rules_path}")
        raise
    except yaml.YAMLError as e:
        logger.error(f"Error parsing document requirement rules: {e}")
        raise

    logger.info(f"Loaded {len(data.get('rules', []))} document requirement rules from {rules_path}")
    if path is None:
        _requirements_cache = data
    return data
