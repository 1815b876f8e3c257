"""
Parsers for text documents embedded in responses (workflow YAML).

Unparsable content is never an error: the raw text is kept by the caller
and the parsed sibling is null.
"""

from typing import Any, Optional
import json
import logging

import yaml

logger = logging.getLogger(__name__)


def parse_yaml(content: Optional[str]) -> Optional[Any]:
    """Parse a YAML document, None when absent or malformed"""
    if not content:
        return None
    try:
        return yaml.safe_load(content)
    except yaml.YAMLError as e:
        logger.debug(f"Unparsable YAML content: {e}")
        return None


def parsed_json(content: Optional[str]) -> Optional[str]:
    """JSON text of the parsed YAML document, for a JSON column"""
    document = parse_yaml(content)
    if document is None:
        return None
    try:
        return json.dumps(document, default=str, allow_nan=False)
    except (TypeError, ValueError) as e:
        # e.g. date-typed mapping keys, .nan or .inf scalars
        logger.debug(f"YAML document is not representable as JSON: {e}")
        return None
