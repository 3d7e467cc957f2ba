"""PII column declarations for tabular files.

Lookup order under the project root:

1. ``.sensible.yaml`` (project-local, not committed)
2. ``.semindex/pii.yml``

Format (same for both files)::

    customers.csv:
      - email
      - phone

A declaration for a filename fully overrides heuristic column detection for
that file.
"""

import logging
from pathlib import Path

import yaml

from semindex.config import PROJECT_DIR

logger = logging.getLogger(__name__)

# filename -> set of declared sensitive column names
PiiConfig = dict[str, set[str]]

PII_CONFIG_FILES = (".sensible.yaml", f"{PROJECT_DIR}/pii.yml")


def parse_pii_config(text: str, source: str = "<string>") -> PiiConfig:
    """Parse a PII declaration document. Invalid entries are skipped."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        logger.warning("Failed to parse PII config %s: %s", source, e)
        return {}

    if not isinstance(data, dict):
        return {}

    config: PiiConfig = {}
    for filename, columns in data.items():
        if not isinstance(filename, str):
            continue
        filename = filename.strip()
        if not filename.lower().endswith((".csv", ".tsv")):
            continue
        if not isinstance(columns, list):
            columns = []
        config[filename] = {str(c).strip() for c in columns if isinstance(c, (str, int))}
    return config


def load_pii_config(root: Path) -> PiiConfig:
    """Load the first PII config found under ``root``; empty if none exists."""
    for name in PII_CONFIG_FILES:
        config_path = root / name
        if not config_path.is_file():
            continue
        try:
            text = config_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Could not read PII config %s: %s", config_path, e)
            continue
        logger.debug("Loaded PII config from %s", config_path)
        return parse_pii_config(text, str(config_path))
    return {}
