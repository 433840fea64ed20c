"""
Loading of predefined (externally configured) price levels.

The levels file is read once at startup and stays read-only for the
process lifetime. Format: ``{"levels": [60000, 65000.5, ...]}``.
"""

import json
from pathlib import Path
from typing import List, Union

from ..utils.exceptions import ConfigurationException, InvalidDataException
from ..utils.helpers import ensure_positive_prices
from ..utils.logger import get_logger

logger = get_logger(__name__)


def load_predefined_levels(path: Union[str, Path]) -> List[float]:
    """
    Read predefined levels from a JSON file

    A missing file yields an empty list. Levels are deduplicated and sorted
    ascending.

    Raises:
        ConfigurationException: Malformed file or non-positive levels
    """
    path = Path(path)
    if not path.exists():
        logger.warning("No predefined levels file, using empty list", path=str(path))
        return []

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        levels = ensure_positive_prices(data["levels"], "predefined_level")
    except (OSError, ValueError, KeyError, TypeError, InvalidDataException) as e:
        raise ConfigurationException(
            f"Invalid predefined levels file {path}: {e}",
            config_section="levels_file"
        ) from e

    levels = sorted(set(levels))
    logger.info("Loaded predefined levels", count=len(levels), path=str(path))
    return levels
