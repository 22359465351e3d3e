"""
Bulk loader for study vignettes.

Reads a JSON file holding a list of vignettes (or {"vignettes": [...]}) with
``category``, ``patient_initials`` and ``content`` keys.
"""

import json
import logging
from pathlib import Path
from typing import List

from pydantic import ValidationError

from ddx_survey import db_queries
from ddx_survey.database import get_db
from ddx_survey.models import VignetteCreate

logger = logging.getLogger(__name__)


def read_vignettes(json_path: Path) -> List[VignetteCreate]:
    """
    Parse and validate a vignette file.

    Raises:
        ValueError: If the file is not a list of valid vignettes
    """
    with open(json_path, 'r', encoding='utf-8') as f:
        data = json.load(f)

    if isinstance(data, dict):
        data = data.get("vignettes", [])
    if not isinstance(data, list):
        raise ValueError(f"{json_path} must contain a list of vignettes")

    vignettes = []
    for i, item in enumerate(data):
        try:
            vignettes.append(VignetteCreate(**item))
        except (TypeError, ValidationError) as e:
            raise ValueError(f"Invalid vignette at position {i}: {e}") from e
    return vignettes


def load_vignettes(json_path: Path) -> List[int]:
    """
    Insert all vignettes from a file in one transaction.

    Returns:
        IDs of the created vignettes, in file order
    """
    vignettes = read_vignettes(json_path)

    with get_db() as conn:
        ids = [
            db_queries.create_vignette(conn, v.category, v.patient_initials, v.content)
            for v in vignettes
        ]

    logger.info(f"Loaded {len(ids)} vignettes from {json_path}")
    return ids
