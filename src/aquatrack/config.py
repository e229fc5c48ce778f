"""Shipped data bundle and JSON loading for ``Aquatrack``.

DO NOT EDIT the bundled JSON to change behavior for one tank; pass your own
engine package or catalog path instead. This module just enables:

    from aquatrack.config import load_engine_package, load_product_catalog
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional, Union

from aquatrack.schemas.catalog import ProductCatalog
from aquatrack.schemas.package import EnginePackage

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).parent / "data"
ENGINE_PACKAGE_PATH = DATA_DIR / "engine_package.json"
PRODUCT_CATALOG_PATH = DATA_DIR / "product_catalog.json"
PROTOCOL_RULESET_PATH = DATA_DIR / "protocol_ruleset.json"

PathLike = Union[str, Path]


def load_json(path: PathLike) -> Any:
    """Read one JSON document.

    Raises
    ------
    FileNotFoundError
        If ``path`` does not exist
    json.JSONDecodeError
        If the file is not valid JSON
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"JSON file not found: {path}")
    with path.open(encoding="utf-8") as f:
        data = json.load(f)
    logger.debug("Loaded %s", path)
    return data


def load_engine_package(path: Optional[PathLike] = None) -> EnginePackage:
    """Load and validate an engine package (the shipped one by default)."""
    return EnginePackage.model_validate(load_json(path or ENGINE_PACKAGE_PATH))


def load_product_catalog(path: Optional[PathLike] = None) -> ProductCatalog:
    """Load and validate a product catalog (the shipped one by default)."""
    return ProductCatalog.model_validate(load_json(path or PRODUCT_CATALOG_PATH))


def load_protocol_ruleset(path: Optional[PathLike] = None) -> dict:
    return load_json(path or PROTOCOL_RULESET_PATH)


__all__ = [
    'DATA_DIR',
    'load_json',
    'load_engine_package',
    'load_product_catalog',
    'load_protocol_ruleset',
]
