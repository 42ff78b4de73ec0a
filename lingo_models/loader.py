from __future__ import annotations

import time
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml


CATALOG_PATH = Path(__file__).resolve().parent / "models.yaml"

# TTL-based cache so edits to models.yaml are picked up without a restart
_CACHE_TTL_SECONDS = 300  # 5 minutes
_cache: Dict[str, Any] = {}
_cache_timestamp: float = 0.0


def _load_yaml(path: Path) -> Dict[str, Any]:
    content = path.read_text(encoding="utf-8")
    return yaml.safe_load(content) or {}


def load_catalog(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load the model catalog with 5-minute TTL cache.

    The cache is invalidated after ``_CACHE_TTL_SECONDS`` or when
    ``reload_catalog()`` is called.
    """
    global _cache, _cache_timestamp

    now = time.monotonic()
    cache_key = str(path or CATALOG_PATH)

    if _cache and (now - _cache_timestamp) < _CACHE_TTL_SECONDS:
        if cache_key in _cache:
            return _cache[cache_key]

    catalog_path = path or CATALOG_PATH
    if not catalog_path.exists():
        return {}
    result = _load_yaml(catalog_path)
    _cache[cache_key] = result
    _cache_timestamp = now
    return result


def reload_catalog() -> Dict[str, Any]:
    """Clear the TTL cache and reload models.yaml from disk."""
    global _cache, _cache_timestamp
    _cache = {}
    _cache_timestamp = 0.0
    return load_catalog()


def validate_catalog(path: Optional[Path] = None) -> List[str]:
    """Validate models.yaml structure. Returns list of error strings (empty = valid).

    Checks:
    - File exists and parses
    - Has ``schema_version`` and ``local_models`` keys
    - Each local model has ``size_class`` in small/medium/large and a ``keep_alive``
    - Each recommendation has ``model``, ``size`` and a ``languages`` mapping
    """
    errors: List[str] = []
    catalog_path = path or CATALOG_PATH

    if not catalog_path.exists():
        errors.append(f"models.yaml not found at {catalog_path}")
        return errors

    try:
        catalog = _load_yaml(catalog_path)
    except yaml.YAMLError as exc:
        errors.append(f"Failed to parse models.yaml: {exc}")
        return errors

    if "schema_version" not in catalog:
        errors.append("Missing 'schema_version' key")
    if "local_models" not in catalog:
        errors.append("Missing 'local_models' key")
        return errors

    local_models = catalog["local_models"]
    if not isinstance(local_models, dict):
        errors.append("'local_models' must be a dict")
        return errors

    for model_id, entry in local_models.items():
        if not isinstance(entry, dict):
            errors.append(f"Model '{model_id}': entry must be a dict")
            continue
        if entry.get("size_class") not in ("small", "medium", "large"):
            errors.append(f"Model '{model_id}': invalid size_class {entry.get('size_class')!r}")
        if "keep_alive" not in entry:
            errors.append(f"Model '{model_id}': missing required field 'keep_alive'")

    for idx, rec in enumerate(catalog.get("recommendations", []) or []):
        for field in ("model", "size", "languages"):
            if field not in rec:
                errors.append(f"Recommendation #{idx}: missing required field '{field}'")
        if not isinstance(rec.get("languages", {}), dict):
            errors.append(f"Recommendation #{idx}: 'languages' must be a dict")

    return errors


def get_local_models(catalog: Optional[Dict[str, Any]] = None) -> Dict[str, Dict[str, Any]]:
    catalog = load_catalog() if catalog is None else catalog
    return dict(catalog.get("local_models", {}) or {})


def get_derived_keep_alive(catalog: Optional[Dict[str, Any]] = None) -> Dict[str, str]:
    catalog = load_catalog() if catalog is None else catalog
    defaults = {"small": "30m", "medium": "15m", "large": "10m"}
    defaults.update(catalog.get("derived_keep_alive", {}) or {})
    return defaults


def get_languages(catalog: Optional[Dict[str, Any]] = None) -> Dict[str, str]:
    catalog = load_catalog() if catalog is None else catalog
    return dict(catalog.get("languages", {}) or {})


def get_recommendations(catalog: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
    catalog = load_catalog() if catalog is None else catalog
    return list(catalog.get("recommendations", []) or [])
