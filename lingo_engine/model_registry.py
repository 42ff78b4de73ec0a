"""
Local model registry — size class and keep-alive policy per model.

Static entries come from ``lingo_models/models.yaml`` (``local_models``).
Models discovered at the inference server that the catalog does not list
get a heuristic descriptor, cached for the lifetime of the process:

  1. parameter count parsed from the name ("qwen2.5:14b", "mixtral:8x7b")
  2. byte size reported by ``/api/tags``
  3. otherwise medium
"""
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

from lingo_models.loader import get_derived_keep_alive, get_local_models, load_catalog

logger = logging.getLogger("lingo.engine.registry")

_PARAMS_RE = re.compile(r"(?:(\d+)x)?(\d+(?:\.\d+)?)b(?![a-z])", re.IGNORECASE)

_GB = 1024 ** 3


class SizeClass(str, Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


@dataclass(frozen=True)
class ModelDescriptor:
    """Immutable sizing/keep-alive policy for one model."""
    id: str
    size_class: SizeClass
    keep_alive: str
    size_label: str | None = None
    source: str = "catalog"

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.id,
            "size": self.size_label,
            "keepAliveTime": self.keep_alive,
            "priority": self.size_class.value,
            "source": self.source,
        }


def parse_parameter_count(model_id: str) -> float | None:
    """Billions of parameters encoded in a model tag, if any."""
    tag = model_id.split(":", 1)[1] if ":" in model_id else model_id
    match = _PARAMS_RE.search(tag) or _PARAMS_RE.search(model_id)
    if not match:
        return None
    experts, params = match.groups()
    count = float(params)
    if experts:
        count *= int(experts)
    return count


def classify_size(model_id: str, size_bytes: int | None = None) -> SizeClass:
    """Heuristic size class from name substring, then byte size."""
    params = parse_parameter_count(model_id)
    if params is not None:
        if params < 2:
            return SizeClass.SMALL
        if params < 7:
            return SizeClass.MEDIUM
        return SizeClass.LARGE
    if size_bytes:
        if size_bytes < 1.5 * _GB:
            return SizeClass.SMALL
        if size_bytes < 4 * _GB:
            return SizeClass.MEDIUM
        return SizeClass.LARGE
    return SizeClass.MEDIUM


def format_size(size_bytes: int | None) -> str | None:
    if not size_bytes:
        return None
    if size_bytes >= _GB:
        return f"{size_bytes / _GB:.1f}GB"
    return f"{size_bytes / 1024 ** 2:.0f}MB"


class ModelRegistry:
    """
    Catalog entries plus a derived-descriptor cache.

    The catalog is immutable at runtime; discovered models only ever go to
    ``_derived`` and are never evicted.
    """

    def __init__(self, catalog: dict[str, Any] | None = None):
        catalog = catalog if catalog is not None else load_catalog()
        self._keep_alive_by_class = get_derived_keep_alive(catalog)
        self._static: dict[str, ModelDescriptor] = {}
        for model_id, entry in get_local_models(catalog).items():
            self._static[model_id] = ModelDescriptor(
                id=model_id,
                size_class=SizeClass(entry.get("size_class", "medium")),
                keep_alive=str(entry.get("keep_alive", "15m")),
                size_label=entry.get("size"),
                source="catalog",
            )
        self._derived: dict[str, ModelDescriptor] = {}

    def get(self, model_id: str) -> ModelDescriptor | None:
        """Catalog or previously derived descriptor; never guesses."""
        return self._static.get(model_id) or self._derived.get(model_id)

    def is_known(self, model_id: str) -> bool:
        return self.get(model_id) is not None

    def register_discovered(self, model_id: str, size_bytes: int | None = None) -> ModelDescriptor:
        """Return the descriptor for a server-reported model, deriving one if needed."""
        existing = self.get(model_id)
        if existing is not None:
            return existing
        size_class = classify_size(model_id, size_bytes)
        descriptor = ModelDescriptor(
            id=model_id,
            size_class=size_class,
            keep_alive=self._keep_alive_by_class.get(size_class.value, "15m"),
            size_label=format_size(size_bytes),
            source="derived",
        )
        self._derived[model_id] = descriptor
        logger.info(
            "Registered discovered model %s as %s (keep_alive=%s)",
            model_id, size_class.value, descriptor.keep_alive,
        )
        return descriptor

    def static_ids(self) -> list[str]:
        return list(self._static)

    def categories(self) -> dict[str, dict[str, Any]]:
        """All known descriptors (catalog first), keyed by model id."""
        merged = {mid: d.to_dict() for mid, d in self._static.items()}
        for mid, d in self._derived.items():
            merged.setdefault(mid, d.to_dict())
        return merged
