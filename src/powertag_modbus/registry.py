"""ModelRegistry: load the embedded model table via importlib.resources; lookup by type id or commercial reference."""

import json
import logging
from functools import lru_cache
from importlib import resources
from types import MappingProxyType
from typing import Any, Iterator

from .errors import UnknownModelError
from .registers import FAMILY_BLOCKS
from .types import ModelDescriptor, ModelFamily, VoltageMode

logger = logging.getLogger(__name__)

_MODELS_PACKAGE = "powertag_modbus"
_MODELS_RESOURCE = "models.json"


def _normalize_reference(reference: str) -> str:
    return reference.strip().upper()


def _parse_entry(raw: dict[str, Any]) -> ModelDescriptor:
    """Build ModelDescriptor from a JSON entry (type_id, reference, model, name, family, phases, voltage_modes)."""
    try:
        reference = _normalize_reference(str(raw["reference"]))
        family = ModelFamily(raw["family"])
        modes = frozenset(VoltageMode(m) for m in raw.get("voltage_modes", []))
        return ModelDescriptor(
            type_id=int(raw["type_id"]),
            commercial_reference=reference,
            model=str(raw["model"]),
            name=str(raw.get("name") or raw["model"]),
            family=family,
            phase_count=int(raw.get("phases", 1)),
            voltage_modes=modes,
            register_blocks=FAMILY_BLOCKS[family],
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ValueError(f"Malformed model entry {raw!r}: {e}") from e


def _load_packaged_entries() -> list[dict[str, Any]]:
    path = resources.files(_MODELS_PACKAGE).joinpath("data").joinpath(_MODELS_RESOURCE)
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise FileNotFoundError(f"Model table resource not found: {_MODELS_PACKAGE}/data/{_MODELS_RESOURCE}") from None
    if isinstance(data, dict) and "entries" in data:
        return list(data["entries"])
    if isinstance(data, list):
        return data
    return []


class ModelRegistry:
    """
    Read-only table of known PowerTag models, indexed by device type id and by
    commercial reference. Built once and handed to every component that needs
    lookups; safe to share between sessions and threads.
    """

    def __init__(self, map_override: list[dict[str, Any]] | None = None) -> None:
        """Load the packaged model table, or use map_override (list of entry dicts)."""
        entries = map_override if map_override is not None else _load_packaged_entries()
        by_type: dict[int, ModelDescriptor] = {}
        by_reference: dict[str, ModelDescriptor] = {}
        for entry in entries:
            descriptor = _parse_entry(entry)
            if descriptor.type_id in by_type:
                raise ValueError(f"Duplicate type id in model table: {descriptor.type_id}")
            if descriptor.commercial_reference in by_reference:
                raise ValueError(f"Duplicate reference in model table: {descriptor.commercial_reference}")
            by_type[descriptor.type_id] = descriptor
            by_reference[descriptor.commercial_reference] = descriptor
        self._by_type = MappingProxyType(by_type)
        self._by_reference = MappingProxyType(by_reference)
        # Longest first so prefix matching prefers the most specific reference
        self._references = tuple(sorted(by_reference, key=len, reverse=True))
        logger.debug("ModelRegistry loaded: %d models", len(by_type))

    def lookup_by_type_id(self, type_id: int) -> ModelDescriptor | None:
        return self._by_type.get(type_id)

    def lookup_by_commercial_reference(self, reference: str) -> ModelDescriptor | None:
        """
        Exact match first, else the longest known reference the given string
        starts with (gateways may append packaging/revision suffixes).
        """
        ref = _normalize_reference(reference)
        if not ref:
            return None
        exact = self._by_reference.get(ref)
        if exact is not None:
            return exact
        for known in self._references:
            if ref.startswith(known):
                return self._by_reference[known]
        return None

    def get(self, key: int | str) -> ModelDescriptor:
        """Resolve a type id (int or digit string) or a commercial reference; raise UnknownModelError."""
        descriptor: ModelDescriptor | None
        if isinstance(key, int):
            descriptor = self.lookup_by_type_id(key)
        elif key.strip().isdigit():
            descriptor = self.lookup_by_type_id(int(key))
        else:
            descriptor = self.lookup_by_commercial_reference(key)
        if descriptor is None:
            raise UnknownModelError(key)
        return descriptor

    def __len__(self) -> int:
        return len(self._by_type)

    def __iter__(self) -> Iterator[ModelDescriptor]:
        return iter(sorted(self._by_type.values(), key=lambda d: d.type_id))


@lru_cache(maxsize=None)
def get_default_registry() -> ModelRegistry:
    """Return the packaged model registry (loaded once per process)."""
    return ModelRegistry()
