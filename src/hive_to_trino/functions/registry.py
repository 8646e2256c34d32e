"""Function registry shared by every conversion in the process."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from .operators import OperatorCatalog, OperatorRef, UserDefinedOperator

logger = logging.getLogger(__name__)

_LOCK_STRIPES = 16


@dataclass(frozen=True, slots=True)
class FunctionDescriptor:
    """A source-dialect function name bound to an operator.

    Descriptors are immutable; enrichment builds a new descriptor and swaps
    it into the registry with :meth:`FunctionRegistry.replace`.
    """

    name: str
    operator: OperatorRef
    dependencies: Tuple[str, ...] = ()

    def same_implementation(self, other: "FunctionDescriptor") -> bool:
        if self == other:
            return True
        if isinstance(self.operator, UserDefinedOperator):
            return self.name == other.name and self.operator.same_implementation(other.operator)
        return False


class FunctionRegistry:
    """Multimap from function name to descriptors.

    Each key holds an immutable tuple that is swapped on write, so readers
    never lock. Writers lock one stripe per key. Keys of case-insensitive
    entries are lower-cased; case-sensitive entries (implementation class
    names) are stored verbatim.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, Tuple[FunctionDescriptor, ...]] = {}
        self._locks = [threading.Lock() for _ in range(_LOCK_STRIPES)]

    @staticmethod
    def _key(name: str, case_sensitive: bool) -> str:
        return name if case_sensitive else name.lower()

    def _lock_for(self, key: str) -> threading.Lock:
        return self._locks[hash(key) % _LOCK_STRIPES]

    def register(self, name: str, descriptor: FunctionDescriptor, case_sensitive: bool = False) -> None:
        """Add ``descriptor`` under ``name``. Re-registering an equal descriptor is a no-op."""

        key = self._key(name, case_sensitive)
        with self._lock_for(key):
            current = self._entries.get(key, ())
            if descriptor not in current:
                self._entries[key] = current + (descriptor,)

    def lookup(self, name: str, case_sensitive: bool = False) -> Tuple[FunctionDescriptor, ...]:
        """Descriptors registered under ``name``; empty when there are none."""

        return self._entries.get(self._key(name, case_sensitive), ())

    def replace(
        self,
        name: str,
        old: FunctionDescriptor,
        new: FunctionDescriptor,
        case_sensitive: bool = True,
    ) -> Optional[FunctionDescriptor]:
        """Substitute ``new`` for ``old`` under ``name`` atomically.

        When ``old`` was already substituted by a concurrent resolution, the
        entry sharing its implementation is overwritten instead (last writer
        wins). Returns the descriptor that was displaced, or ``None`` if
        nothing matched and ``new`` was appended.
        """

        key = self._key(name, case_sensitive)
        with self._lock_for(key):
            current = self._entries.get(key, ())
            index = _index_of(current, old)
            if index is None:
                index = next((i for i, entry in enumerate(current) if old.same_implementation(entry)), None)
                if index is not None:
                    logger.warning(
                        f"Registry entry {name} was enriched concurrently; overwriting {current[index].operator}"
                    )
            if index is None:
                self._entries[key] = current + (new,)
                return None
            displaced = current[index]
            self._entries[key] = current[:index] + (new,) + current[index + 1 :]
            return displaced

    def names(self) -> List[str]:
        return sorted(self._entries)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and (name in self._entries or name.lower() in self._entries)

    def __len__(self) -> int:
        return len(self._entries)


def _index_of(entries: Tuple[FunctionDescriptor, ...], target: FunctionDescriptor) -> Optional[int]:
    for index, entry in enumerate(entries):
        if entry == target:
            return index
    return None


class StaticFunctionRegistry(FunctionRegistry):
    """Registry bootstrapped from the packaged Hive function catalog."""

    def __init__(self, operators: OperatorCatalog, definitions: Iterable["FunctionDefinition"] = ()):
        super().__init__()
        self.operators = operators
        for definition in definitions:
            self.add_definition(definition)

    def add_definition(self, definition: "FunctionDefinition") -> None:
        if definition.operator_kind:
            operator: OperatorRef = self.operators.by_kind(definition.operator_kind)
        else:
            operator = UserDefinedOperator(
                name=definition.operator_name or definition.name,
                implementation_class=definition.implementation_class or definition.name,
                dependencies=tuple(definition.dependencies),
            )
        descriptor = FunctionDescriptor(definition.name, operator, tuple(definition.dependencies))
        self.register(definition.name, descriptor, case_sensitive=definition.case_sensitive)

    @classmethod
    def default(cls, extra_catalogs: Iterable[str] = ()) -> "StaticFunctionRegistry":
        """Build a fresh registry from the packaged catalogs plus ``extra_catalogs``."""

        from ..catalog import get_function_definitions, get_operator_catalog, load_function_definitions

        definitions = list(get_function_definitions())
        for path in extra_catalogs:
            definitions.extend(load_function_definitions(path))
        registry = cls(get_operator_catalog(), definitions)
        logger.info(f"Bootstrapped function registry with {len(registry)} names")
        return registry


__all__ = ["FunctionDescriptor", "FunctionRegistry", "StaticFunctionRegistry"]
