"""
Native function registry for the treelox interpreter.

Every registered native is defined in the global environment of each new
interpreter.
"""

import math
import time
from typing import Any, Dict, Iterator, Optional

from .values import NativeFunction, NativeFunctionError, LoxArray, is_number

# Largest size Array(size) accepts
MAX_ARRAY_SIZE = 1 << 24


class BuiltinRegistry:
    """
    Registry of all native functions.

    Functions are registered by name and looked up when an interpreter
    builds its global environment.
    """

    def __init__(self):
        self._functions: Dict[str, NativeFunction] = {}
        self._register_all()

    def get_function(self, name: str) -> Optional[NativeFunction]:
        """Look up a function by name."""
        return self._functions.get(name)

    def register(self, func: NativeFunction) -> None:
        """Register a function."""
        self._functions[func.name] = func

    def __iter__(self) -> Iterator[NativeFunction]:
        return iter(self._functions.values())

    def __len__(self) -> int:
        return len(self._functions)

    def _register_all(self) -> None:
        """Register all built-in functions."""

        def _clock() -> float:
            return time.time()

        def _array(size: Any) -> LoxArray:
            if not is_number(size) or not math.isfinite(size):
                raise NativeFunctionError("Array size must be a finite number.")
            if size < 0:
                raise NativeFunctionError("Array size must not be negative.")
            if size > MAX_ARRAY_SIZE:
                raise NativeFunctionError(f"Array size must be at most {MAX_ARRAY_SIZE}.")
            return LoxArray(int(size))

        self.register(NativeFunction(
            "clock", 0, _clock,
            "Seconds since the Unix epoch.",
        ))
        self.register(NativeFunction(
            "Array", 1, _array,
            "Array(size) -> array of size nils, with get(i), set(i, v) and length.",
        ))


# Global registry instance
_registry: Optional[BuiltinRegistry] = None


def get_builtin_registry() -> BuiltinRegistry:
    """Get the global builtin registry (lazily initialized)."""
    global _registry
    if _registry is None:
        _registry = BuiltinRegistry()
    return _registry
