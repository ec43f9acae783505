"""
treelox runtime - Tree-walking interpreter and value model.

This module provides:
- Interpreter: Executes resolved statements
- Environment / ExecutionContext: Variable scopes and execution state
- LoxFunction, LoxClass, LoxInstance, LoxArray: Runtime objects
- BuiltinRegistry: Native functions (clock, Array)
"""

from .context import (
    Environment,
    ExecutionContext,
    Completion,
    CompletionKind,
)

from .values import (
    LoxCallable,
    NativeFunction,
    NativeFunctionError,
    LoxFunction,
    LoxClass,
    LoxInstance,
    LoxArray,
    is_truthy,
    is_equal,
    stringify,
)

from .builtins import (
    BuiltinRegistry,
    get_builtin_registry,
)

from .interpreter import (
    Interpreter,
    CheckResult,
    RunResult,
    check,
    run,
)

__all__ = [
    # Context
    "Environment",
    "ExecutionContext",
    "Completion",
    "CompletionKind",
    # Values
    "LoxCallable",
    "NativeFunction",
    "NativeFunctionError",
    "LoxFunction",
    "LoxClass",
    "LoxInstance",
    "LoxArray",
    "is_truthy",
    "is_equal",
    "stringify",
    # Builtins
    "BuiltinRegistry",
    "get_builtin_registry",
    # Interpreter
    "Interpreter",
    "CheckResult",
    "RunResult",
    "check",
    "run",
]
