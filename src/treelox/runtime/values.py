"""
Runtime values for the treelox interpreter.

Language values map onto Python objects directly:

    nil       -> None
    boolean   -> bool
    number    -> float
    string    -> str
    callable  -> LoxCallable subclasses (natives, functions, classes)
    instance  -> LoxInstance (LoxArray is a built-in kind of instance)

Numbers are always ``float``; since ``bool`` is not a ``float`` subclass,
``isinstance(value, float)`` is the number test.
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, TYPE_CHECKING

from ..ast import FunctionDef
from ..errors import LoxRuntimeError
from ..tokens import Token
from .context import Environment, CompletionKind

if TYPE_CHECKING:
    from .interpreter import Interpreter


class NativeFunctionError(Exception):
    """
    Raised by native function bodies for invalid arguments.

    Natives have no token of their own; the interpreter converts this into a
    ``LoxRuntimeError`` located at the call site.
    """


def is_number(value: Any) -> bool:
    return isinstance(value, float)


def is_truthy(value: Any) -> bool:
    """nil and false are falsey; every other value (including 0 and "") is truthy."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    return True


def is_equal(a: Any, b: Any) -> bool:
    """Language equality: never faults, and values of different kinds are never equal."""
    if a is None and b is None:
        return True
    if a is None or b is None:
        return False
    if type(a) is not type(b):
        return False
    if isinstance(a, float):
        # Numbers compare by value and sign: NaN equals NaN, 0 differs from -0
        if math.isnan(a) or math.isnan(b):
            return math.isnan(a) and math.isnan(b)
        return a == b and math.copysign(1.0, a) == math.copysign(1.0, b)
    return a == b


def format_number(value: float) -> str:
    """Shortest decimal form, with a trailing '.0' stripped for whole numbers."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    text = repr(value)
    if text.endswith(".0"):
        text = text[:-2]
    return text


def stringify(value: Any) -> str:
    """Canonical display form, used by print and string concatenation."""
    if value is None:
        return "nil"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return format_number(value)
    return str(value)


# =============================================================================
# Callables
# =============================================================================

class LoxCallable(ABC):
    """Anything that can appear before '(' in a call expression."""

    @abstractmethod
    def arity(self) -> int:
        """Exact number of arguments the callable accepts."""

    @abstractmethod
    def call(self, interpreter: "Interpreter", arguments: List[Any]) -> Any:
        """Invoke with already-evaluated, arity-checked arguments."""


@dataclass(eq=False)
class NativeFunction(LoxCallable):
    """A function implemented in Python."""
    name: str
    param_count: int
    implementation: Callable[..., Any]
    doc: str = ""

    def arity(self) -> int:
        return self.param_count

    def call(self, interpreter: "Interpreter", arguments: List[Any]) -> Any:
        return self.implementation(*arguments)

    def __str__(self) -> str:
        return "<native fn>"


class LoxFunction(LoxCallable):
    """
    A user-defined function or method: its declaration plus the environment
    that was active where it was declared.
    """

    def __init__(self, declaration: FunctionDef, closure: Environment,
                 is_initializer: bool = False):
        self.declaration = declaration
        self.closure = closure
        self.is_initializer = is_initializer

    @property
    def name(self) -> str:
        return self.declaration.name.lexeme

    def bind(self, instance: "LoxInstance") -> "LoxFunction":
        """Return a copy of this method with ``this`` bound to ``instance``."""
        environment = Environment(enclosing=self.closure)
        environment.define("this", instance)
        return LoxFunction(self.declaration, environment, self.is_initializer)

    def arity(self) -> int:
        return len(self.declaration.params)

    def call(self, interpreter: "Interpreter", arguments: List[Any]) -> Any:
        environment = Environment(enclosing=self.closure)
        for param, argument in zip(self.declaration.params, arguments):
            environment.define(param.lexeme, argument)

        completion = interpreter.execute_block(self.declaration.body, environment)

        # Initializers always produce the instance, whatever the body returned
        if self.is_initializer:
            return self.closure.get_at(0, "this")
        if completion.kind == CompletionKind.RETURN:
            return completion.value
        return None

    def __str__(self) -> str:
        return f"<fn {self.name}>"

    def __repr__(self) -> str:
        return f"LoxFunction({self.name!r})"


class LoxClass(LoxCallable):
    """A class: calling it constructs an instance."""

    def __init__(self, name: str, superclass: Optional["LoxClass"],
                 methods: Dict[str, LoxFunction]):
        self.name = name
        self.superclass = superclass
        self.methods = methods

    def find_method(self, name: str) -> Optional[LoxFunction]:
        """Look a method up on this class, then along the superclass chain."""
        klass: Optional[LoxClass] = self
        while klass is not None:
            if name in klass.methods:
                return klass.methods[name]
            klass = klass.superclass
        return None

    def arity(self) -> int:
        initializer = self.find_method("init")
        if initializer is None:
            return 0
        return initializer.arity()

    def call(self, interpreter: "Interpreter", arguments: List[Any]) -> Any:
        instance = LoxInstance(self)
        initializer = self.find_method("init")
        if initializer is not None:
            initializer.bind(instance).call(interpreter, arguments)
        return instance

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"LoxClass({self.name!r})"


# =============================================================================
# Instances
# =============================================================================

class LoxInstance:
    """An object with a lazily populated field table."""

    def __init__(self, klass: Optional[LoxClass]):
        self.klass = klass
        self.fields: Dict[str, Any] = {}

    def get(self, name: Token) -> Any:
        """Fields shadow methods; methods come back bound to this instance."""
        if name.lexeme in self.fields:
            return self.fields[name.lexeme]

        method = self.klass.find_method(name.lexeme) if self.klass else None
        if method is not None:
            return method.bind(self)

        raise LoxRuntimeError(name, f"Undefined property '{name.lexeme}'.", code="E406")

    def set(self, name: Token, value: Any) -> None:
        self.fields[name.lexeme] = value

    def __str__(self) -> str:
        return f"{self.klass.name} instance"


class LoxArray(LoxInstance):
    """
    Fixed-size array created by the ``Array(size)`` native.

    Exposes ``get(index)``, ``set(index, value)`` and a ``length`` property.
    Arrays have no user fields.
    """

    def __init__(self, size: int):
        super().__init__(None)
        self.elements: List[Any] = [None] * size
        self._methods = {
            "get": NativeFunction("get", 1, self._get_element),
            "set": NativeFunction("set", 2, self._set_element),
        }

    def _index(self, index: Any) -> int:
        if not is_number(index) or not index.is_integer():
            raise NativeFunctionError("Array index must be an integer.")
        position = int(index)
        if not 0 <= position < len(self.elements):
            raise NativeFunctionError(
                f"Array index {position} out of range for length {len(self.elements)}."
            )
        return position

    def _get_element(self, index: Any) -> Any:
        return self.elements[self._index(index)]

    def _set_element(self, index: Any, value: Any) -> Any:
        self.elements[self._index(index)] = value
        return value

    def get(self, name: Token) -> Any:
        if name.lexeme == "length":
            return float(len(self.elements))
        if name.lexeme in self._methods:
            return self._methods[name.lexeme]
        raise LoxRuntimeError(name, f"Undefined property '{name.lexeme}'.", code="E406")

    def set(self, name: Token, value: Any) -> None:
        raise LoxRuntimeError(name, "Can't add properties to arrays.", code="E405")

    def __str__(self) -> str:
        return "[" + ", ".join(stringify(element) for element in self.elements) + "]"
