"""Method identity and the proxy calling convention."""

import inspect
import threading
import typing
import weakref
from collections.abc import Callable
from dataclasses import dataclass
from dataclasses import field
from typing import Any
from typing import Literal
from typing import TypeVar

Visibility = Literal["public", "protected", "private"]
RAISES_ATTR: str = "__raises__"
PRIMITIVE_TYPES: tuple[type, ...] = (bool, int, float, complex, str, bytes)
_NONE_TYPE: type = type(None)
_WIDENING_SOURCES: dict[type, tuple[type, ...]] = {
    float: (int,),
    complex: (int, float),
}
_DESCRIPTOR_LOCK: threading.Lock = threading.Lock()
_DESCRIPTORS_BY_CLASS: "weakref.WeakKeyDictionary[type, dict[str, MethodDescriptor]]" = (
    weakref.WeakKeyDictionary()
)
_F = TypeVar("_F", bound=Callable[..., Any])


def raises(*exception_types: type[BaseException]) -> Callable[[_F], _F]:
    """Declare the exception types a contract method may raise.

    Declared exceptions raised during dispatch reach the proxy caller unchanged;
    undeclared ones are wrapped in ``UndeclaredDispatchFailure``.

    :param exception_types: Declared exception classes, in declaration order.
    :returns: Decorator recording the declaration on the function.
    :raises TypeError: If an entry is not an exception class.
    """
    for exception_type in exception_types:
        is_exception_class: bool = isinstance(exception_type, type) and issubclass(exception_type, BaseException)
        if is_exception_class is False:
            raise TypeError(f"raises() expects exception classes, got {exception_type!r}")
    declared: tuple[type[BaseException], ...] = tuple(exception_types)

    def decorate(function: _F) -> _F:
        setattr(function, RAISES_ATTR, declared)
        return function

    return decorate


def type_name(annotation: object) -> str:
    """Build a stable textual name for a parameter or return annotation.

    :param annotation: Annotation object, string forward reference, or ``inspect.Parameter.empty``.
    :returns: Dotted ``module.qualname`` for plain classes, ``repr`` text for everything else.
    """
    if annotation is inspect.Parameter.empty or annotation is Any:
        return "typing.Any"
    if isinstance(annotation, str) is True:
        return annotation.replace(" ", "")
    is_plain_class: bool = isinstance(annotation, type) and typing.get_origin(annotation) is None
    if is_plain_class is True:
        return f"{annotation.__module__}.{annotation.__qualname__}"
    return repr(annotation).replace(" ", "")


def _split_type_names(text: str) -> list[str]:
    """Split a comma separated type list, ignoring commas nested in brackets.

    :param text: Text between the parentheses of a signature string.
    :returns: Type names, whitespace removed.
    """
    names: list[str] = []
    depth: int = 0
    current: list[str] = []
    for character in text:
        if character in "[(":
            depth += 1
        elif character in "])":
            depth -= 1
        if character == "," and depth == 0:
            names.append("".join(current).strip())
            current = []
            continue
        current.append(character)
    tail: str = "".join(current).strip()
    if len(tail) > 0 or len(names) > 0:
        names.append(tail)
    return [name.replace(" ", "") for name in names]


class MethodSignature:
    """Merge key of a method: its name plus the names of its parameter types."""

    __slots__ = ("_name", "_internal")

    _name: str
    _internal: str

    def __init__(self, name: str, parameter_type_names: tuple[str, ...]) -> None:
        """Initialize a signature.

        :param name: Method name.
        :param parameter_type_names: Ordered parameter type names.
        """
        self._name = name
        self._internal = f"{name}({','.join(parameter_type_names)})"

    @classmethod
    def of(cls, name: str, parameter_types: tuple[object, ...]) -> "MethodSignature":
        """Build a signature from annotation objects.

        :param name: Method name.
        :param parameter_types: Ordered parameter annotations.
        :returns: Signature value.
        """
        return cls(name, tuple(type_name(parameter_type) for parameter_type in parameter_types))

    @classmethod
    def parse(cls, text: str) -> "MethodSignature":
        """Parse the textual form produced by ``str(signature)``.

        :param text: Signature text such as ``echo_back(builtins.str,builtins.str)``.
        :returns: Parsed signature.
        :raises ValueError: If the text is blank, lacks parentheses, or has trailing content.
        """
        stripped: str = text.strip()
        if len(stripped) == 0:
            raise ValueError("Cannot parse blank method signature")
        lparen: int = stripped.find("(")
        if lparen <= 0:
            raise ValueError(f"Method signature {text!r} requires a name followed by parentheses")
        name: str = stripped[:lparen].strip()
        if len(name) == 0:
            raise ValueError(f"Method signature {text!r} has blank name")
        if stripped.endswith(")") is False:
            raise ValueError(f"Method signature {text!r} is incomplete or has content beyond its end")
        parameter_text: str = stripped[lparen + 1 : -1]
        names: list[str] = _split_type_names(parameter_text)
        for entry in names:
            if len(entry) == 0:
                raise ValueError(f"Method signature {text!r} has an empty parameter type")
        return cls(name, tuple(names))

    @property
    def name(self) -> str:
        """Return the method name.

        :returns: Method name.
        """
        return self._name

    def to_method(self, owner: type) -> "MethodDescriptor | None":
        """Resolve this signature to a method descriptor on ``owner``.

        :param owner: Class searched through its MRO.
        :returns: Matching descriptor, or ``None`` when ``owner`` has no method with this signature.
        """
        for klass in owner.__mro__:
            raw: object = klass.__dict__.get(self._name)
            if raw is None:
                continue
            if _is_plain_method(raw) is False:
                return None
            descriptor: MethodDescriptor = describe_method(klass, self._name)
            if descriptor.key == self:
                return descriptor
            return None
        return None

    def __eq__(self, other: object) -> bool:
        """Compare signatures by their text form.

        :param other: Comparator value.
        :returns: Equality flag, or ``NotImplemented`` for other types.
        """
        if isinstance(other, MethodSignature) is False:
            return NotImplemented
        return self._internal == other._internal

    def __hash__(self) -> int:
        """Hash the text form.

        :returns: Hash value.
        """
        return hash(self._internal)

    def __str__(self) -> str:
        """Return the text form, e.g. ``echo_back(builtins.str)``.

        :returns: Signature text.
        """
        return self._internal

    def __repr__(self) -> str:
        """Return a debug representation.

        :returns: Representation naming the signature text.
        """
        return f"MethodSignature({self._internal!r})"


def _is_plain_method(raw: object) -> bool:
    """Report whether a raw class attribute is an instance method we can proxy.

    :param raw: Value from a class ``__dict__``.
    :returns: ``True`` for functions and builtin method descriptors.
    """
    if isinstance(raw, (staticmethod, classmethod, property)) is True:
        return False
    if inspect.isfunction(raw) is True:
        return True
    return inspect.ismethoddescriptor(raw) and callable(raw)


def visibility_of(name: str, owner: type | None = None) -> Visibility:
    """Classify a method name by Python naming convention.

    :param name: Attribute name.
    :param owner: Declaring class, used to recognize name-mangled attributes.
    :returns: ``private`` for name-mangled names, ``protected`` for a single leading underscore.
    """
    is_dunder: bool = name.startswith("__") and name.endswith("__")
    if is_dunder is True:
        return "public"
    if name.startswith("__") is True:
        return "private"
    if owner is not None and name.startswith(f"_{owner.__name__.lstrip('_')}__") is True:
        return "private"
    if name.startswith("_") is True:
        return "protected"
    return "public"


def _resolve_hints(function: object) -> dict[str, object]:
    """Resolve evaluated annotations, falling back to the raw ones.

    :param function: Function or method descriptor.
    :returns: Mapping of parameter name (and ``return``) to annotation.
    """
    try:
        return dict(typing.get_type_hints(function))
    except (NameError, TypeError, AttributeError):
        raw: object = getattr(function, "__annotations__", None)
        if isinstance(raw, dict) is True:
            return dict(raw)
        return {}


@dataclass(frozen=True, eq=False)
class MethodDescriptor:
    """Immutable description of one proxied method.

    Instances are created once per ``(declaring class, name)`` by
    ``describe_method`` and shared by every proxy class that implements the
    method, so identity comparison is meaningful.
    """

    name: str
    function: Callable[..., Any] = field(repr=False)
    signature: inspect.Signature = field(repr=False)
    call_signature: inspect.Signature = field(repr=False)
    parameters: tuple[inspect.Parameter, ...] = field(repr=False)
    parameter_types: tuple[object, ...]
    return_type: object
    exception_types: tuple[type[BaseException], ...]
    visibility: Visibility
    key: MethodSignature
    _declaring_ref: "weakref.ReferenceType[type]" = field(repr=False)

    @property
    def declaring_class(self) -> type:
        """Return the class whose body defines this method.

        :returns: Declaring class.
        :raises ReferenceError: If the declaring class has been garbage collected.
        """
        declaring: type | None = self._declaring_ref()
        if declaring is None:
            raise ReferenceError(f"Declaring class of {self.name} no longer exists")
        return declaring

    @property
    def qualified_name(self) -> str:
        """Return ``DeclaringClass.name``.

        :returns: Qualified method name.
        """
        declaring: type | None = self._declaring_ref()
        owner_name: str = "<collected>" if declaring is None else declaring.__qualname__
        return f"{owner_name}.{self.name}"

    @property
    def is_void(self) -> bool:
        """Report whether the method is annotated to return ``None``.

        :returns: ``True`` for ``-> None`` methods.
        """
        return self.return_type is None or self.return_type is _NONE_TYPE

    def declares(self, exception: BaseException) -> bool:
        """Check whether ``exception``'s exact type is a declared exception type.

        :param exception: Raised exception.
        :returns: ``True`` when the runtime type matches one declared type exactly.
        """
        exception_type: type[BaseException] = type(exception)
        for declared in self.exception_types:
            if exception_type is declared:
                return True
        return False

    def marshal(self, args: tuple[object, ...], kwargs: dict[str, object]) -> list[object]:
        """Flatten one call into the ordered argument list handlers receive.

        Every parameter occupies one slot; ``*args`` contributes a tuple slot and
        ``**kwargs`` a dict slot. Defaults are applied.

        :param args: Positional call arguments, receiver excluded.
        :param kwargs: Keyword call arguments.
        :returns: Fresh, mutable argument list.
        :raises TypeError: If the call does not match the method signature.
        """
        bound: inspect.BoundArguments = self.call_signature.bind(*args, **kwargs)
        bound.apply_defaults()
        arguments: list[object] = []
        for parameter in self.parameters:
            arguments.append(bound.arguments[parameter.name])
        return arguments

    def invoke(self, target: object, arguments: list[object]) -> object:
        """Call the same-named method on ``target`` with a marshaled argument list.

        :param target: Object receiving the call.
        :param arguments: Argument list produced by ``marshal``.
        :returns: Whatever the target method returns.
        :raises ValueError: If ``arguments`` no longer has one slot per parameter.
        """
        positional: list[object] = []
        keywords: dict[str, object] = {}
        for parameter, value in zip(self.parameters, arguments, strict=True):
            kind = parameter.kind
            if kind is inspect.Parameter.VAR_POSITIONAL:
                positional.extend(typing.cast(tuple[object, ...], value))
            elif kind is inspect.Parameter.KEYWORD_ONLY:
                keywords[parameter.name] = value
            elif kind is inspect.Parameter.VAR_KEYWORD:
                keywords.update(typing.cast(dict[str, object], value))
            else:
                positional.append(value)
        bound_method: Callable[..., object] = getattr(target, self.name)
        return bound_method(*positional, **keywords)

    def unmarshal(self, result: object) -> object:
        """Convert a handler result to the declared return type.

        :param result: Raw handler result.
        :returns: ``None`` for void methods, the (possibly widened) result otherwise.
        :raises TypeError: If ``result`` cannot stand for the declared return type.
        """
        if self.is_void is True:
            return None
        return_type: object = self.return_type
        if return_type in PRIMITIVE_TYPES:
            primitive: type = typing.cast(type, return_type)
            if result is None:
                raise TypeError(
                    f"{self.qualified_name} returned None but is declared to return {primitive.__name__}"
                )
            if isinstance(result, primitive) is True:
                return result
            sources: tuple[type, ...] = _WIDENING_SOURCES.get(primitive, ())
            is_widenable: bool = isinstance(result, sources) and isinstance(result, bool) is False
            if is_widenable is True:
                return primitive(result)
            raise TypeError(
                f"{self.qualified_name} returned {type(result).__name__} "
                + f"but is declared to return {primitive.__name__}"
            )
        if result is not None and _is_checkable_class(return_type) is True:
            checked: type = typing.cast(type, return_type)
            if isinstance(result, checked) is False:
                raise TypeError(
                    f"{self.qualified_name} returned {type(result).__name__} "
                    + f"which is not a {checked.__qualname__}"
                )
        return result

    def __repr__(self) -> str:
        """Return a debug representation.

        :returns: Representation naming the method and its signature.
        """
        return f"<MethodDescriptor {self.qualified_name} {self.key}>"


def _is_checkable_class(annotation: object) -> bool:
    """Report whether ``isinstance`` can validate values against ``annotation``.

    :param annotation: Return annotation.
    :returns: ``True`` for plain classes other than ``object`` and non-runtime protocols.
    """
    if isinstance(annotation, type) is False:
        return False
    if typing.get_origin(annotation) is not None:
        return False
    if annotation is object or annotation is Any:
        return False
    is_protocol: bool = getattr(annotation, "_is_protocol", False) is True
    is_runtime_protocol: bool = getattr(annotation, "_is_runtime_protocol", False) is True
    if is_protocol is True and is_runtime_protocol is False:
        return False
    return True


def _build_descriptor(declaring_class: type, name: str, function: Callable[..., Any]) -> MethodDescriptor:
    """Build a descriptor for ``function`` as defined on ``declaring_class``.

    :param declaring_class: Class whose ``__dict__`` holds ``function``.
    :param name: Attribute name.
    :param function: Function or method descriptor.
    :returns: New descriptor.
    :raises TypeError: If no signature can be determined for ``function``.
    """
    try:
        signature: inspect.Signature = inspect.signature(function)
    except ValueError as exc:
        raise TypeError(f"Cannot determine the signature of {declaring_class.__qualname__}.{name}") from exc

    all_parameters: tuple[inspect.Parameter, ...] = tuple(signature.parameters.values())
    receiver_kinds = (
        inspect.Parameter.POSITIONAL_ONLY,
        inspect.Parameter.POSITIONAL_OR_KEYWORD,
    )
    parameters: tuple[inspect.Parameter, ...] = all_parameters
    if len(all_parameters) > 0 and all_parameters[0].kind in receiver_kinds:
        parameters = all_parameters[1:]
    call_signature: inspect.Signature = signature.replace(parameters=parameters)

    hints: dict[str, object] = _resolve_hints(function)
    parameter_types: tuple[object, ...] = tuple(
        hints.get(parameter.name, Any) for parameter in parameters
    )
    return_type: object = hints.get("return", Any)
    exception_types: tuple[type[BaseException], ...] = tuple(getattr(function, RAISES_ATTR, ()))
    return MethodDescriptor(
        name=name,
        function=function,
        signature=signature,
        call_signature=call_signature,
        parameters=parameters,
        parameter_types=parameter_types,
        return_type=return_type,
        exception_types=exception_types,
        visibility=visibility_of(name, declaring_class),
        key=MethodSignature.of(name, parameter_types),
        _declaring_ref=weakref.ref(declaring_class),
    )


def describe_method(declaring_class: type, name: str) -> MethodDescriptor:
    """Return the cached descriptor of ``declaring_class.__dict__[name]``.

    :param declaring_class: Class whose body defines the method.
    :param name: Method name.
    :returns: Shared descriptor; the same object on every call.
    :raises KeyError: If ``declaring_class`` does not itself define ``name``.
    :raises TypeError: If the attribute is not a proxyable instance method.
    """
    with _DESCRIPTOR_LOCK:
        table: dict[str, MethodDescriptor] | None = _DESCRIPTORS_BY_CLASS.get(declaring_class)
        if table is None:
            table = {}
            _DESCRIPTORS_BY_CLASS[declaring_class] = table
        cached: MethodDescriptor | None = table.get(name)
        if cached is not None:
            return cached

        raw: object = declaring_class.__dict__[name]
        if _is_plain_method(raw) is False:
            raise TypeError(f"{declaring_class.__qualname__}.{name} is not an instance method")
        descriptor: MethodDescriptor = _build_descriptor(declaring_class, name, typing.cast(Callable[..., Any], raw))
        table[name] = descriptor
        return descriptor


EQUALS_METHOD: MethodDescriptor = describe_method(object, "__eq__")
HASH_METHOD: MethodDescriptor = describe_method(object, "__hash__")


def is_equals_method(method: MethodDescriptor) -> bool:
    """Report whether ``method`` is the reference-equality method.

    :param method: Method descriptor.
    :returns: ``True`` for a one-parameter ``__eq__``.
    """
    return method.name == "__eq__" and len(method.parameters) == 1


def is_hash_method(method: MethodDescriptor) -> bool:
    """Report whether ``method`` is the identity-hash method.

    :param method: Method descriptor.
    :returns: ``True`` for a parameterless ``__hash__``.
    """
    return method.name == "__hash__" and len(method.parameters) == 0
