"""Contract-set normalization and method merging."""

import abc
import inspect
import logging
import typing
import weakref
from collections.abc import Iterable
from dataclasses import dataclass

from proxysmith.errors import UnsupportedContractSet
from proxysmith.methods import MethodDescriptor
from proxysmith.methods import MethodSignature
from proxysmith.methods import describe_method

logger: logging.Logger = logging.getLogger(__name__)

_TPFLAGS_BASETYPE: int = 1 << 10
NEUTRAL_BASES: frozenset[type] = frozenset({object, abc.ABC, typing.Protocol, typing.Generic})
_INTERFACE_EXEMPT_NAMES: frozenset[str] = frozenset(
    {"__subclasshook__", "__init_subclass__", "__class_getitem__"}
)
IDENTITY_METHOD_NAMES: frozenset[str] = frozenset({"__eq__", "__hash__"})
_UNPROXIED_NAMES: frozenset[str] = frozenset(
    {
        "__init__",
        "__new__",
        "__init_subclass__",
        "__subclasshook__",
        "__class_getitem__",
        "__getattribute__",
        "__setattr__",
        "__delattr__",
        "__del__",
        "__set_name__",
    }
)


class Serializable(abc.ABC):
    """Marker contract implemented by every generated proxy class."""

    __slots__ = ()


class ProxyLoader:
    """Owner of generated proxy classes.

    Cache entries live exactly as long as their loader; generated classes only
    keep a weak reference back to it.
    """

    name: str

    def __init__(self, name: str = "proxysmith.generated") -> None:
        """Initialize a loader.

        :param name: Value used as ``__module__`` for generated classes.
        :raises ValueError: If ``name`` is blank.
        """
        if len(name.strip()) == 0:
            raise ValueError("ProxyLoader name cannot be blank")
        self.name = name

    def __repr__(self) -> str:
        """Return a debug representation.

        :returns: Representation naming the loader.
        """
        return f"ProxyLoader({self.name!r})"


_DEFAULT_LOADER: ProxyLoader = ProxyLoader()


def default_loader() -> ProxyLoader:
    """Return the process-wide loader used when callers pass none.

    :returns: Default loader.
    """
    return _DEFAULT_LOADER


def loader_name(loader: object) -> str:
    """Return the module name generated classes of ``loader`` report.

    :param loader: Loader object.
    :returns: ``loader.name`` when it is a string, ``proxysmith.generated`` otherwise.
    """
    name: object = getattr(loader, "name", None)
    if isinstance(name, str) is True:
        return name
    return "proxysmith.generated"


@dataclass(frozen=True)
class ContractSetKey:
    """Normalized cache key: ordered contracts, optional base class, owning loader."""

    contracts: tuple[type, ...]
    base_type: type | None
    loader_ref: "weakref.ReferenceType[object]"

    @property
    def loader(self) -> object | None:
        """Return the owning loader while it is alive.

        :returns: Loader, or ``None`` once it has been collected.
        """
        return self.loader_ref()

    @property
    def bases(self) -> tuple[type, ...]:
        """Return the bases a proxy class for this key derives from.

        :returns: Base class (when present) followed by the contracts.
        """
        if self.base_type is None:
            return self.contracts
        return (self.base_type, *self.contracts)

    def describe(self) -> str:
        """Return a short human-readable form for logs and messages.

        :returns: Comma separated qualified class names.
        """
        return ", ".join(klass.__qualname__ for klass in self.bases)


def is_interface(candidate: type) -> bool:
    """Report whether ``candidate`` is a pure contract.

    Protocol classes are contracts. Other classes are contracts when they use
    ``abc.ABCMeta`` and every method, property, static or class method they
    define is abstract.

    :param candidate: Class to classify.
    :returns: ``True`` for contracts, ``False`` for classes that can serve as a base class.
    """
    if getattr(candidate, "_is_protocol", False) is True:
        return True
    if isinstance(candidate, abc.ABCMeta) is False:
        return False
    for klass in candidate.__mro__:
        if klass in NEUTRAL_BASES:
            continue
        for name, raw in klass.__dict__.items():
            if name in _INTERFACE_EXEMPT_NAMES:
                continue
            is_member: bool = isinstance(raw, (staticmethod, classmethod, property)) or inspect.isfunction(raw)
            if is_member is False:
                continue
            is_abstract: bool = getattr(raw, "__isabstractmethod__", False) is True
            if is_abstract is False:
                return False
    return True


def is_final(candidate: type) -> bool:
    """Report whether ``candidate`` refuses subclassing.

    :param candidate: Class to inspect.
    :returns: ``True`` for ``typing.final`` classes and builtins that cannot be subclassed.
    """
    if candidate.__dict__.get("__final__", False) is True:
        return True
    return (candidate.__flags__ & _TPFLAGS_BASETYPE) == 0


def has_default_constructor(candidate: type) -> bool:
    """Report whether ``candidate`` can be constructed without arguments.

    :param candidate: Class to inspect.
    :returns: ``True`` when every constructor parameter is optional or variadic.
    """
    try:
        signature: inspect.Signature = inspect.signature(candidate)
    except (TypeError, ValueError):
        return True
    for parameter in signature.parameters.values():
        is_variadic: bool = parameter.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)
        if is_variadic is True:
            continue
        if parameter.default is inspect.Parameter.empty:
            return False
    return True


def _require_class(candidate: object) -> type:
    """Validate one requested contract entry.

    :param candidate: Requested entry.
    :returns: The entry, typed as a class.
    :raises TypeError: If ``candidate`` is not a class.
    """
    if isinstance(candidate, type) is False:
        raise TypeError(f"Proxy contracts must be classes, got {candidate!r}")
    return candidate


def resolve_base_type(requested: Iterable[type]) -> type | None:
    """Select the single base class among ``requested``.

    :param requested: Requested classes.
    :returns: The base class, or ``None`` when every entry is a contract.
    :raises UnsupportedContractSet: If there are several base classes, or the
        base class is final or cannot be constructed without arguments.
    """
    base_types: list[type] = []
    for candidate in requested:
        klass: type = _require_class(candidate)
        if klass is object or is_interface(klass) is True:
            continue
        if klass not in base_types:
            base_types.append(klass)

    if len(base_types) == 0:
        return None
    if len(base_types) > 1:
        names: str = ", ".join(klass.__qualname__ for klass in base_types)
        raise UnsupportedContractSet(f"Proxy class cannot extend {names}; multiple inheritance not allowed.")

    base_type: type = base_types[0]
    if is_final(base_type) is True:
        raise UnsupportedContractSet(f"Proxy class cannot extend {base_type.__qualname__} as it is final.")
    if has_default_constructor(base_type) is False:
        raise UnsupportedContractSet(
            f"Proxy class cannot extend {base_type.__qualname__}, "
            + "because it cannot be constructed without arguments."
        )
    return base_type


def resolve_contracts(requested: Iterable[type]) -> tuple[type, ...]:
    """Collect the contracts among ``requested``, de-duplicated in order.

    :param requested: Requested classes.
    :returns: Contracts, ``Serializable`` appended when absent.
    """
    contracts: list[type] = []
    for candidate in requested:
        klass: type = _require_class(candidate)
        if is_interface(klass) is False:
            continue
        already_seen: bool = any(klass is seen for seen in contracts)
        if already_seen is False:
            contracts.append(klass)
    has_marker: bool = any(klass is Serializable for klass in contracts)
    if has_marker is False:
        contracts.append(Serializable)
    return tuple(contracts)


def normalize_contracts(requested: Iterable[type], loader: object | None = None) -> ContractSetKey:
    """Normalize a raw contract request into its cache key.

    :param requested: Requested classes; at most one may be a non-contract class.
    :param loader: Owning loader; defaults to ``default_loader()``.
    :returns: Normalized key.
    :raises UnsupportedContractSet: If the base class selection fails.
    :raises TypeError: If an entry is not a class or ``loader`` cannot be weakly referenced.
    """
    requested_list: list[type] = list(requested)
    base_type: type | None = resolve_base_type(requested_list)
    contracts: tuple[type, ...] = resolve_contracts(requested_list)
    owner: object = default_loader() if loader is None else loader
    try:
        loader_ref: "weakref.ReferenceType[object]" = weakref.ref(owner)
    except TypeError as exc:
        raise TypeError(f"Loader {owner!r} must support weak references") from exc
    return ContractSetKey(contracts=contracts, base_type=base_type, loader_ref=loader_ref)


def _abstract_non_method(klass: type, name: str, raw: object) -> None:
    """Reject abstract members that cannot be forwarded.

    :param klass: Class defining the member.
    :param name: Member name.
    :param raw: Raw member from ``klass.__dict__``.
    :raises UnsupportedContractSet: If the member is abstract.
    """
    if getattr(raw, "__isabstractmethod__", False) is True:
        raise UnsupportedContractSet(
            f"Abstract {type(raw).__name__} {klass.__qualname__}.{name} cannot be proxied"
        )


def _is_forwardable(raw: object) -> bool:
    """Report whether a class attribute is a method a proxy can forward.

    :param raw: Attribute as stored in a class ``__dict__``.
    :returns: ``True`` for functions and builtin slot wrappers; ``False`` for
        properties, static methods, and class methods.
    """
    return inspect.isfunction(raw) or (
        inspect.ismethoddescriptor(raw) and isinstance(raw, (staticmethod, classmethod)) is False
    )


def _walk_members(owner: type) -> Iterable[tuple[type, str, object]]:
    """Yield ``(class, name, raw)`` for each attribute as ``owner`` resolves it.

    :param owner: Class whose MRO is walked.
    :returns: Iterator over the first definition of every name, neutral bases skipped.
    """
    seen: set[str] = set()
    for klass in owner.__mro__:
        if klass in NEUTRAL_BASES:
            continue
        for name, raw in klass.__dict__.items():
            if name in seen:
                continue
            seen.add(name)
            yield klass, name, raw


def implementation_methods(base_type: type | None, contracts: tuple[type, ...]) -> tuple[MethodDescriptor, ...]:
    """Compute the methods a proxy class must forward.

    The base class is visited first, then each contract in order. Methods are
    keyed by ``MethodSignature``; the first one visited wins. Methods the base
    class implements concretely are not forwarded, and ``__eq__``/``__hash__``
    are handled by the generated class itself.

    :param base_type: Optional base class.
    :param contracts: Ordered contracts.
    :returns: Forwarded methods in visitation order, one per name.
    :raises UnsupportedContractSet: If a final base method collides with a
        differently-typed contract method, or an abstract non-method member is found.
    """
    merged: dict[MethodSignature, MethodDescriptor] = {}
    by_name: dict[str, MethodDescriptor] = {}
    concrete_names: set[str] = set()
    final_methods: dict[str, MethodDescriptor] = {}

    if base_type is not None:
        for klass, name, raw in _walk_members(base_type):
            if name in _UNPROXIED_NAMES or name in IDENTITY_METHOD_NAMES:
                continue
            if _is_forwardable(raw) is False:
                _abstract_non_method(klass, name, raw)
                continue
            is_abstract: bool = getattr(raw, "__isabstractmethod__", False) is True
            if is_abstract is False:
                concrete_names.add(name)
                if getattr(raw, "__final__", False) is True:
                    final_methods[name] = describe_method(klass, name)
                continue
            descriptor: MethodDescriptor = describe_method(klass, name)
            merged[descriptor.key] = descriptor
            by_name[name] = descriptor

    for contract in contracts:
        for klass, name, raw in _walk_members(contract):
            if name in _UNPROXIED_NAMES or name in IDENTITY_METHOD_NAMES:
                continue
            if _is_forwardable(raw) is False:
                _abstract_non_method(klass, name, raw)
                continue
            descriptor = describe_method(klass, name)
            final_method: MethodDescriptor | None = final_methods.get(name)
            if final_method is not None and final_method.key != descriptor.key:
                raise UnsupportedContractSet(
                    f"{final_method.qualified_name} is final and conflicts with "
                    + f"{descriptor.qualified_name} ({descriptor.key})"
                )
            if name in concrete_names:
                continue
            if descriptor.key in merged:
                continue
            shadowing: MethodDescriptor | None = by_name.get(name)
            if shadowing is not None:
                logger.debug(
                    "%s is shadowed by %s; Python methods cannot be overloaded",
                    descriptor.key,
                    shadowing.qualified_name,
                )
                continue
            merged[descriptor.key] = descriptor
            by_name[name] = descriptor

    return tuple(merged.values())
