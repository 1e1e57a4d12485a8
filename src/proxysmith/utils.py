"""Small helpers shared by handlers, interceptors, and invokers."""

from proxysmith.contracts import NEUTRAL_BASES
from proxysmith.contracts import Serializable
from proxysmith.contracts import is_interface
from proxysmith.methods import is_equals_method
from proxysmith.methods import is_hash_method

_NULL_VALUES: dict[type, object] = {
    bool: False,
    int: 0,
    float: 0.0,
    complex: 0j,
    str: "",
    bytes: b"",
}

__all__: list[str] = [
    "get_all_interfaces",
    "is_equals_method",
    "is_hash_method",
    "null_value",
]


def null_value(value_type: object) -> object:
    """Return the zero value of a primitive type.

    :param value_type: Return or parameter annotation.
    :returns: ``False``, ``0``, ``0.0``, ``0j``, ``""`` or ``b""`` for primitives, ``None`` otherwise.
    """
    if isinstance(value_type, type) is False:
        return None
    return _NULL_VALUES.get(value_type)


def get_all_interfaces(klass: type | None) -> tuple[type, ...]:
    """Return every contract in ``klass``'s MRO, nearest first.

    :param klass: Class to inspect; ``None`` yields nothing.
    :returns: Contracts, ``Serializable`` included when inherited.
    """
    if klass is None:
        return ()
    interfaces: list[type] = []
    for candidate in klass.__mro__[1:]:
        if candidate in NEUTRAL_BASES:
            continue
        if candidate is Serializable or is_interface(candidate) is True:
            interfaces.append(candidate)
    return tuple(interfaces)
