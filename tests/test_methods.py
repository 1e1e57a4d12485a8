"""Tests for method descriptors, signatures, and the calling convention."""

import inspect

import pytest

from proxysmith import MethodSignature
from proxysmith import raises
from proxysmith.methods import describe_method
from proxysmith.methods import is_equals_method
from proxysmith.methods import is_hash_method
from proxysmith.methods import type_name
from proxysmith.methods import visibility_of
from tests.fixtures.echo import Counter
from tests.fixtures.echo import Echo
from tests.fixtures.echo import EchoImpl


class Widget:
    """Local return type for unmarshal checks."""


class Shapes:
    """Class with methods covering every parameter kind."""

    label: str = "shape"

    def everything(self, first: int, /, second: str, *rest: float, flag: bool = False, **extra: object) -> None:
        pass

    def widget(self) -> Widget:
        return Widget()

    def untyped(self, value):
        return value

    def _helper(self) -> None:
        pass

    def __mangled(self) -> None:
        pass


def test_signature_text_form() -> None:
    """Verify the stable textual form of a method signature."""
    signature: MethodSignature = describe_method(Echo, "echo_back_pair").key
    assert str(signature) == "echo_back_pair(builtins.str,builtins.str)"
    empty_signature: MethodSignature = describe_method(Echo, "echo").key
    assert str(empty_signature) == "echo()"


def test_signature_parse_round_trips_text_form() -> None:
    """Verify ``parse`` accepts what ``str`` produces, including nested brackets."""
    text: str = "lookup(dict[str,int],builtins.str)"
    parsed: MethodSignature = MethodSignature.parse(text)
    assert str(parsed) == text
    assert parsed.name == "lookup"
    assert MethodSignature.parse("  echo()  ") == describe_method(Echo, "echo").key


@pytest.mark.parametrize(
    "text",
    ["", "   ", "echo", "(builtins.str)", "echo(builtins.str", "echo(builtins.str)x", "echo(builtins.str,)"],
)
def test_signature_parse_rejects_malformed_text(text: str) -> None:
    """Verify malformed signature text is rejected."""
    with pytest.raises(ValueError):
        MethodSignature.parse(text)


def test_signature_equality_and_hash() -> None:
    """Verify signatures compare by name and parameter types only."""
    first: MethodSignature = MethodSignature("echo_back", ("builtins.str",))
    second: MethodSignature = MethodSignature.of("echo_back", (str,))
    other: MethodSignature = MethodSignature.of("echo_back", (bytes,))
    assert first == second
    assert hash(first) == hash(second)
    assert first != other
    assert first != "echo_back(builtins.str)"


def test_signature_resolves_to_method() -> None:
    """Verify ``to_method`` finds matching descriptors and rejects mismatches."""
    signature: MethodSignature = MethodSignature.of("echo_back", (str,))
    resolved: object = signature.to_method(Echo)
    assert resolved is describe_method(Echo, "echo_back")
    assert MethodSignature.of("echo_back", (bytes,)).to_method(Echo) is None
    assert MethodSignature.of("missing", ()).to_method(Echo) is None


def test_descriptor_is_shared_per_declaring_class() -> None:
    """Verify descriptors are created once per declaring class and name."""
    first: object = describe_method(Echo, "echo_back")
    second: object = describe_method(Echo, "echo_back")
    assert first is second
    assert describe_method(EchoImpl, "echo_back") is not first


def test_descriptor_metadata() -> None:
    """Verify the descriptor exposes declaring class, types, and declarations."""
    method = describe_method(Echo, "io_exception")
    assert method.declaring_class is Echo
    assert method.qualified_name == "Echo.io_exception"
    assert method.exception_types == (OSError,)
    assert method.is_void is True
    assert method.visibility == "public"

    counter_method = describe_method(Counter, "increment")
    assert counter_method.parameter_types == (int,)
    assert counter_method.return_type is int


def test_describe_method_rejects_non_methods() -> None:
    """Verify only instance methods can be described."""
    with pytest.raises(KeyError):
        describe_method(Echo, "missing")
    with pytest.raises(TypeError, match="not an instance method"):
        describe_method(Shapes, "label")


def test_visibility_follows_naming_convention() -> None:
    """Verify protected and private names are classified."""
    assert visibility_of("echo") == "public"
    assert visibility_of("__eq__") == "public"
    assert visibility_of("_helper") == "protected"
    assert visibility_of("__mangled") == "private"
    assert describe_method(Shapes, "_helper").visibility == "protected"
    assert describe_method(Shapes, "_Shapes__mangled").visibility == "private"


def test_type_name_forms() -> None:
    """Verify annotation naming for plain, missing, and generic annotations."""
    assert type_name(str) == "builtins.str"
    assert type_name(inspect.Parameter.empty) == "typing.Any"
    assert type_name(list[str]) == "list[str]"
    assert type_name("Widget ") == "Widget"
    assert str(describe_method(Shapes, "untyped").key) == "untyped(typing.Any)"


def test_marshal_flattens_every_parameter_kind() -> None:
    """Verify one slot per parameter, with variadics packed into one slot each."""
    method = describe_method(Shapes, "everything")
    arguments: list[object] = method.marshal((1, "two", 3.0, 4.0), {"flag": True, "color": "red"})
    assert arguments == [1, "two", (3.0, 4.0), True, {"color": "red"}]

    defaults: list[object] = method.marshal((1, "two"), {})
    assert defaults == [1, "two", (), False, {}]

    with pytest.raises(TypeError):
        method.marshal((), {})


def test_invoke_rebuilds_the_call_on_the_target() -> None:
    """Verify marshaled arguments are replayed with their original kinds."""
    method = describe_method(Echo, "echo_styled")
    target: EchoImpl = EchoImpl()
    arguments: list[object] = method.marshal(("hello",), {"loud": True})
    assert method.invoke(target, arguments) == "HELLO"

    variadic = describe_method(Echo, "echo_back_all")
    assert variadic.invoke(target, variadic.marshal(("a", "b", "c"), {})) == "abc"

    with pytest.raises(ValueError):
        method.invoke(target, ["hello"])


def test_unmarshal_checks_return_values() -> None:
    """Verify void discarding, primitive checks, widening, and class checks."""
    assert describe_method(Echo, "echo").unmarshal("ignored") is None

    int_method = describe_method(Echo, "echo_back_int")
    assert int_method.unmarshal(5) == 5
    with pytest.raises(TypeError, match="returned None"):
        int_method.unmarshal(None)
    with pytest.raises(TypeError, match="declared to return int"):
        int_method.unmarshal("5")

    float_method = describe_method(Echo, "echo_back_float")
    widened: object = float_method.unmarshal(3)
    assert isinstance(widened, float) is True
    assert widened == 3.0
    with pytest.raises(TypeError):
        float_method.unmarshal(True)

    widget_method = describe_method(Shapes, "widget")
    assert widget_method.unmarshal(None) is None
    with pytest.raises(TypeError, match="not a Widget"):
        widget_method.unmarshal("not a widget")

    assert describe_method(Shapes, "untyped").unmarshal(object) is object


def test_raises_validates_its_arguments() -> None:
    """Verify ``raises`` only accepts exception classes."""
    with pytest.raises(TypeError):
        raises("OSError")  # type: ignore[arg-type]

    @raises(OSError, KeyError)
    def reader() -> None:
        pass

    assert getattr(reader, "__raises__") == (OSError, KeyError)


def test_identity_method_predicates() -> None:
    """Verify ``__eq__`` and ``__hash__`` descriptors are recognized."""
    assert is_equals_method(describe_method(object, "__eq__")) is True
    assert is_hash_method(describe_method(object, "__hash__")) is True
    assert is_equals_method(describe_method(Echo, "echo_back")) is False
    assert is_hash_method(describe_method(Echo, "echo")) is False
