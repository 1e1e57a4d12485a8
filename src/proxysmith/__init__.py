"""Public package API for proxysmith."""

import logging

from proxysmith.api import can_proxy
from proxysmith.api import create_delegator_proxy
from proxysmith.api import create_interceptor_proxy
from proxysmith.api import create_invoker_proxy
from proxysmith.api import get_proxy_class
from proxysmith.builder import get_handler
from proxysmith.builder import is_proxy
from proxysmith.cache import ProxyClassCache
from proxysmith.contracts import ProxyLoader
from proxysmith.contracts import Serializable
from proxysmith.contracts import default_loader
from proxysmith.errors import ProviderFailure
from proxysmith.errors import ProxyError
from proxysmith.errors import SynthesisFailure
from proxysmith.errors import TargetInvocationFailure
from proxysmith.errors import UndeclaredDispatchFailure
from proxysmith.errors import UnsupportedContractSet
from proxysmith.factory import ProxyFactory
from proxysmith.factory import proxy_factory
from proxysmith.methods import MethodDescriptor
from proxysmith.methods import MethodSignature
from proxysmith.methods import raises
from proxysmith.providers import ObjectProvider
from proxysmith.runtime import Interceptor
from proxysmith.runtime import Invocation
from proxysmith.runtime import Invoker

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__: list[str] = [
    "can_proxy",
    "create_delegator_proxy",
    "create_interceptor_proxy",
    "create_invoker_proxy",
    "default_loader",
    "get_handler",
    "get_proxy_class",
    "is_proxy",
    "proxy_factory",
    "raises",
    "Interceptor",
    "Invocation",
    "Invoker",
    "MethodDescriptor",
    "MethodSignature",
    "ObjectProvider",
    "ProviderFailure",
    "ProxyClassCache",
    "ProxyError",
    "ProxyFactory",
    "ProxyLoader",
    "Serializable",
    "SynthesisFailure",
    "TargetInvocationFailure",
    "UndeclaredDispatchFailure",
    "UnsupportedContractSet",
]
