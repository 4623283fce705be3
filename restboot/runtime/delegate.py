"""
Runtime delegate contract.

A delegate turns an application and a Configuration into a bound, serving
RunningInstance. Request dispatch belongs to the delegate's server; the
bootstrap layer only negotiates how and where it listens.
"""

from abc import ABC, abstractmethod
from typing import Any

from restboot.configuration.builder import ConfigurationBuilder
from restboot.configuration.store import Configuration
from .instance import RunningInstance


class RuntimeDelegate(ABC):
    """Base class for server implementations that can host an application."""

    def create_configuration_builder(self) -> ConfigurationBuilder:
        """Return a fresh builder for configurations this delegate understands."""
        return ConfigurationBuilder()

    @abstractmethod
    async def bootstrap(self, application: Any, configuration: Configuration) -> RunningInstance:
        """
        Bind and start serving ``application``.

        Resolves with a RunningInstance in RUNNING state once the listener
        accepts connections.

        Raises:
            RuntimeStartupError: If the listener cannot be established
        """
