"""
Transport contract shared by the networked and serial transports.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Optional

from common.protocol_definitions import ActionOptions, ActionResponse


class ConnectionState(Enum):
    DISCONNECTED = 'disconnected'
    CONNECTING = 'connecting'
    CONNECTED = 'connected'
    ERROR = 'error'


class Transport(ABC):
    """Delivers an action to the host and returns its outcome."""

    name = 'transport'

    def __init__(self):
        self.state = ConnectionState.DISCONNECTED

    @abstractmethod
    async def connect(self, target: Any) -> bool:
        ...

    @abstractmethod
    async def disconnect(self):
        ...

    def is_connected(self) -> bool:
        return self.state == ConnectionState.CONNECTED

    @abstractmethod
    def has_target(self) -> bool:
        """Whether an action could be sent right now."""

    @abstractmethod
    async def send_action(self, action: str, credential: str,
                          options: Optional[ActionOptions] = None,
                          timeout: Optional[float] = None) -> ActionResponse:
        ...

    def describe_target(self) -> str:
        return 'nothing'
