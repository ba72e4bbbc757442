from .connection import BrokerConnection, ClientState
from .publisher import PublisherClient, PublishResult
from .scheduler import RateScheduler
from .subscriber import SubscriberClient

__all__ = [
    "BrokerConnection",
    "ClientState",
    "PublisherClient",
    "PublishResult",
    "RateScheduler",
    "SubscriberClient",
]
