"""Broker integration: event codec, consumer and publisher."""

from .consumer import ConsumerState, EventConsumer, MessageOutcome
from .envelope import EventDecodeError, OutboundMessage, decode_event, encode_event
from .publisher import EventPublisher
from .retry import BrokerConnectionError, RetryPolicy, connect_with_retry

__all__ = [
    "BrokerConnectionError",
    "ConsumerState",
    "EventConsumer",
    "EventDecodeError",
    "EventPublisher",
    "MessageOutcome",
    "OutboundMessage",
    "RetryPolicy",
    "connect_with_retry",
    "decode_event",
    "encode_event",
]
