"""Producer bridge — supervises the external process that prints cases.

Modules
-------
wire
    NDJSON record parsing and formatting.
backoff
    Capped exponential restart delay.
producer
    ``ProducerBridge`` — launch, read, restart and stop the producer.
"""

from casedeck.bridge.backoff import RestartBackoff
from casedeck.bridge.producer import BridgeState, ProducerBridge
from casedeck.bridge.wire import WireFormatError, format_case_line, parse_case_line

__all__ = [
    "BridgeState",
    "ProducerBridge",
    "RestartBackoff",
    "WireFormatError",
    "format_case_line",
    "parse_case_line",
]
