"""Casedeck: live case board for the Stream Deck XL.

An external producer process prints one JSON case record per line; the
bridge supervises it, the board keeps the most recent active cases in a
fixed run of keys, and every change is animated in strict order.

  - Producer supervision with capped exponential restart backoff
  - FIFO eviction and gap-closing shifts on a fixed-capacity slot table
  - One serial animation queue for every device write
  - Stream Deck and Rich console displays behind one protocol
"""

__version__ = "0.1.0"
__description__ = "Live case board for the Stream Deck XL"

from casedeck.bridge.producer import ProducerBridge
from casedeck.core.board import CaseBoard
from casedeck.models.cases import CaseSnapshot
from casedeck.runtime import DeckRuntime

__all__ = ["CaseBoard", "CaseSnapshot", "DeckRuntime", "ProducerBridge", "__version__"]
