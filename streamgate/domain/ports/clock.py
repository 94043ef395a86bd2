from __future__ import annotations
from typing import Callable

# Unix seconds; injected so TTL and expiry logic can be tested without sleeping.
Clock = Callable[[], float]
