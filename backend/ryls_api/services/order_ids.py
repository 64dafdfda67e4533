"""
Order ID Allocator — `<PREFIX><zero-padded sequence>` identifiers for gateway attempts.

The sequence continues from the newest gateway record. Allocation is
serialized within the process, skips ids that are in flight or already
stored, and never hands out a sequence below one it issued before, so an id
sent to the gateway is not reused even if its attempt was never persisted.
The unique index on `order_id` remains the cross-process guard.
"""
import logging
import re
import threading
from typing import Optional

from ryls_api.config import Settings
from ryls_api.errors import RylsError, ConfigurationError
from ryls_api.repositories.payment_repository import PaymentRepository

logger = logging.getLogger(__name__)


class OrderIdAllocationError(RylsError):
    kind = "ORDER_ID_ALLOCATION"
    status_code = 503


class OrderIdAllocator:

    def __init__(self, settings: Settings):
        self.prefix = settings.ORDER_ID_PREFIX
        self.width = settings.ORDER_ID_WIDTH
        self.start = settings.ORDER_ID_START
        self.max_length = settings.ORDER_ID_MAX_LENGTH
        self.attempts = settings.ORDER_ID_ALLOCATION_ATTEMPTS
        self._pattern = re.compile(rf"^{re.escape(self.prefix)}(\d+)$")
        self._lock = threading.Lock()
        self._in_flight: set[str] = set()
        self._high_water = 0

    def validate_configuration(self) -> None:
        if not self.prefix or not self.prefix.isalnum():
            raise ConfigurationError(f"Order id prefix must be alphanumeric, got {self.prefix!r}")
        if self.width < 1 or self.start < 0:
            raise ConfigurationError("Order id width must be >= 1 and start >= 0")
        if len(self.prefix) + self.width > self.max_length:
            raise ConfigurationError(
                f"Order ids of {len(self.prefix) + self.width} chars exceed the gateway limit of {self.max_length}"
            )

    def format(self, sequence: int) -> str:
        digits = str(sequence)
        if len(digits) > self.width:
            raise OrderIdAllocationError(f"Order id space exhausted at sequence {sequence}")
        return f"{self.prefix}{digits.zfill(self.width)}"

    def parse(self, order_id: str) -> Optional[int]:
        match = self._pattern.match(order_id or "")
        return int(match.group(1)) if match else None

    def matches(self, order_id: str) -> bool:
        """True when `order_id` has exactly the configured prefix and width."""
        return self.parse(order_id) is not None and len(order_id) == len(self.prefix) + self.width

    def _next_sequence(self, payments: PaymentRepository) -> int:
        last = payments.last_gateway_record()
        if last is None:
            sequence = self.start
        else:
            parsed = self.parse(last.order_id)
            sequence = parsed + 1 if parsed is not None else last.id + 1
        return max(sequence, self.start, self._high_water + 1)

    def allocate(self, payments: PaymentRepository) -> str:
        """Reserve the next free order id. Call `release` once it is stored or abandoned."""
        with self._lock:
            sequence = self._next_sequence(payments)
            for _ in range(self.attempts):
                candidate = self.format(sequence)
                if candidate not in self._in_flight and not payments.order_id_exists(candidate):
                    self._in_flight.add(candidate)
                    self._high_water = sequence
                    logger.debug("Allocated order id %s", candidate)
                    return candidate
                logger.warning("Order id %s already taken, trying next sequence", candidate)
                sequence += 1

        raise OrderIdAllocationError(f"No free order id after {self.attempts} attempts")

    def release(self, order_id: str) -> None:
        with self._lock:
            self._in_flight.discard(order_id)
