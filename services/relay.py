"""Queue-to-API relay with manual acknowledgement."""

from __future__ import annotations

import hashlib
import logging
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from threading import Lock, RLock, get_ident
from typing import Optional, Protocol

from pydantic import ValidationError

from app.schemas import Reading
from services.errors import MessageDecodeError
from services.queue import Delivery, PikaQueueClient, QueueClient
from settings import get_settings

logger = logging.getLogger(__name__)

DELIVERY_COUNT_HEADER = "x-delivery-count"

# Distinct undecodable bodies whose failure counts are remembered.
DECODE_FAILURE_CACHE_SIZE = 1024


class ReadingSink(Protocol):
    def forward_reading(self, body: str) -> None:
        ...


class RelayState(str, Enum):
    idle = "idle"
    connected = "connected"
    consuming = "consuming"
    stopped = "stopped"


def decode_message(body: bytes) -> str:
    """Return the message text after checking it is a JSON reading."""
    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MessageDecodeError("Message body is not valid UTF-8.") from exc
    try:
        Reading.model_validate_json(text)
    except ValidationError as exc:
        raise MessageDecodeError(
            f"Message body is not a valid reading: {exc.error_count()} error(s)."
        ) from exc
    return text


class MessageRelay:
    """Forwards queued readings to the ingestion API.

    Deliveries are handled concurrently on a worker pool. A message is acked
    once the sink accepts it and nacked with requeue otherwise. Messages that
    cannot be decoded are requeued until they have failed
    ``max_delivery_attempts`` times, then moved to the dead-letter queue.
    """

    def __init__(
        self,
        queue_client: QueueClient,
        sink: ReadingSink,
        queue_name: str,
        dead_letter_queue: Optional[str] = None,
        workers: int = 4,
        max_delivery_attempts: int = 5,
        failure_cache_size: int = DECODE_FAILURE_CACHE_SIZE,
    ) -> None:
        self.queue_client = queue_client
        self.sink = sink
        self.queue_name = queue_name
        self.dead_letter_queue = dead_letter_queue
        self.max_delivery_attempts = max_delivery_attempts
        self.executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="relay")
        self._state = RelayState.idle
        self._state_lock = RLock()
        self._io_thread: Optional[int] = None
        self._shut_down = False
        self.failure_cache_size = failure_cache_size
        self._decode_failures: OrderedDict[str, int] = OrderedDict()
        self._failures_lock = Lock()

    @property
    def state(self) -> RelayState:
        with self._state_lock:
            return self._state

    def start(self) -> bool:
        """Connect, declare the queues and begin consuming.

        Failures are logged and leave the relay idle; nothing is raised.
        """
        with self._state_lock:
            if self._state is RelayState.stopped:
                logger.warning(
                    "Relay is stopped and cannot be restarted",
                    extra={"queue": self.queue_name},
                )
                return False
            if self._state is RelayState.consuming:
                return True
            try:
                if self._state is RelayState.idle:
                    self.queue_client.connect()
                    self.queue_client.declare_queue(self.queue_name, durable=True)
                    if self.dead_letter_queue:
                        self.queue_client.declare_queue(self.dead_letter_queue, durable=True)
                    self._state = RelayState.connected
                self.queue_client.consume(self.queue_name, self._on_message)
            except Exception:
                logger.exception("Failed to start relay", extra={"queue": self.queue_name})
                self._close_quietly()
                self._state = RelayState.idle
                return False
            self._state = RelayState.consuming
        logger.info("Relay started on queue %s", self.queue_name, extra={"queue": self.queue_name})
        return True

    def pause(self) -> None:
        """Stop consuming but keep the connection open."""
        with self._state_lock:
            if self._state is not RelayState.consuming:
                return
            try:
                self.queue_client.cancel()
            except Exception:
                logger.exception("Failed to cancel consumer", extra={"queue": self.queue_name})
            self._state = RelayState.connected
        logger.info("Relay paused", extra={"queue": self.queue_name})

    def stop(self) -> None:
        """Stop for good. Idempotent; errors while closing are ignored.

        Called from another thread while :meth:`serve_forever` runs, this only
        marks the relay stopped; the serving thread then drains and closes the
        connection, since the queue client belongs to that thread.
        """
        with self._state_lock:
            if self._state is RelayState.stopped:
                return
            self._state = RelayState.stopped
            deferred = self._io_thread is not None and self._io_thread != get_ident()
        logger.info("Stopping relay", extra={"queue": self.queue_name})
        if not deferred:
            self._shutdown()

    def serve_forever(self, poll_interval: float = 1.0) -> None:
        """Drive the queue client's I/O loop while consuming."""
        with self._state_lock:
            self._io_thread = get_ident()
        try:
            while self.state is RelayState.consuming:
                try:
                    self.queue_client.process_events(poll_interval)
                except Exception:
                    logger.exception("Queue connection lost", extra={"queue": self.queue_name})
                    with self._state_lock:
                        if self._state is not RelayState.stopped:
                            self._state = RelayState.idle
                    self._close_quietly()
                    return
        finally:
            with self._state_lock:
                self._io_thread = None
                stopping = self._state is RelayState.stopped
            if stopping:
                self._shutdown()

    def _shutdown(self) -> None:
        with self._state_lock:
            if self._shut_down:
                return
            self._shut_down = True
        # Handlers already running finish; queued ones are dropped unsettled
        # and the broker redelivers them once the connection closes.
        self.executor.shutdown(wait=True, cancel_futures=True)
        # Settlements from finished handlers go out on the next I/O pass.
        try:
            self.queue_client.process_events(0)
        except Exception:
            logger.debug("Could not flush pending settlements", exc_info=True)
        self._close_quietly()

    def handle_delivery(self, delivery: Delivery) -> None:
        """Decode, forward and settle a single delivery."""
        context = {"queue": self.queue_name, "delivery_tag": delivery.delivery_tag}
        try:
            body = decode_message(delivery.body)
        except MessageDecodeError as exc:
            self._reject_undecodable(delivery, exc)
            return

        self._forget_failures(delivery.body)
        try:
            self.sink.forward_reading(body)
        except Exception as exc:
            logger.error(
                "Error forwarding message; requeueing",
                exc_info=True,
                extra={**context, "reason": str(exc)},
            )
            self._settle(delivery, ack=False)
            return

        self._settle(delivery, ack=True)

    def _on_message(self, delivery: Delivery) -> None:
        if self.state is not RelayState.consuming:
            self._settle(delivery, ack=False)
            return
        try:
            self.executor.submit(self.handle_delivery, delivery)
        except RuntimeError:
            # The pool was shut down between the state check and the submit.
            self._settle(delivery, ack=False)

    def _reject_undecodable(self, delivery: Delivery, exc: MessageDecodeError) -> None:
        attempt = self._record_failure(delivery)
        context = {
            "queue": self.queue_name,
            "delivery_tag": delivery.delivery_tag,
            "attempt": attempt,
            "reason": str(exc),
        }
        if self.dead_letter_queue and attempt >= self.max_delivery_attempts:
            try:
                self.queue_client.publish(self.dead_letter_queue, delivery.body)
            except Exception:
                logger.exception("Failed to dead-letter message; requeueing", extra=context)
                self._settle(delivery, ack=False)
                return
            logger.error("Undecodable message moved to %s", self.dead_letter_queue, extra=context)
            self._forget_failures(delivery.body)
            self._settle(delivery, ack=True)
            return

        logger.warning("Undecodable message; requeueing", extra=context)
        self._settle(delivery, ack=False)

    def _record_failure(self, delivery: Delivery) -> int:
        key = hashlib.sha256(delivery.body).hexdigest()
        with self._failures_lock:
            attempt = self._decode_failures.pop(key, 0) + 1
            self._decode_failures[key] = attempt
            while len(self._decode_failures) > self.failure_cache_size:
                self._decode_failures.popitem(last=False)
        broker_count = delivery.headers.get(DELIVERY_COUNT_HEADER)
        if isinstance(broker_count, int):
            attempt = max(attempt, broker_count + 1)
        return attempt

    def _forget_failures(self, body: bytes) -> None:
        key = hashlib.sha256(body).hexdigest()
        with self._failures_lock:
            self._decode_failures.pop(key, None)

    def _settle(self, delivery: Delivery, ack: bool) -> None:
        try:
            if ack:
                self.queue_client.ack(delivery.delivery_tag)
            else:
                self.queue_client.nack(delivery.delivery_tag, requeue=True)
        except Exception:
            logger.exception(
                "Failed to %s message",
                "ack" if ack else "nack",
                extra={"queue": self.queue_name, "delivery_tag": delivery.delivery_tag},
            )

    def _close_quietly(self) -> None:
        try:
            self.queue_client.close()
        except Exception:
            logger.debug("Ignoring error while closing queue client", exc_info=True)


def build_default_relay(sink: ReadingSink) -> MessageRelay:
    """Wire a relay to RabbitMQ using the configured settings."""
    settings = get_settings()
    queue_client = PikaQueueClient(
        host=settings.queue_host,
        port=settings.queue_port,
        user=settings.queue_user,
        password=settings.queue_password,
        prefetch_count=settings.prefetch_count,
    )
    return MessageRelay(
        queue_client=queue_client,
        sink=sink,
        queue_name=settings.queue_name,
        dead_letter_queue=settings.dead_letter_queue,
        workers=settings.relay_workers,
        max_delivery_attempts=settings.max_delivery_attempts,
    )
