"""Queue client abstraction used by the message relay."""

from __future__ import annotations

import functools
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

import pika
from pika.adapters.blocking_connection import BlockingChannel


@dataclass(frozen=True)
class Delivery:
    """A message handed to the relay by the queue client."""

    delivery_tag: int
    body: bytes
    redelivered: bool = False
    headers: Dict[str, Any] = field(default_factory=dict)


MessageHandler = Callable[[Delivery], None]


class QueueClient(ABC):
    """Operations the relay needs from a message broker."""

    @abstractmethod
    def connect(self) -> None:
        """Open the connection and channel."""

    @abstractmethod
    def declare_queue(self, name: str, durable: bool = True) -> None:
        """Ensure a queue exists."""

    @abstractmethod
    def consume(self, queue: str, handler: MessageHandler) -> None:
        """Start delivering messages from ``queue`` with manual acknowledgement."""

    @abstractmethod
    def cancel(self) -> None:
        """Stop delivering messages while keeping the connection open."""

    @abstractmethod
    def ack(self, delivery_tag: int) -> None:
        """Acknowledge a delivery. Safe to call from any thread."""

    @abstractmethod
    def nack(self, delivery_tag: int, requeue: bool = True) -> None:
        """Reject a delivery. Safe to call from any thread."""

    @abstractmethod
    def publish(self, queue: str, body: bytes) -> None:
        """Publish a persistent message. Safe to call from any thread."""

    @abstractmethod
    def process_events(self, time_limit: float) -> None:
        """Run the client's I/O loop for up to ``time_limit`` seconds."""

    @abstractmethod
    def close(self) -> None:
        """Close channel and connection."""


class PikaQueueClient(QueueClient):
    """RabbitMQ client built on pika's blocking connection.

    The blocking connection is not thread-safe, so settlements and publishes
    requested from worker threads are scheduled onto the connection thread
    and run the next time :meth:`process_events` is called.
    """

    def __init__(
        self,
        host: str,
        port: int = 5672,
        user: str = "guest",
        password: str = "guest",
        prefetch_count: int = 10,
    ) -> None:
        self.host = host
        self.port = port
        self.prefetch_count = prefetch_count
        self._credentials = pika.PlainCredentials(user, password)
        self._connection: Optional[pika.BlockingConnection] = None
        self._channel: Optional[BlockingChannel] = None
        self._consumer_tag: Optional[str] = None

    def connect(self) -> None:
        parameters = pika.ConnectionParameters(
            host=self.host, port=self.port, credentials=self._credentials
        )
        self._connection = pika.BlockingConnection(parameters)
        self._channel = self._connection.channel()
        self._channel.basic_qos(prefetch_count=self.prefetch_count)

    def declare_queue(self, name: str, durable: bool = True) -> None:
        self._require_channel().queue_declare(
            queue=name, durable=durable, exclusive=False, auto_delete=False
        )

    def consume(self, queue: str, handler: MessageHandler) -> None:
        def on_message(_channel, method, properties, body: bytes) -> None:
            handler(
                Delivery(
                    delivery_tag=method.delivery_tag,
                    body=body,
                    redelivered=bool(method.redelivered),
                    headers=dict(getattr(properties, "headers", None) or {}),
                )
            )

        self._consumer_tag = self._require_channel().basic_consume(
            queue=queue, on_message_callback=on_message, auto_ack=False
        )

    def cancel(self) -> None:
        if self._channel is not None and self._consumer_tag is not None:
            self._channel.basic_cancel(self._consumer_tag)
        self._consumer_tag = None

    def ack(self, delivery_tag: int) -> None:
        self._threadsafe(
            functools.partial(self._require_channel().basic_ack, delivery_tag=delivery_tag)
        )

    def nack(self, delivery_tag: int, requeue: bool = True) -> None:
        self._threadsafe(
            functools.partial(
                self._require_channel().basic_nack,
                delivery_tag=delivery_tag,
                requeue=requeue,
            )
        )

    def publish(self, queue: str, body: bytes) -> None:
        properties = pika.BasicProperties(
            content_type="application/json",
            delivery_mode=pika.DeliveryMode.Persistent,
        )
        self._threadsafe(
            functools.partial(
                self._require_channel().basic_publish,
                exchange="",
                routing_key=queue,
                body=body,
                properties=properties,
            )
        )

    def process_events(self, time_limit: float) -> None:
        if self._connection is None:
            raise RuntimeError("Queue client is not connected.")
        self._connection.process_data_events(time_limit=time_limit)

    def close(self) -> None:
        channel, connection = self._channel, self._connection
        self._channel = None
        self._connection = None
        self._consumer_tag = None
        if channel is not None and channel.is_open:
            channel.close()
        if connection is not None and connection.is_open:
            connection.close()

    def _threadsafe(self, callback: Callable[[], None]) -> None:
        if self._connection is None:
            raise RuntimeError("Queue client is not connected.")
        self._connection.add_callback_threadsafe(callback)

    def _require_channel(self) -> BlockingChannel:
        if self._channel is None:
            raise RuntimeError("Queue client is not connected.")
        return self._channel
