# cityweather/kafka_logger.py

import asyncio
import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from aiokafka import AIOKafkaProducer

from cityweather.config import settings

logger = logging.getLogger(__name__)

SERVICE_NAME = "city_weather_service"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class RequestEventMessage:
    """Schema for API request events"""
    event_type: str
    timestamp: str
    endpoint: str
    query: str
    response_time_ms: float
    status_code: int
    result_count: Optional[int] = None
    cache_hit: Optional[bool] = None
    service_name: str = SERVICE_NAME

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class SystemEventMessage:
    """Schema for system event messages"""
    event_type: str
    timestamp: str
    message: str
    data: Optional[Dict[str, Any]] = None
    service_name: str = SERVICE_NAME

    def to_dict(self) -> dict:
        return asdict(self)


class KafkaLogger:
    """Publishes request events to Kafka from a background queue; degrades to counting only"""

    def __init__(self, topic: str = None, queue_size: int = 10000):
        self.topic = topic or settings.kafka_topic
        self.producer: Optional[AIOKafkaProducer] = None
        self.is_healthy_flag: bool = False
        self.total_requests: int = 0
        self.cache_hits: int = 0
        self.cache_lookups: int = 0
        self.dropped_messages: int = 0
        self._message_queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._background_task: Optional[asyncio.Task] = None
        self._shutdown_event = asyncio.Event()

    async def initialize_producer(self):
        """Initialize Kafka producer with retry logic"""
        if not settings.kafka_enabled:
            logger.info("📴 Kafka disabled - request events will not be published")
            return

        max_retries = settings.kafka_connect_retries
        retry_delay = settings.kafka_retry_delay

        for attempt in range(1, max_retries + 1):
            try:
                logger.info(f"🔌 Kafka connection attempt {attempt}/{max_retries}")

                self.producer = AIOKafkaProducer(
                    bootstrap_servers=settings.kafka_bootstrap_servers,
                    value_serializer=lambda v: json.dumps(v).encode('utf-8'),
                    acks='all',
                    max_batch_size=16384,
                    linger_ms=50,
                    request_timeout_ms=30000,
                    retry_backoff_ms=100
                )

                await self.producer.start()
                self.is_healthy_flag = True
                self._shutdown_event.clear()
                self._background_task = asyncio.create_task(self._process_message_queue())

                logger.info("✅ Kafka producer started successfully")
                return

            except Exception as e:
                logger.error(f"❌ Kafka connection attempt {attempt} failed: {e}")
                if self.producer:
                    try:
                        await self.producer.stop()
                    except Exception as stop_error:
                        logger.debug(f"Ignoring producer stop error: {stop_error}")
                    self.producer = None

                if attempt == max_retries:
                    logger.error("💥 All Kafka connection attempts failed - operating in degraded mode")
                    self.is_healthy_flag = False
                    return

                logger.info(f"⏳ Retrying Kafka connection in {retry_delay} seconds...")
                await asyncio.sleep(retry_delay)

    async def close_producer(self):
        """Gracefully close Kafka producer"""
        logger.info("🔄 Shutting down Kafka logger...")
        self._shutdown_event.set()

        if self._background_task and not self._background_task.done():
            self._background_task.cancel()
            try:
                await self._background_task
            except asyncio.CancelledError:
                pass
        self._background_task = None

        if self.producer:
            try:
                await self.producer.stop()
                logger.info("✅ Kafka producer stopped successfully")
            except Exception as e:
                logger.error(f"❌ Error stopping Kafka producer: {e}")
            finally:
                self.producer = None

        self.is_healthy_flag = False

    def is_healthy(self) -> bool:
        return self.is_healthy_flag and self.producer is not None

    async def _process_message_queue(self):
        """Background task draining queued messages into Kafka"""
        logger.info("🚀 Kafka message processor started")

        while not self._shutdown_event.is_set():
            try:
                try:
                    topic, message = await asyncio.wait_for(self._message_queue.get(), timeout=1.0)
                except asyncio.TimeoutError:
                    continue

                if self.is_healthy():
                    try:
                        await self.producer.send_and_wait(topic, message)
                    except Exception as e:
                        logger.error(f"❌ Failed to send message to Kafka: {e}")
                        self.is_healthy_flag = False
                else:
                    self.dropped_messages += 1
                    logger.warning("⚠️  Kafka not connected - discarding message")

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"❌ Error in message processor: {e}")

        logger.info("🛑 Kafka message processor stopped")

    def _enqueue(self, message: Dict[str, Any]) -> bool:
        """Queue message for the background sender; never blocks the caller"""
        if not self.is_healthy() or self._shutdown_event.is_set():
            self.dropped_messages += 1
            return False

        try:
            self._message_queue.put_nowait((self.topic, message))
            return True
        except asyncio.QueueFull:
            self.dropped_messages += 1
            logger.warning("⚠️  Kafka message queue full - dropping message")
            return False

    def log_request(
        self,
        endpoint: str,
        query: str,
        response_time: float,
        status_code: int,
        result_count: Optional[int] = None,
        cache_hit: Optional[bool] = None,
    ) -> RequestEventMessage:
        """Record a served request and publish it as an event"""
        self.total_requests += 1
        if cache_hit is not None:
            self.cache_lookups += 1
            if cache_hit:
                self.cache_hits += 1

        event = RequestEventMessage(
            event_type="api_request",
            timestamp=_now(),
            endpoint=endpoint,
            query=query,
            response_time_ms=round(response_time * 1000, 3),
            status_code=status_code,
            result_count=result_count,
            cache_hit=cache_hit,
        )
        self._enqueue(event.to_dict())
        return event

    def log_system_event(self, event_type: str, message: str, data: Dict[str, Any] = None):
        self._enqueue(SystemEventMessage(
            event_type=event_type,
            timestamp=_now(),
            message=message,
            data=data,
        ).to_dict())

    def get_metrics(self) -> Dict[str, Any]:
        """Get current request metrics"""
        cache_hit_percentage = (
            (self.cache_hits / self.cache_lookups) * 100 if self.cache_lookups > 0 else 0
        )

        return {
            "total_requests": self.total_requests,
            "cache_hits": self.cache_hits,
            "cache_misses": self.cache_lookups - self.cache_hits,
            "cache_hit_percentage": round(cache_hit_percentage, 2),
            "kafka_healthy": self.is_healthy(),
            "queue_size": self._message_queue.qsize(),
            "dropped_messages": self.dropped_messages,
        }


# Global instances
kafka_logger = KafkaLogger()


async def init_kafka():
    await kafka_logger.initialize_producer()


async def close_kafka():
    await kafka_logger.close_producer()


def get_kafka_logger() -> KafkaLogger:
    """Get Kafka logger instance for dependency injection"""
    return kafka_logger
