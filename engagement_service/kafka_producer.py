"""
Kafka producer for publishing engagement events
"""
from aiokafka import AIOKafkaProducer
from typing import Optional, Dict, Any
import json
import logging
from datetime import datetime

from .config import settings

logger = logging.getLogger(__name__)


class KafkaProducerManager:
    """Kafka producer manager for publishing events"""

    def __init__(self):
        self.producer: Optional[AIOKafkaProducer] = None

    async def start(self):
        """Start Kafka producer"""
        if not settings.KAFKA_ENABLED:
            logger.info("Kafka is disabled")
            return

        try:
            self.producer = AIOKafkaProducer(
                bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
                value_serializer=lambda v: json.dumps(v).encode("utf-8"),
                key_serializer=lambda v: str(v).encode("utf-8") if v else None,
            )
            await self.producer.start()
            logger.info("Kafka producer started successfully")
        except Exception as e:
            logger.warning(f"Failed to start Kafka producer: {e}. Continuing without Kafka.")
            self.producer = None

    async def stop(self):
        """Stop Kafka producer"""
        if self.producer:
            await self.producer.stop()
            logger.info("Kafka producer stopped")

    async def publish_event(self, topic: str, key: str, event_data: Dict[str, Any]):
        """
        Publish event to Kafka topic

        Args:
            topic: Kafka topic name
            key: Message key (usually post_id)
            event_data: Event data to publish
        """
        if not self.producer:
            logger.debug(f"Kafka disabled, skipping event: {topic}")
            return

        try:
            await self.producer.send(topic, value=event_data, key=key)
            logger.info(f"Published event to {topic}: {key}")
        except Exception as e:
            logger.error(f"Error publishing event to {topic}: {e}")

    async def publish_post_liked(self, post_id: str, user_id: int, like_count: int):
        """Publish post liked event"""
        event_data = {
            "event_type": "post_liked",
            "post_id": post_id,
            "user_id": user_id,
            "like_count": like_count,
            "timestamp": datetime.utcnow().isoformat(),
        }
        await self.publish_event(settings.KAFKA_TOPIC_POST_LIKED, post_id, event_data)

    async def publish_post_unliked(self, post_id: str, user_id: int, like_count: int):
        """Publish post unliked event"""
        event_data = {
            "event_type": "post_unliked",
            "post_id": post_id,
            "user_id": user_id,
            "like_count": like_count,
            "timestamp": datetime.utcnow().isoformat(),
        }
        await self.publish_event(settings.KAFKA_TOPIC_POST_UNLIKED, post_id, event_data)

    async def publish_like_notification(
        self, owner_id: int, post_id: str, liker_id: int
    ):
        """Notify a post owner that someone liked their post"""
        event_data = {
            "event_type": "new_like",
            "user_id": owner_id,
            "title": "New like on your post",
            "post_id": post_id,
            "liker_id": liker_id,
            "timestamp": datetime.utcnow().isoformat(),
        }
        await self.publish_event(
            settings.KAFKA_TOPIC_NOTIFICATIONS, str(owner_id), event_data
        )


# Global producer instance
kafka_producer = KafkaProducerManager()


async def get_kafka_producer() -> KafkaProducerManager:
    """Dependency for getting Kafka producer instance"""
    return kafka_producer
