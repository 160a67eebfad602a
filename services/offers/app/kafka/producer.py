"""
Kafka producer for offer events
"""
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from confluent_kafka import Producer
from app.config import settings

logger = logging.getLogger(__name__)


class OfferEventProducer:
    """Kafka producer for offer and product stock events"""

    def __init__(self):
        self.bootstrap_servers = settings.kafka_bootstrap_servers
        self.events_topic = settings.kafka_events_topic

        self.producer = Producer({
            'bootstrap.servers': self.bootstrap_servers,
            'client.id': 'offer-service',
        })

    def _publish_event(self, event_type: str, payload: Dict[str, Any], key: Optional[str] = None):
        """Internal method to publish event to Kafka"""
        event = {
            "type": event_type,
            "eventId": str(uuid.uuid4()),
            "createdAt": datetime.now(timezone.utc).isoformat(),
            **payload
        }

        # Keyed by product so every event of one product lands on one partition
        kafka_key = key or event.get("productId") or str(uuid.uuid4())

        self.producer.produce(
            self.events_topic,
            key=kafka_key,
            value=json.dumps(event, default=str).encode('utf-8'),
            callback=self._delivery_callback
        )
        self.producer.poll(0)

        logger.info(f"Published {event_type} event to {self.events_topic}")

    def _delivery_callback(self, err, msg):
        """Callback for message delivery"""
        if err:
            logger.error(f"Message delivery failed: {err}")
        else:
            logger.debug(f"Message delivered to {msg.topic()} [{msg.partition()}]")

    def publish_offer_upserted(self, offer: Dict[str, Any], created: bool):
        self._publish_event(
            "OFFER_UPSERTED",
            {"offer": offer, "created": created, "productId": str(offer["product_id"])},
        )

    def publish_offer_deleted(self, offer_id: str, product_id: str, detached_variant_offers: int = 0):
        self._publish_event(
            "OFFER_DELETED",
            {
                "offerId": offer_id,
                "productId": product_id,
                "detachedVariantOffers": detached_variant_offers,
            },
        )

    def publish_offer_converted(self, source_id: str, offer: Dict[str, Any]):
        self._publish_event(
            "OFFER_CONVERTED",
            {"replaced": source_id, "offer": offer, "productId": str(offer["product_id"])},
        )

    def publish_stock_recomputed(self, stock: Dict[str, Any]):
        self._publish_event(
            "PRODUCT_STOCK_RECOMPUTED",
            {
                "productId": str(stock["product_id"]),
                "availableQty": stock["available_qty"],
                "inStock": stock["in_stock"],
                "autoPrice": stock["auto_price"],
            },
        )

    def flush(self):
        """Flush pending messages"""
        remaining = self.producer.flush(settings.kafka_flush_timeout_seconds)
        if remaining:
            logger.warning(f"{remaining} event(s) still queued after flush timeout")


_event_producer_instance = None
_producer_initialization_failed = False


def get_event_producer() -> Optional[OfferEventProducer]:
    """Get or create the global event producer instance (lazy initialization)"""
    global _event_producer_instance, _producer_initialization_failed

    if _producer_initialization_failed:
        return None

    if _event_producer_instance is None:
        try:
            _event_producer_instance = OfferEventProducer()
            logger.info(f"Initialized Kafka producer for {_event_producer_instance.bootstrap_servers}")
        except Exception as e:
            logger.warning(f"Failed to initialize Kafka producer: {e}. Events will not be published.")
            _producer_initialization_failed = True
            return None
    return _event_producer_instance


class EventProducerProxy:
    """Publishes through the lazy producer; a Kafka failure never fails the request"""

    def _call(self, method: str, *args, **kwargs):
        producer = get_event_producer()
        if not producer:
            return
        try:
            getattr(producer, method)(*args, **kwargs)
        except Exception as e:
            logger.warning(f"Failed to publish event via {method}: {e}")

    def publish_offer_upserted(self, *args, **kwargs):
        self._call("publish_offer_upserted", *args, **kwargs)

    def publish_offer_deleted(self, *args, **kwargs):
        self._call("publish_offer_deleted", *args, **kwargs)

    def publish_offer_converted(self, *args, **kwargs):
        self._call("publish_offer_converted", *args, **kwargs)

    def publish_stock_recomputed(self, *args, **kwargs):
        self._call("publish_stock_recomputed", *args, **kwargs)

    def flush(self):
        self._call("flush")


event_producer = EventProducerProxy()
