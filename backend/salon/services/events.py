"""
backend/salon/services/events.py

Event emitter: pushes events to a Redis queue for the notification consumer
(confirmation, cancellation and reminder mails are sent outside this service).

Queue:
- events:p2p: instant delivery to one customer
"""

import json
import time
import logging

from redis import Redis

from ..redis_client import redis_client

logger = logging.getLogger(__name__)

P2P_QUEUE = "events:p2p"


def emit_event(event_type: str, payload: dict, redis: Redis | None = None) -> None:
    """
    Emit a p2p event (instant delivery).

    Pushed to Redis list `events:p2p`. Never raises: a lost notification must
    not fail the reservation that triggered it.
    """
    client = redis if redis is not None else redis_client
    event = {
        "type": event_type,
        **payload,
        "ts": int(time.time()),
    }
    try:
        client.rpush(P2P_QUEUE, json.dumps(event, default=str))
        logger.info(f"Event emitted: {event_type} → {P2P_QUEUE}")
    except Exception as e:
        logger.error(f"Failed to emit event {event_type}: {e}")
