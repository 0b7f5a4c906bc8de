"""
backend/slotengine/services/events.py

Event emitter: pushes slot events to a Redis queue for consumption
by whatever delivers real-time updates (not part of this service).

Queue: events:p2p (see SchedulingConfig.event_queue)
"""

import json
import time
import logging

from redis import Redis
from redis.exceptions import RedisError

from .slots.config import get_scheduling_config

logger = logging.getLogger(__name__)


def emit_event(redis: Redis | None, event_type: str, payload: dict) -> None:
    """
    Emit a slot event (best effort).

    Pushed to the configured Redis list. A missing client or a Redis
    failure never fails the operation that produced the event.
    """
    if redis is None:
        return
    queue = get_scheduling_config().event_queue
    event = {
        "type": event_type,
        **payload,
        "ts": int(time.time()),
    }
    try:
        redis.rpush(queue, json.dumps(event, default=str))
        logger.info(f"Event emitted: {event_type} → {queue}")
    except RedisError as e:
        logger.error(f"Failed to emit event {event_type}: {e}")
