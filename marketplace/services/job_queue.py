"""
Background job queue for inventory maintenance passes.

Jobs are JSON messages pushed onto a Redis list and consumed by
`flask inventory-worker`. Read endpoints and ledger writers only enqueue;
they never run a full reconciliation inline unless the queue is unavailable,
in which case the job runs synchronously so the request is not lost.
"""
import json
import logging
from typing import Any, Callable, Dict, Optional

import redis
from redis.exceptions import RedisError, ConnectionError, TimeoutError
from flask import Flask

from marketplace.database import get_session
from marketplace.services.reconciliation_service import InventoryScope, reconcile_product_availability
from marketplace.services.reservation_repair_service import (
    repair_over_reserved_cart, repair_over_reserved_carts
)

logger = logging.getLogger(__name__)

RECONCILE_INVENTORY = 'reconcile_inventory'
REPAIR_RESERVATIONS = 'repair_reservations'


def _run_reconcile(session, payload: dict) -> dict:
    scope = InventoryScope.from_dict(payload.get('scope'))
    return reconcile_product_availability(session, scope).to_dict()


def _run_repair(session, payload: dict) -> dict:
    if payload.get('product_id') is not None:
        return repair_over_reserved_cart(session, int(payload['product_id'])).to_dict()
    scope = InventoryScope.from_dict(payload.get('scope'))
    return repair_over_reserved_carts(session, scope).to_dict()


HANDLERS: Dict[str, Callable[[Any, dict], dict]] = {
    RECONCILE_INVENTORY: _run_reconcile,
    REPAIR_RESERVATIONS: _run_repair,
}


class JobQueue:
    """Redis list backed queue with an inline fallback."""

    def __init__(self, app: Optional[Flask] = None):
        self.client: Optional[redis.Redis] = None
        self._enabled: bool = False
        self._name: str = 'inventory-jobs'
        self._block_timeout: int = 5

        if app:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        """Initialize Redis client from Flask app config."""
        self._enabled = app.config.get('JOB_QUEUE_ENABLED', True)
        self._name = app.config.get('JOB_QUEUE_NAME', 'inventory-jobs')
        self._block_timeout = app.config.get('JOB_QUEUE_BLOCK_TIMEOUT', 5)

        if not self._enabled:
            logger.info("[JOBS] Job queue is DISABLED via config; jobs run inline")
            return

        redis_url = app.config.get('REDIS_URL', 'redis://redis:6379/0')
        try:
            self.client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_connect_timeout=3,
                socket_keepalive=True,
                health_check_interval=30
            )
            self.client.ping()
            logger.info(f"[JOBS] Redis queue '{self._name}' ready: {redis_url}")
        except (ConnectionError, TimeoutError, RedisError) as e:
            logger.warning(f"[JOBS] Redis connection failed: {e}. Jobs will run inline.")
            self._enabled = False
            self.client = None

    @property
    def is_async(self) -> bool:
        return self._enabled and self.client is not None

    def run(self, name: str, payload: dict, session=None) -> dict:
        """Execute a job in the current process."""
        handler = HANDLERS.get(name)
        if handler is None:
            raise ValueError(f'Unknown job: {name}')
        return handler(session or get_session(), payload)

    def enqueue(self, name: str, payload: Optional[dict] = None, session=None) -> Optional[dict]:
        """
        Queue a job for the worker.

        Returns:
            None when queued, or the job result when it had to run inline
        """
        payload = payload or {}
        if name not in HANDLERS:
            raise ValueError(f'Unknown job: {name}')

        if self.is_async:
            try:
                self.client.rpush(self._name, json.dumps({'name': name, 'payload': payload}))
                logger.info(f"[JOBS] Enqueued {name} {payload}")
                return None
            except RedisError as e:
                logger.warning(f"[JOBS] Enqueue failed ({e}); running {name} inline")

        return self.run(name, payload, session)

    @property
    def failed_queue_name(self) -> str:
        return f'{self._name}:failed'

    def _park_failed(self, raw: str, error: Exception) -> None:
        """Keep a failed message on the :failed list for inspection or replay."""
        try:
            self.client.rpush(self.failed_queue_name, json.dumps({'message': raw, 'error': str(error)}))
        except RedisError as e:
            logger.error(f"[JOBS] Could not park failed job {raw}: {e}")

    def work(self, max_jobs: Optional[int] = None) -> int:
        """
        Consume jobs until the queue stays empty for one block timeout
        or max_jobs have been processed. Returns the number processed.
        """
        if not self.is_async:
            raise RuntimeError('Job queue is not connected to Redis')

        processed = 0
        while max_jobs is None or processed < max_jobs:
            item = self.client.blpop(self._name, timeout=self._block_timeout)
            if item is None:
                break
            _, raw = item
            try:
                message = json.loads(raw)
                result = self.run(message['name'], message.get('payload') or {})
                logger.info(f"[JOBS] {message['name']} finished: {result}")
            except Exception as e:
                logger.error(f"[JOBS] Job failed: {raw} ({e})", exc_info=True)
                get_session().rollback()
                self._park_failed(raw, e)
            finally:
                get_session().remove()
            processed += 1
        return processed


_job_queue: Optional[JobQueue] = None


def init_job_queue(app: Flask) -> None:
    """Initialize job queue singleton."""
    global _job_queue
    _job_queue = JobQueue(app)
    app.extensions['job_queue'] = _job_queue


def get_job_queue() -> JobQueue:
    """Get job queue instance."""
    if _job_queue is None:
        raise RuntimeError("Job queue not initialized.")
    return _job_queue


def request_reconciliation(session, scope: InventoryScope) -> Optional[dict]:
    """Ask for availability reconciliation of a scope."""
    if scope.is_empty:
        return None
    return get_job_queue().enqueue(RECONCILE_INVENTORY, {'scope': scope.to_dict()}, session=session)
