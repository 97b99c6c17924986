#!/usr/bin/env python3
# Copyright (c) 2020 Bitcoin Association
# Distributed under the Open BSV software license, see the accompanying file LICENSE.
"""In-process publish/subscribe event bus and helpers to wait for events.

Events are delivered by a single dispatcher thread to every subscription
registered for the exact type of the event. A test that triggers an
asynchronous effect subscribes first, triggers, and then waits for an
event matching a predicate:

    synchronizer.drain_idle()
    with synchronizer.subscription(NewBlockAvailableInDB) as subscription:
        block_hash = rpc_client.generate(1)[0]
        synchronizer.wait_for(subscription, "Waiting for block %s" % block_hash,
                              lambda evt: evt.block_hash == block_hash)
"""

from collections import defaultdict
import contextlib
import logging
import queue
import threading
import time

from .errors import SynchronizationTimeoutError, WaitCancelledError

DEFAULT_WAIT_TIMEOUT = 60

logger = logging.getLogger("TestFramework.eventbus")


class Event():
    def __eq__(self, other):
        return type(self) == type(other) and vars(self) == vars(other)

    def __repr__(self):
        return "%s(%s)" % (type(self).__name__, " ".join("%s=%r" % kv for kv in sorted(vars(self).items())))


class ZMQSubscribedEvent(Event):
    def __init__(self, node_id):
        self.node_id = node_id


class ZMQUnsubscribedEvent(Event):
    def __init__(self, node_id):
        self.node_id = node_id


class NodeAddedEvent(Event):
    def __init__(self, node):
        self.node = node


class NodeDeletedEvent(Event):
    def __init__(self, node):
        self.node = node


class NewBlockDiscoveredEvent(Event):
    def __init__(self, node_id, block_hash):
        self.node_id = node_id
        self.block_hash = block_hash


class NewBlockAvailableInDB(Event):
    def __init__(self, block_hash):
        self.block_hash = block_hash


class InvalidTxDetectedEvent(Event):
    def __init__(self, node_id, payload):
        self.node_id = node_id
        self.payload = payload


class EventBusSubscription():
    """Registration for events of one type. Delivered events queue up until read."""

    def __init__(self, bus, event_type):
        self.event_type = event_type
        self.is_active = True
        self._bus = bus
        self._queue = queue.Queue()
        self._wait_lock = threading.Lock()

    def __repr__(self):
        return "EventBusSubscription(%s active=%s)" % (self.event_type.__name__, self.is_active)

    def _deliver(self, event):
        self._queue.put(event)

    def read(self, timeout=None):
        """Return the next delivered event. Raises queue.Empty on timeout"""
        return self._queue.get(timeout=timeout)

    def try_read(self):
        try:
            return self._queue.get_nowait()
        except queue.Empty:
            return None


_STOP = object()


class EventBus():
    def __init__(self):
        self._subscriptions = defaultdict(list)
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._in_flight = 0
        self._queue = queue.Queue()
        self._thread = None

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, *exc_info):
        self.stop()

    @property
    def is_running(self):
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        if self.is_running:
            return
        self._thread = threading.Thread(target=self._run, name="EventBus", daemon=True)
        self._thread.start()

    def stop(self, timeout=10):
        if not self.is_running:
            return
        self._queue.put(_STOP)
        self._thread.join(timeout)
        self._thread = None

    def publish(self, event):
        with self._lock:
            self._in_flight += 1
        self._queue.put(event)

    def _run(self):
        while True:
            event = self._queue.get()
            if event is _STOP:
                break
            try:
                self._dispatch(event)
            finally:
                with self._idle:
                    self._in_flight -= 1
                    if self._in_flight == 0:
                        self._idle.notify_all()

    def _dispatch(self, event):
        with self._lock:
            subscriptions = list(self._subscriptions.get(type(event), ()))
        logger.debug("Delivering %r to %d subscriber(s)", event, len(subscriptions))
        for subscription in subscriptions:
            subscription._deliver(event)

    def subscribe(self, event_type):
        subscription = EventBusSubscription(self, event_type)
        with self._lock:
            self._subscriptions[event_type].append(subscription)
        return subscription

    def try_unsubscribe(self, subscription):
        """Remove subscription. Returns False if it was not registered"""
        with self._lock:
            subscriptions = self._subscriptions.get(subscription.event_type, [])
            if subscription not in subscriptions:
                return False
            subscriptions.remove(subscription)
            if not subscriptions:
                del self._subscriptions[subscription.event_type]
            subscription.is_active = False
            return True

    def subscription_count(self, event_type=None):
        with self._lock:
            if event_type is not None:
                return len(self._subscriptions.get(event_type, ()))
            return sum(len(s) for s in self._subscriptions.values())

    def wait_until_idle(self, timeout=None):
        """Block until every published event has been delivered"""
        with self._idle:
            if not self._idle.wait_for(lambda: self._in_flight == 0, timeout):
                raise SynchronizationTimeoutError("Waiting for event bus to become idle", timeout)


class EventSynchronizer():
    """Waits on event bus subscriptions on behalf of the test thread"""

    def __init__(self, bus, default_timeout=DEFAULT_WAIT_TIMEOUT, poll_interval=0.1):
        self.bus = bus
        self.default_timeout = default_timeout
        self.poll_interval = poll_interval

    def subscribe(self, event_type):
        return self.bus.subscribe(event_type)

    def unsubscribe(self, subscription):
        if not self.bus.try_unsubscribe(subscription):
            logger.warning("%r was already unsubscribed", subscription)

    @contextlib.contextmanager
    def subscription(self, event_type):
        """Subscribe for the duration of the with block"""
        subscription = self.subscribe(event_type)
        try:
            yield subscription
        finally:
            self.unsubscribe(subscription)

    def drain_idle(self, timeout=None):
        """Make sure all old events (such as activating ZMQ subscriptions) are processed"""
        self.bus.wait_until_idle(self.default_timeout if timeout is None else timeout)

    def wait_for(self, subscription, description, predicate=None, timeout=None, cancel=None):
        """Return the first event on subscription for which predicate is true.

        Events not matching the predicate are discarded. Raises
        SynchronizationTimeoutError when timeout elapses and
        WaitCancelledError when the cancel event (threading.Event) is set."""
        if timeout is None:
            timeout = self.default_timeout
        if not subscription.is_active:
            raise ValueError("Can not wait on inactive %r" % subscription)
        if not subscription._wait_lock.acquire(blocking=False):
            raise RuntimeError("Another wait is already pending on %r" % subscription)
        try:
            logger.debug(description)
            deadline = time.monotonic() + timeout
            while True:
                if cancel is not None and cancel.is_set():
                    raise WaitCancelledError(description)
                remaining = deadline - time.monotonic()
                try:
                    # events already queued are returned even after the deadline
                    event = subscription.read(timeout=max(0, min(remaining, self.poll_interval)))
                except queue.Empty:
                    if remaining <= 0:
                        raise SynchronizationTimeoutError(description, timeout)
                    continue
                if predicate is None or predicate(event):
                    return event
                logger.debug("Ignoring %r while %s", event, description)
        finally:
            subscription._wait_lock.release()

    def wait_for_event(self, event_type, description, predicate=None, timeout=None, trigger=None, cancel=None):
        """Subscribe to event_type, call trigger and wait for a matching event.

        Pending events are drained first so that the subscription only sees
        events caused by trigger. The subscription is always removed."""
        self.drain_idle()
        with self.subscription(event_type) as subscription:
            if trigger is not None:
                trigger()
            return self.wait_for(subscription, description, predicate, timeout, cancel)
