#!/usr/bin/env python3
# Copyright (c) 2020 Bitcoin Association
# Distributed under the Open BSV software license, see the accompanying file LICENSE.
"""Bridge from bitcoind ZMQ notifications to event bus events.

For every registered node the service checks which ZMQ notifications the
node publishes, subscribes to them and announces ZMQSubscribedEvent.
hashblock notifications are published as NewBlockDiscoveredEvent and
invalidtx notifications as InvalidTxDetectedEvent.
"""

import http.client
import json
import logging
import struct
import threading

import zmq

from .authproxy import JSONRPCException
from .eventbus import (InvalidTxDetectedEvent, NewBlockDiscoveredEvent, NodeAddedEvent, NodeDeletedEvent,
                       ZMQSubscribedEvent, ZMQUnsubscribedEvent)
from .util import bytes_to_hex_str

logger = logging.getLogger("TestFramework.zmq")

TOPIC_HASHBLOCK = b"hashblock"
TOPIC_INVALIDTX = b"invalidtx"

# activezmqnotifications name -> topic
NOTIFICATIONS = {
    "pubhashblock": TOPIC_HASHBLOCK,
    "pubinvalidtx": TOPIC_INVALIDTX,
}
REQUIRED_NOTIFICATIONS = ("pubhashblock",)


class ZMQSubscriptionService():
    """Background worker that owns all ZMQ sockets.

    zmq sockets are not thread safe, so they are created, polled and closed
    only by the worker thread. Node registrations reach it through event
    bus subscriptions."""

    def __init__(self, bus, rpc_client_factory, context=None, poll_timeout_ms=100):
        self._bus = bus
        self._rpc_client_factory = rpc_client_factory
        self._own_context = context is None
        self._context = context if context is not None else zmq.Context()
        self._poll_timeout_ms = poll_timeout_ms
        self._sockets = {}
        self._stop = threading.Event()
        self._thread = None
        self._node_added = None
        self._node_deleted = None

    @property
    def is_running(self):
        return self._thread is not None and self._thread.is_alive()

    def subscribed_nodes(self):
        return list(self._sockets.keys())

    def start(self):
        if self.is_running:
            return
        self._stop.clear()
        self._node_added = self._bus.subscribe(NodeAddedEvent)
        self._node_deleted = self._bus.subscribe(NodeDeletedEvent)
        self._thread = threading.Thread(target=self._run, name="ZMQSubscriptionService", daemon=True)
        self._thread.start()

    def stop(self, timeout=10):
        if self._thread is None:
            return
        self._stop.set()
        self._thread.join(timeout)
        self._thread = None
        self._bus.try_unsubscribe(self._node_added)
        self._bus.try_unsubscribe(self._node_deleted)
        if self._own_context:
            self._context.term()

    def _run(self):
        poller = zmq.Poller()
        try:
            while not self._stop.is_set():
                self._process_node_events(poller)
                if not self._sockets:
                    self._stop.wait(self._poll_timeout_ms / 1000)
                    continue
                ready = dict(poller.poll(self._poll_timeout_ms))
                for node_id, socket in list(self._sockets.items()):
                    if socket in ready:
                        self._handle_message(node_id, socket.recv_multipart())
        except Exception:
            logger.exception("ZMQ subscription service stopped unexpectedly")
        finally:
            for node_id in list(self._sockets.keys()):
                self._close_socket(node_id, poller)

    def _process_node_events(self, poller):
        while True:
            event = self._node_added.try_read()
            if event is None:
                break
            try:
                self._subscribe_node(event.node, poller)
            except (KeyError, TypeError, zmq.ZMQError):
                logger.exception("Unable to subscribe to ZMQ notifications of node %r", event.node.id)
        while True:
            event = self._node_deleted.try_read()
            if event is None:
                break
            if event.node.id in self._sockets:
                self._close_socket(event.node.id, poller)
                self._bus.publish(ZMQUnsubscribedEvent(event.node.id))

    def _subscribe_node(self, node, poller):
        rpc_client = self._rpc_client_factory(node)
        try:
            active = rpc_client.active_zmq_notifications()
        except (JSONRPCException, OSError, http.client.HTTPException) as e:
            logger.error("Unable to read active ZMQ notifications of node %r: %s", node.id, e)
            return
        finally:
            rpc_client.close()

        endpoints = set()
        topics = set()
        found = set()
        for notification in active:
            topic = NOTIFICATIONS.get(notification["notification"])
            if topic is not None:
                found.add(notification["notification"])
                topics.add(topic)
                endpoints.add(notification["address"])
        missing = [n for n in REQUIRED_NOTIFICATIONS if n not in found]
        if missing:
            logger.error("Node %r does not publish required ZMQ notifications %s, not subscribing", node.id, missing)
            return

        socket = self._context.socket(zmq.SUB)
        socket.setsockopt(zmq.LINGER, 0)
        try:
            for topic in sorted(topics):
                socket.setsockopt(zmq.SUBSCRIBE, topic)
            for endpoint in sorted(endpoints):
                socket.connect(endpoint)
        except zmq.ZMQError:
            socket.close()
            raise
        poller.register(socket, zmq.POLLIN)
        self._sockets[node.id] = socket
        logger.info("Subscribed to ZMQ notifications of node %r on %s", node.id, ", ".join(sorted(endpoints)))
        self._bus.publish(ZMQSubscribedEvent(node.id))

    def _close_socket(self, node_id, poller):
        socket = self._sockets.pop(node_id)
        poller.unregister(socket)
        socket.close()

    def _handle_message(self, node_id, msg):
        topic = msg[0]
        body = msg[1]
        sequence = struct.unpack('<I', msg[-1])[-1] if len(msg) > 2 else None
        logger.debug("ZMQ %s #%s from node %r", topic.decode('ascii', 'replace'), sequence, node_id)
        if topic == TOPIC_HASHBLOCK:
            self._bus.publish(NewBlockDiscoveredEvent(node_id, bytes_to_hex_str(body)))
        elif topic == TOPIC_INVALIDTX:
            try:
                payload = json.loads(body.decode('utf8'))
            except ValueError as e:
                logger.warning("Ignoring malformed invalidtx notification from node %r: %s", node_id, e)
                return
            self._bus.publish(InvalidTxDetectedEvent(node_id, payload))
