#!/usr/bin/env python3
# Copyright (c) 2020 Bitcoin Association
# Distributed under the Open BSV software license, see the accompanying file LICENSE.
"""Registered nodes, as seen by the system under test."""

from enum import Enum
import logging
import threading

from .eventbus import NodeAddedEvent, NodeDeletedEvent

logger = logging.getLogger("TestFramework.nodes")


class NodeStatus(Enum):
    CONNECTED = 0
    DISCONNECTED = 1


class Node():
    def __init__(self, id, host, port, username, password, remarks="", status=NodeStatus.CONNECTED,
                 zmq_notifications_endpoint=None):
        self.id = id
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.remarks = remarks
        self.status = status
        self.zmq_notifications_endpoint = zmq_notifications_endpoint

    def __repr__(self):
        return "Node(id=%r %s:%d status=%s)" % (self.id, self.host, int(self.port), self.status.name)

    @classmethod
    def from_bitcoind(cls, bitcoind):
        return cls(bitcoind.index, bitcoind.host, bitcoind.rpc_port, bitcoind.rpc_user, bitcoind.rpc_password,
                   "This is a mock node #%d" % bitcoind.index, NodeStatus.CONNECTED, bitcoind.zmq_endpoint)


class Nodes():
    """In-memory node registry. Adding or removing a node is announced on the event bus"""

    def __init__(self, bus):
        self._bus = bus
        self._nodes = {}
        self._lock = threading.Lock()

    def create_node(self, node):
        with self._lock:
            if node.id in self._nodes:
                raise ValueError("Node %r is already registered" % node.id)
            self._nodes[node.id] = node
        logger.debug("Registered %r", node)
        self._bus.publish(NodeAddedEvent(node))
        return node

    def get_node(self, node_id):
        with self._lock:
            return self._nodes.get(node_id)

    def get_nodes(self):
        with self._lock:
            return list(self._nodes.values())

    def delete_node(self, node_id):
        with self._lock:
            node = self._nodes.pop(node_id, None)
        if node is None:
            return False
        logger.debug("Removed %r", node)
        self._bus.publish(NodeDeletedEvent(node))
        return True
