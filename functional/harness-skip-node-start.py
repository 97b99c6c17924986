#!/usr/bin/env python3
# Copyright (c) 2020 Bitcoin Association
# Distributed under the Open BSV software license, see the accompanying file LICENSE.

"""
Test: fixtures that start their own nodes.

1. @skip_node_start leaves the fixture without a running node.
2. Nodes started by the test get distinct data directories and become
   subscribed over ZMQ.
3. A stopped node can not be stopped again through the orchestrator.
"""

from bitcoind_harness.errors import UntrackedResourceError
from bitcoind_harness.test_framework import BitcoindTestFramework, skip_node_start
from bitcoind_harness.util import assert_equal, assert_raises, wait_until


class SkipNodeStartTest(BitcoindTestFramework):

    @skip_node_start
    def test_no_node_is_started(self):
        assert_equal(self.rpc_client0, None)
        assert_equal(len(self.orchestrator.processes), 0)
        assert_equal(len(self.coins), 0)

    @skip_node_start
    def test_start_and_stop_nodes(self):
        node0 = self.create_and_start_node(0)
        node1 = self.create_and_start_node(1)
        assert node0.datadir != node1.datadir
        assert_equal(sorted(self.zmq_service.subscribed_nodes()), [0, 1])
        assert_equal(node1.rpc_client.get_block_count(), 0)

        self.stop_bitcoind(node1)
        assert_equal(self.orchestrator.processes, (node0,))
        assert_raises(UntrackedResourceError, self.stop_bitcoind, node1)
        wait_until(lambda: self.zmq_service.subscribed_nodes() == [0], timeout=10, label="ZMQ unsubscribe of node 1")

    def test_node_started_by_setup(self):
        assert_equal(self.orchestrator.processes, (self.node0,))
        assert_equal([n.id for n in self.nodes_registry.get_nodes()], [0])


if __name__ == '__main__':
    SkipNodeStartTest().main()
