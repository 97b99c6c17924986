#!/usr/bin/env python3
# Copyright (c) 2020 Bitcoin Association
# Distributed under the Open BSV software license, see the accompanying file LICENSE.

"""
Test: chain setup funds the test address and coins can be spent in mined blocks.

1. After setup the fixture holds coin_count coins of 0.1 BSV paying the test address.
2. A coin spent with TxCreator is mined into a new block on top of the tip.
3. Blocks generated by the node are announced over ZMQ and (by a stand-in
   for the system under test) as NewBlockAvailableInDB.
"""

import queue
import threading

from bitcoind_harness.blocktools import TxCreator
from bitcoind_harness.chain import COIN_AMOUNT, get_test_key, get_test_script_pubkey
from bitcoind_harness.eventbus import NewBlockAvailableInDB, NewBlockDiscoveredEvent
from bitcoind_harness.primitives import COIN, CBlock, FromBytes
from bitcoind_harness.test_framework import BitcoindTestFramework
from bitcoind_harness.util import assert_equal, assert_greater_than, assert_raises_rpc_error


class BlockStoreStub():
    """Marks every block announced over ZMQ as stored"""

    def __init__(self, bus):
        self.bus = bus
        self.stored = []
        self._subscription = bus.subscribe(NewBlockDiscoveredEvent)
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def _run(self):
        while not self._stop.is_set():
            try:
                event = self._subscription.read(timeout=0.1)
            except queue.Empty:
                continue
            self.stored.append(event.block_hash)
            self.bus.publish(NewBlockAvailableInDB(event.block_hash))

    def stop(self):
        self._stop.set()
        self._thread.join()
        self.bus.try_unsubscribe(self._subscription)


class ChainSetupTest(BitcoindTestFramework):

    def setup(self, test_name):
        super().setup(test_name)
        self.block_store = BlockStoreStub(self.bus)

    def teardown(self):
        if getattr(self, "block_store", None) is not None:
            self.block_store.stop()
            self.block_store = None
        super().teardown()

    def test_coins_are_available(self):
        assert_equal(len(self.coins), self.config.coin_count)
        assert_equal(self.rpc_client0.get_block_count(), self.config.initial_blocks + 1)
        script_pubkey = get_test_script_pubkey()
        for coin in self.coins:
            assert_equal(coin.value, int(COIN_AMOUNT * COIN))
            assert_equal(coin.script_pubkey, script_pubkey)

    def test_spend_coin_in_mined_block(self):
        tip = self.rpc_client0.get_best_block_hash()
        height = self.rpc_client0.get_block_count()

        tx = TxCreator(get_test_key()).create_signed_transaction([self.coins.dequeue()], get_test_script_pubkey())
        block, result = self.mine_next_block([tx])

        assert_equal(result, None)
        assert_equal(self.rpc_client0.get_best_block_hash(), block.hash)
        assert_equal(self.rpc_client0.get_block_count(), height + 1)
        mined = FromBytes(CBlock(), self.rpc_client0.get_block_as_bytes(block.hash))
        mined.rehash()
        assert_equal(mined.hashPrevBlock, int(tip, 16))
        assert_equal([t.hash for t in mined.vtx[1:]], [tx.hash])
        assert_greater_than(mined.vtx[0].vout[0].nValue, 0)

        # unknown transaction
        assert_raises_rpc_error(-5, None, self.rpc_client0.get_raw_transaction_as_bytes, "00" * 32)

    def test_generated_block_is_stored(self):
        block_hash = self.generate_block_and_wait_for_it_to_be_inserted_in_db()
        assert_equal(self.rpc_client0.get_best_block_hash(), block_hash)
        assert block_hash in self.block_store.stored


if __name__ == '__main__':
    ChainSetupTest().main()
