#!/usr/bin/env python3
# Copyright (c) 2020 Bitcoin Association
# Distributed under the Open BSV software license, see the accompanying file LICENSE.

"""
Test: blocks the node refuses are reported by BlockMiner.

A block with two transactions spending the same coin is invalid:
1. With throw_on_error (default) BlockRejectedError carries the reason.
2. With throw_on_error=False the reason is returned and the tip is unchanged.
"""

from bitcoind_harness.blocktools import TxCreator
from bitcoind_harness.chain import get_test_key, get_test_script_pubkey
from bitcoind_harness.errors import BlockRejectedError
from bitcoind_harness.test_framework import BitcoindTestFramework
from bitcoind_harness.util import assert_equal, assert_raises


class BlockRejectedTest(BitcoindTestFramework):

    def create_double_spend(self):
        coin = self.coins.dequeue()
        tx_creator = TxCreator(get_test_key())
        tx1 = tx_creator.create_signed_transaction([coin], get_test_script_pubkey(), fee=500)
        tx2 = tx_creator.create_signed_transaction([coin], get_test_script_pubkey(), fee=1000)
        return [tx1, tx2]

    def test_rejected_block_raises(self):
        tip = self.rpc_client0.get_best_block_hash()
        assert_raises(BlockRejectedError, self.mine_next_block, self.create_double_spend())
        assert_equal(self.rpc_client0.get_best_block_hash(), tip)

    def test_rejected_block_returns_reason(self):
        tip = self.rpc_client0.get_best_block_hash()
        block, result = self.mine_next_block(self.create_double_spend(), throw_on_error=False)
        self.log.info("Block %s rejected with %s", block.hash, result)
        assert result
        assert_equal(self.rpc_client0.get_best_block_hash(), tip)


if __name__ == '__main__':
    BlockRejectedTest().main()
