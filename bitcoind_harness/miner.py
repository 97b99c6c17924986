#!/usr/bin/env python3
# Copyright (c) 2020 Bitcoin Association
# Distributed under the Open BSV software license, see the accompanying file LICENSE.
"""Mining blocks with caller supplied transactions on top of a node's chain.

bitcoind's generate RPC only mines transactions from its own mempool. Tests
that need a block with specific (possibly invalid) transactions build it here
and submit it with submitblock.
"""

import logging

from .blocktools import create_coinbase
from .errors import BlockRejectedError, ProofOfWorkExhaustedError
from .key import ECKey
from .primitives import CBlock, FromBytes

MAX_NONCE_ATTEMPTS = 10000


class BlockMiner():
    def __init__(self, rpc_client, max_nonce_attempts=MAX_NONCE_ATTEMPTS):
        self.rpc_client = rpc_client
        self.max_nonce_attempts = max_nonce_attempts
        self.log = logging.getLogger("TestFramework.miner")

    def mine_next_block(self, transactions, throw_on_error=True, parent_block_hash=None):
        """Mine a block containing transactions on top of parent_block_hash (default: chain tip)

        Returns tuple (block, submit_result)"""
        if parent_block_hash is None:
            parent_block_hash = self.rpc_client.get_best_block_hash()
        parent_block = FromBytes(CBlock(), self.rpc_client.get_block_as_bytes(parent_block_hash))
        parent_height = self.rpc_client.get_block_header(parent_block_hash)["height"]
        return self.mine_next_block_on(transactions, throw_on_error, parent_block, parent_height)

    def create_block(self, transactions, parent_block, parent_height):
        """Assemble (but do not solve) a block following parent_block"""
        parent_block.rehash()
        key = ECKey()
        key.generate()
        coinbase = create_coinbase(parent_height + 1, key.get_pubkey())

        block = CBlock()
        block.nVersion = parent_block.nVersion
        block.hashPrevBlock = parent_block.sha256
        block.nBits = parent_block.nBits
        block.nTime = parent_block.nTime + 1
        block.nNonce = 0
        block.vtx.append(coinbase)
        block.vtx.extend(transactions)
        block.update_merkle_root()
        return block

    def solve(self, block):
        for nonce in range(self.max_nonce_attempts):
            block.nNonce = nonce
            if block.check_proof_of_work():
                return block
        raise ProofOfWorkExhaustedError(self.max_nonce_attempts, block.nBits)

    def mine_next_block_on(self, transactions, throw_on_error, parent_block, parent_height):
        block = self.solve(self.create_block(transactions, parent_block, parent_height))
        self.log.debug("Submitting block %s at height %d with %d transaction(s)", block.hash, parent_height + 1,
                       len(block.vtx))

        submit_result = self.rpc_client.submit_block(block.serialize())
        if submit_result:
            if throw_on_error:
                raise BlockRejectedError(block.hash, submit_result)
            self.log.info("Block %s was rejected: %s", block.hash, submit_result)
        return block, submit_result
