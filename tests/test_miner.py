#!/usr/bin/env python3
# Copyright (c) 2020 Bitcoin Association
# Distributed under the Open BSV software license, see the accompanying file LICENSE.

import pytest

from bitcoind_harness.blocktools import REGTEST_NBITS, create_block, create_coinbase
from bitcoind_harness.errors import BlockRejectedError, ProofOfWorkExhaustedError
from bitcoind_harness.miner import BlockMiner
from bitcoind_harness.primitives import COutPoint, CBlock, CTransaction, CTxIn, CTxOut, FromBytes, hash256, uint256_from_str
from bitcoind_harness.script import CScript, OP_TRUE


class FakeNode():
    """Chain of a single solved block, records submitted blocks"""

    def __init__(self, submit_result=None, height=150):
        self.parent = create_block(0x1234, create_coinbase(height), nTime=1600000000, nBits=REGTEST_NBITS)
        self.parent.nVersion = 0x20000000
        BlockMiner(self).solve(self.parent)
        self.height = height
        self.submit_result = submit_result
        self.submitted = []

    def get_best_block_hash(self):
        return self.parent.hash

    def get_block_as_bytes(self, block_hash):
        assert block_hash == self.parent.hash
        return self.parent.serialize()

    def get_block_header(self, block_hash):
        assert block_hash == self.parent.hash
        return {"hash": self.parent.hash, "height": self.height}

    def submit_block(self, block_bytes):
        self.submitted.append(FromBytes(CBlock(), block_bytes))
        return self.submit_result


def make_transaction(n):
    tx = CTransaction()
    tx.vin.append(CTxIn(COutPoint(0xabcdef, n), b"", 0xffffffff))
    tx.vout.append(CTxOut(1000, CScript([OP_TRUE])))
    tx.rehash()
    return tx


def test_mined_block_follows_parent():
    node = FakeNode()
    transactions = [make_transaction(0), make_transaction(1)]

    block, result = BlockMiner(node).mine_next_block(transactions)

    assert result is None
    assert block.hashPrevBlock == node.parent.sha256
    assert block.nTime == node.parent.nTime + 1
    assert block.nBits == node.parent.nBits
    assert block.nVersion == node.parent.nVersion
    assert block.vtx[0].is_coinbase()
    assert [tx.hash for tx in block.vtx[1:]] == [tx.hash for tx in transactions]
    assert block.hashMerkleRoot == block.calc_merkle_root()
    assert block.check_proof_of_work()

    submitted = node.submitted[0]
    submitted.rehash()
    assert submitted.hash == block.hash


def test_coinbase_commits_to_next_height():
    node = FakeNode(height=200)
    block, _ = BlockMiner(node).mine_next_block([])

    expected_height_push = create_coinbase(201).vin[0].scriptSig
    assert block.vtx[0].vin[0].scriptSig == expected_height_push
    assert len(block.vtx) == 1


def test_coinbase_pays_fresh_key():
    node = FakeNode()
    miner = BlockMiner(node)
    first, _ = miner.mine_next_block([])
    second, _ = miner.mine_next_block([])
    assert first.vtx[0].vout[0].scriptPubKey != second.vtx[0].vout[0].scriptPubKey


def test_explicit_parent_hash_is_used():
    node = FakeNode()
    node.get_best_block_hash = None
    block, _ = BlockMiner(node).mine_next_block([], parent_block_hash=node.parent.hash)
    assert block.hashPrevBlock == node.parent.sha256


def test_rejected_block_raises_with_reason():
    node = FakeNode(submit_result="bad-txns-inputs-missingorspent")

    with pytest.raises(BlockRejectedError) as exc_info:
        BlockMiner(node).mine_next_block([make_transaction(0)])

    assert exc_info.value.reason == "bad-txns-inputs-missingorspent"
    assert len(node.submitted) == 1


def test_rejected_block_reason_is_returned_when_not_throwing():
    node = FakeNode(submit_result="bad-txns-inputs-missingorspent")

    block, result = BlockMiner(node).mine_next_block([make_transaction(0)], throw_on_error=False)

    assert result == "bad-txns-inputs-missingorspent"
    assert block.hashPrevBlock == node.parent.sha256


def test_unsolvable_block_is_not_submitted():
    # mainnet genesis difficulty, out of reach for 100 attempts
    node = FakeNode()
    node.parent.nBits = 0x1d00ffff

    with pytest.raises(ProofOfWorkExhaustedError) as exc_info:
        BlockMiner(node, max_nonce_attempts=100).mine_next_block_on([], True, node.parent, node.height)

    assert exc_info.value.attempts == 100
    assert exc_info.value.bits == 0x1d00ffff
    assert node.submitted == []


def test_merkle_root_uses_current_transaction_contents():
    node = FakeNode()
    transactions = [make_transaction(0), make_transaction(1)]
    # changed after make_transaction cached its hash
    transactions[1].vout[0].nValue = 2000

    block, _ = BlockMiner(node).mine_next_block(transactions)

    txids = [hash256(tx.serialize()) for tx in block.vtx]
    left = hash256(txids[0] + txids[1])
    right = hash256(txids[2] + txids[2])
    assert block.hashMerkleRoot == uint256_from_str(hash256(left + right))
    assert transactions[1].hash == hash256(transactions[1].serialize())[::-1].hex()
    assert node.submitted[0].hashMerkleRoot == block.hashMerkleRoot
