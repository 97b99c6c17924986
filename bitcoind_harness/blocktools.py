#!/usr/bin/env python3
# Copyright (c) 2015-2016 The Bitcoin Core developers
# Copyright (c) 2020 Bitcoin Association
# Distributed under the Open BSV software license, see the accompanying file LICENSE.
"""Utilities for manipulating blocks and transactions."""

import time

from .primitives import (COIN, COutPoint, CBlock, CTransaction, CTxIn, CTxOut, ser_string)
from .script import (CScript, SignatureHashForkId, OP_CHECKSIG, OP_TRUE, SIGHASH_ALL, SIGHASH_FORKID)

# Regtest difficulty
REGTEST_NBITS = 0x207fffff
# Regtest halving interval
REGTEST_SUBSIDY_HALVING_INTERVAL = 150


# Create a block (with regtest difficulty)
def create_block(hashprev, coinbase, nTime=None, nBits=REGTEST_NBITS):
    block = CBlock()
    if nTime is None:
        block.nTime = int(time.time() + 600)
    else:
        block.nTime = nTime
    block.hashPrevBlock = hashprev
    block.nBits = nBits
    block.vtx.append(coinbase)
    block.hashMerkleRoot = block.calc_merkle_root()
    block.calc_sha256()
    return block


def serialize_script_num(value):
    r = bytearray(0)
    if value == 0:
        return r
    neg = value < 0
    absvalue = -value if neg else value
    while (absvalue):
        r.append(int(absvalue & 0xff))
        absvalue >>= 8
    if r[-1] & 0x80:
        r.append(0x80 if neg else 0)
    elif neg:
        r[-1] |= 0x80
    return r


def block_subsidy(height, outputValue=50):
    halvings = int(height / REGTEST_SUBSIDY_HALVING_INTERVAL)
    if halvings >= 64:
        return 0
    return (outputValue * COIN) >> halvings


# Create a coinbase transaction, assuming no miner fees.
# If pubkey is passed in, the coinbase output will be a P2PK output;
# otherwise an anyone-can-spend output.
def create_coinbase(height, pubkey=None, outputValue=50):
    coinbase = CTransaction()
    coinbase.vin.append(CTxIn(COutPoint(0, 0xffffffff),
                              ser_string(serialize_script_num(height)), 0xffffffff))
    coinbaseoutput = CTxOut()
    coinbaseoutput.nValue = block_subsidy(height, outputValue)
    if (pubkey != None):
        coinbaseoutput.scriptPubKey = CScript([pubkey, OP_CHECKSIG])
    else:
        coinbaseoutput.scriptPubKey = CScript([OP_TRUE])
    coinbase.vout = [coinbaseoutput]
    coinbase.calc_sha256()
    return coinbase


class TxCreator:
    """
    Provides helpers that simplify creating signed transactions spending P2PKH outputs.
    """

    def __init__(self, private_key):
        self.private_key = private_key
        self.public_key = private_key.get_pubkey()

    def sign_tx_p2pkh_input(self, tx, n, spend_txout, sighash_flags=SIGHASH_ALL, no_rehash=False):
        """
        Sign input n in transaction tx by setting its scriptSig member

        All members in tx that affect the signature must be set.
        E.g: If sighash_flags=SIGHASH_ALL, everything (except scriptSig) must be set and
             transaction cannot be modified later without invalidating the signature.

        Transaction output spend_txout must be a standard P2PKH with its public key corresponding to
        the private key of this creator. SIGHASH_FORKID is automatically added as required by BSV nodes.
        """

        assert n < len(tx.vin)

        sighash_flags |= SIGHASH_FORKID

        sighash = SignatureHashForkId(spend_txout.scriptPubKey, tx, n, sighash_flags, spend_txout.nValue)

        tx.vin[n].scriptSig = CScript([
            self.private_key.sign(sighash) + bytes(bytearray([sighash_flags])),
            self.public_key
        ])

        if not no_rehash:
            tx.rehash()

    def create_signed_transaction(self, coins, scriptPubKey, *, num_outputs=1, fee=500):
        """
        Create a transaction spending all given coins and splitting their value (minus fee)
        evenly over num_outputs outputs locked with scriptPubKey. Any remainder of the split
        goes to the last output.
        """
        coins = list(coins)
        assert coins, "At least one coin is needed"
        total = sum(c.value for c in coins)
        amount = total - fee
        assert amount >= num_outputs, "Coins do not cover the fee"

        tx = CTransaction()
        for coin in coins:
            tx.vin.append(CTxIn(coin.outpoint, b"", 0xffffffff))
        per_output = amount // num_outputs
        for i in range(num_outputs):
            value = per_output if i < num_outputs - 1 else amount - per_output * (num_outputs - 1)
            tx.vout.append(CTxOut(value, scriptPubKey))

        for i, coin in enumerate(coins):
            self.sign_tx_p2pkh_input(tx, i, coin.txout, no_rehash=True)
        tx.rehash()
        return tx
