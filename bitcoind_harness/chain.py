#!/usr/bin/env python3
# Copyright (c) 2020 Bitcoin Association
# Distributed under the Open BSV software license, see the accompanying file LICENSE.
"""Setting up a fresh regtest chain and collecting coins for tests to spend."""

from collections import deque
from decimal import Decimal
import logging

from .address import address_to_scriptpubkey, scriptpubkey_to_address
from .config import DEFAULT_COIN_COUNT, DEFAULT_INITIAL_BLOCKS
from .errors import FundingNotFoundError
from .key import key_from_wif
from .primitives import COutPoint, CTransaction, FromBytes

# Private key and corresponding address used for testing
TEST_PRIVATE_KEY_WIF = "cNpxQaWe36eHdfU3fo2jHVkWXVt5CakPDrZSYguoZiRHSz9rq8nF"
TEST_ADDRESS = "msRNSw5hHA1W1jXXadxMDMQCErX1X8whTk"

# Amount sent to the test address for each coin
COIN_AMOUNT = Decimal("0.1")


class Coin():
    """Output of tx with index n, earmarked for spending by a test"""

    def __init__(self, tx, n):
        assert n < len(tx.vout)
        tx.calc_sha256()
        self.tx = tx
        self.n = n

    @property
    def txout(self):
        return self.tx.vout[self.n]

    @property
    def value(self):
        return self.txout.nValue

    @property
    def script_pubkey(self):
        return self.txout.scriptPubKey

    @property
    def outpoint(self):
        return COutPoint(self.tx.sha256, self.n)

    def __eq__(self, other):
        return isinstance(other, Coin) and self.outpoint == other.outpoint

    def __hash__(self):
        return hash((self.tx.sha256, self.n))

    def __repr__(self):
        return "Coin(txid=%s n=%d value=%d)" % (self.tx.hash, self.n, self.value)


class CoinQueue():
    """FIFO of coins owned by one test fixture. The same coin can not be queued twice"""

    def __init__(self):
        self._coins = deque()
        self._seen = set()

    def __len__(self):
        return len(self._coins)

    def __iter__(self):
        return iter(list(self._coins))

    def enqueue(self, coin):
        if coin in self._seen:
            raise ValueError("%r was already queued" % coin)
        self._seen.add(coin)
        self._coins.append(coin)

    def dequeue(self):
        if not self._coins:
            raise IndexError("No coins available")
        return self._coins.popleft()


class ChainBootstrapper():
    def __init__(self, coins=None, *, initial_blocks=DEFAULT_INITIAL_BLOCKS, coin_count=DEFAULT_COIN_COUNT,
                 test_address=TEST_ADDRESS, coin_amount=COIN_AMOUNT):
        self.coins = coins if coins is not None else CoinQueue()
        self.initial_blocks = initial_blocks
        self.coin_count = coin_count
        self.test_address = test_address
        self.coin_amount = coin_amount
        self.log = logging.getLogger("TestFramework.chain")

    def get_coin(self, rpc_client):
        """Send funds to the test address and return the output paying it.

        The first matching output of the funding transaction is used."""
        txid = rpc_client.send_to_address(self.test_address, self.coin_amount)
        tx = FromBytes(CTransaction(), rpc_client.get_raw_transaction_as_bytes(txid))
        found_index = None
        for i, txout in enumerate(tx.vout):
            if scriptpubkey_to_address(txout.scriptPubKey) == self.test_address:
                found_index = i
                break

        if found_index is None:
            raise FundingNotFoundError(txid, self.test_address)

        return Coin(tx, found_index)

    def get_coins(self, rpc_client, number):
        coins = [self.get_coin(rpc_client) for _ in range(number)]

        # Mine coins into a block
        rpc_client.generate(1)

        return coins

    def setup_chain(self, rpc_client):
        """Sets up a new chain, gets some coins and stores them in coins, so that they can be consumed by test"""
        self.log.info("Setting up test chain")
        rpc_client.generate(self.initial_blocks)
        for coin in self.get_coins(rpc_client, self.coin_count):
            self.coins.enqueue(coin)
        self.log.debug("%d coins available", len(self.coins))


def get_test_key():
    return key_from_wif(TEST_PRIVATE_KEY_WIF)


def get_test_script_pubkey():
    return address_to_scriptpubkey(TEST_ADDRESS)
