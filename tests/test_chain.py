#!/usr/bin/env python3
# Copyright (c) 2020 Bitcoin Association
# Distributed under the Open BSV software license, see the accompanying file LICENSE.

from decimal import Decimal
import os

import pytest

from bitcoind_harness.address import address_to_scriptpubkey, keyhash_to_p2pkh
from bitcoind_harness.chain import TEST_ADDRESS, ChainBootstrapper, Coin, CoinQueue
from bitcoind_harness.errors import FundingNotFoundError
from bitcoind_harness.primitives import COIN, COutPoint, CTransaction, CTxIn, CTxOut


def other_address():
    return keyhash_to_p2pkh(os.urandom(20))


class FakeWallet():
    """Answers sendtoaddress with a transaction paying amount to address plus change"""

    def __init__(self, change_first=True, pay_address=True):
        self.change_first = change_first
        self.pay_address = pay_address
        self.transactions = {}
        self.generated = []
        self.calls = []

    def send_to_address(self, address, amount):
        self.calls.append("send_to_address")
        tx = CTransaction()
        tx.vin.append(CTxIn(COutPoint(len(self.transactions) + 1, 0), b"", 0xffffffff))
        payment = CTxOut(int(amount * COIN), address_to_scriptpubkey(address if self.pay_address else other_address()))
        change = CTxOut(49 * COIN, address_to_scriptpubkey(other_address()))
        tx.vout = [change, payment] if self.change_first else [payment, change]
        tx.rehash()
        self.transactions[tx.hash] = tx
        return tx.hash

    def get_raw_transaction_as_bytes(self, txid):
        return self.transactions[txid].serialize()

    def generate(self, n):
        self.calls.append("generate")
        self.generated.append(n)
        return ["%064x" % i for i in range(n)]


def make_coin(n=0):
    tx = CTransaction()
    tx.vin.append(CTxIn(COutPoint(0x1234, n), b"", 0xffffffff))
    tx.vout = [CTxOut(COIN, address_to_scriptpubkey(TEST_ADDRESS)) for _ in range(3)]
    return Coin(tx, n)


def test_get_coin_finds_output_paying_test_address():
    wallet = FakeWallet(change_first=True)
    coin = ChainBootstrapper().get_coin(wallet)

    assert coin.n == 1
    assert coin.value == int(Decimal("0.1") * COIN)
    assert coin.script_pubkey == address_to_scriptpubkey(TEST_ADDRESS)
    assert coin.tx.hash in wallet.transactions


def test_get_coin_without_matching_output_fails():
    wallet = FakeWallet(pay_address=False)
    with pytest.raises(FundingNotFoundError) as exc_info:
        ChainBootstrapper().get_coin(wallet)
    assert exc_info.value.address == TEST_ADDRESS
    assert exc_info.value.txid in wallet.transactions


def test_get_coin_uses_first_matching_output():
    wallet = FakeWallet()
    tx = CTransaction()
    tx.vin.append(CTxIn(COutPoint(1, 0), b"", 0xffffffff))
    tx.vout = [CTxOut(5, address_to_scriptpubkey(other_address())),
               CTxOut(7, address_to_scriptpubkey(TEST_ADDRESS)),
               CTxOut(9, address_to_scriptpubkey(TEST_ADDRESS))]
    tx.rehash()
    wallet.transactions[tx.hash] = tx
    wallet.send_to_address = lambda address, amount: tx.hash

    coin = ChainBootstrapper().get_coin(wallet)

    assert (coin.n, coin.value) == (1, 7)


def test_get_coins_mines_funding_transactions():
    wallet = FakeWallet()
    coins = ChainBootstrapper().get_coins(wallet, 4)

    assert len(set(coins)) == 4
    assert wallet.calls == ["send_to_address"] * 4 + ["generate"]
    assert wallet.generated == [1]


def test_setup_chain_enqueues_coins():
    wallet = FakeWallet(change_first=False)
    coins = CoinQueue()
    bootstrapper = ChainBootstrapper(coins, initial_blocks=150, coin_count=10)

    bootstrapper.setup_chain(wallet)

    assert wallet.generated == [150, 1]
    assert len(coins) == 10
    assert len({c.outpoint for c in coins}) == 10
    assert all(c.n == 0 for c in coins)


def test_coin_queue_is_fifo_and_rejects_duplicates():
    coins = CoinQueue()
    first, second = make_coin(0), make_coin(1)
    coins.enqueue(first)
    coins.enqueue(second)

    with pytest.raises(ValueError):
        coins.enqueue(make_coin(0))
    assert coins.dequeue() is first
    assert coins.dequeue() is second
    with pytest.raises(IndexError):
        coins.dequeue()


def test_coin_exposes_spent_output():
    coin = make_coin(2)
    assert coin.outpoint == COutPoint(coin.tx.sha256, 2)
    assert coin.txout is coin.tx.vout[2]
    assert coin.value == COIN
