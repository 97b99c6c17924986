#!/usr/bin/env python3
# Copyright (c) 2020 Bitcoin Association
# Distributed under the Open BSV software license, see the accompanying file LICENSE.

from Crypto.Hash import RIPEMD160
import ecdsa
import pytest

from bitcoind_harness.address import (address_to_scriptpubkey, base58_to_byte, byte_to_base58, keyhash_to_p2pkh,
                                      scriptpubkey_to_address)
from bitcoind_harness.blocktools import TxCreator
from bitcoind_harness.chain import TEST_ADDRESS, TEST_PRIVATE_KEY_WIF, Coin, get_test_key, get_test_script_pubkey
from bitcoind_harness.key import ECKey, privkey_to_wif, wif_to_privkey
from bitcoind_harness.primitives import COIN, COutPoint, CTransaction, CTxIn, CTxOut, hash256, sha256
from bitcoind_harness.script import SIGHASH_ALL, SIGHASH_FORKID, CScript, SignatureHashForkId, OP_TRUE


def test_test_key_pays_test_address():
    key = get_test_key()
    assert key.compressed
    pubkey_hash = RIPEMD160.new(sha256(key.get_pubkey())).digest()
    assert keyhash_to_p2pkh(pubkey_hash) == TEST_ADDRESS


def test_wif_roundtrip():
    secret, compressed, version = wif_to_privkey(TEST_PRIVATE_KEY_WIF)
    assert (len(secret), compressed, version) == (32, True, 0xef)
    assert privkey_to_wif(get_test_key()) == TEST_PRIVATE_KEY_WIF


def test_base58_checksum_is_verified():
    encoded = byte_to_base58(b"\x01\x02\x03", 111)
    assert base58_to_byte(encoded) == (b"\x01\x02\x03", 111)
    broken = encoded[:-1] + ("2" if encoded[-1] != "2" else "3")
    with pytest.raises(ValueError):
        base58_to_byte(broken)
    with pytest.raises(ValueError):
        base58_to_byte("0OIl")


def test_p2pkh_script_roundtrip():
    script = get_test_script_pubkey()
    assert len(script) == 25
    assert scriptpubkey_to_address(script) == TEST_ADDRESS
    assert scriptpubkey_to_address(CScript([OP_TRUE])) is None
    with pytest.raises(ValueError):
        address_to_scriptpubkey(byte_to_base58(b"\x00" * 19, 111))


def test_signatures_are_low_s_and_verify():
    key = ECKey()
    key.generate()
    digest = hash256(b"harness")
    signature = key.sign(digest)

    assert key.verify(digest, signature)
    assert not key.verify(hash256(b"other"), signature)
    # deterministic (RFC6979)
    assert key.sign(digest) == signature
    _, s = ecdsa.util.sigdecode_der(signature, ecdsa.SECP256k1.order)
    assert s <= ecdsa.SECP256k1.order // 2
    assert len(key.get_pubkey()) == 33


def test_uncompressed_pubkey():
    key = ECKey()
    key.generate(compressed=False)
    pubkey = key.get_pubkey()
    assert len(pubkey) == 65 and pubkey[0] == 4


def test_tx_creator_signs_p2pkh_input():
    funding = CTransaction()
    funding.vin.append(CTxIn(COutPoint(0x42, 0), b"", 0xffffffff))
    funding.vout.append(CTxOut(COIN // 10, get_test_script_pubkey()))
    coin = Coin(funding, 0)
    key = get_test_key()

    tx = TxCreator(key).create_signed_transaction([coin], get_test_script_pubkey(), num_outputs=3, fee=500)

    assert tx.vin[0].prevout == coin.outpoint
    assert sum(o.nValue for o in tx.vout) == coin.value - 500
    assert len(tx.vout) == 3

    script_sig = tx.vin[0].scriptSig
    sig_length = script_sig[0]
    signature = script_sig[1:1 + sig_length]
    pubkey_push = script_sig[1 + sig_length:]
    assert pubkey_push == bytes([33]) + key.get_pubkey()
    assert signature[-1] == SIGHASH_ALL | SIGHASH_FORKID

    sighash = SignatureHashForkId(coin.script_pubkey, tx, 0, SIGHASH_ALL | SIGHASH_FORKID, coin.value)
    assert key.verify(sighash, signature[:-1])
