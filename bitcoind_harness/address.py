#!/usr/bin/env python3
# Copyright (c) 2016 The Bitcoin Core developers
# Copyright (c) 2020 Bitcoin Association
# Distributed under the Open BSV software license, see the accompanying file LICENSE.
"""Encode and decode BASE58 and P2PKH addresses."""

from .primitives import hash256
from .script import CScript, OP_CHECKSIG, OP_DUP, OP_EQUALVERIFY, OP_HASH160

chars = '123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz'

MAINNET_P2PKH_VERSION = 0
TESTNET_P2PKH_VERSION = 111


def byte_to_base58(b, version):
    result = ''
    b = bytes([version]) + b  # prepend version
    b += hash256(b)[:4]       # append checksum
    value = int.from_bytes(b, 'big')
    while value > 0:
        result = chars[value % 58] + result
        value //= 58
    while b[0] == 0:
        result = chars[0] + result
        b = b[1:]
    return result


def base58_to_byte(s):
    """Converts a base58-encoded string to its data and version.

    Throws if the base58 checksum is invalid."""
    if not s:
        return b'', 0
    n = 0
    for c in s:
        n *= 58
        if c not in chars:
            raise ValueError("Invalid base58 character %r" % c)
        n += chars.index(c)

    res = n.to_bytes((n.bit_length() + 7) // 8, 'big')
    pad = 0
    for c in s:
        if c == chars[0]:
            pad += 1
        else:
            break
    res = b'\x00' * pad + res

    if hash256(res[:-4])[:4] != res[-4:]:
        raise ValueError("Invalid base58 checksum")

    return res[1:-4], int(res[0])


def keyhash_to_p2pkh(hash, main=False):
    assert len(hash) == 20
    version = MAINNET_P2PKH_VERSION if main else TESTNET_P2PKH_VERSION
    return byte_to_base58(hash, version)


def keyhash_to_p2pkh_script(hash):
    assert len(hash) == 20
    return CScript([OP_DUP, OP_HASH160, hash, OP_EQUALVERIFY, OP_CHECKSIG])


def address_to_scriptpubkey(address):
    """Converts a P2PKH address to the corresponding output script"""
    payload, version = base58_to_byte(address)
    if version not in (MAINNET_P2PKH_VERSION, TESTNET_P2PKH_VERSION) or len(payload) != 20:
        raise ValueError("Not a P2PKH address: %s" % address)
    return keyhash_to_p2pkh_script(payload)


def scriptpubkey_to_address(script, main=False):
    """Returns the P2PKH address paid by script, or None if the script is not P2PKH"""
    script = bytes(script)
    if len(script) == 25 and script[0] == OP_DUP and script[1] == OP_HASH160 and script[2] == 20 \
            and script[23] == OP_EQUALVERIFY and script[24] == OP_CHECKSIG:
        return keyhash_to_p2pkh(script[3:23], main)
    return None
