#!/usr/bin/env python3
# Copyright (c) 2020 Bitcoin Association
# Distributed under the Open BSV software license, see the accompanying file LICENSE.
"""secp256k1 keys for signing transactions that spend harvested coins."""

import hashlib

import ecdsa

from .address import base58_to_byte, byte_to_base58

MAINNET_WIF_VERSION = 0x80
TESTNET_WIF_VERSION = 0xef


class ECKey():
    """A secp256k1 private key"""

    def __init__(self):
        self._curve = ecdsa.SECP256k1
        self._signingKey = None
        self.compressed = True

    @property
    def is_valid(self):
        return self._signingKey is not None

    def set(self, secret, compressed=True):
        assert len(secret) == 32
        self._signingKey = ecdsa.SigningKey.from_string(secret, curve=self._curve)
        self.compressed = compressed

    def generate(self, compressed=True):
        self._signingKey = ecdsa.SigningKey.generate(curve=self._curve)
        self.compressed = compressed

    def get_bytes(self):
        assert self.is_valid
        return self._signingKey.to_string()

    def get_pubkey(self):
        assert self.is_valid
        encoding = "compressed" if self.compressed else "uncompressed"
        return self._signingKey.get_verifying_key().to_string(encoding)

    def sign(self, digest):
        """Deterministic DER encoded signature of a 32 byte digest, with low S"""
        assert self.is_valid
        return self._signingKey.sign_digest_deterministic(
            digest, hashfunc=hashlib.sha256, sigencode=ecdsa.util.sigencode_der_canonize)

    def verify(self, digest, signature):
        assert self.is_valid
        try:
            return self._signingKey.get_verifying_key().verify_digest(
                signature, digest, sigdecode=ecdsa.util.sigdecode_der)
        except ecdsa.BadSignatureError:
            return False


def wif_to_privkey(wif):
    """Decode a WIF string into (secret bytes, compressed, version)"""
    payload, version = base58_to_byte(wif)
    if version not in (MAINNET_WIF_VERSION, TESTNET_WIF_VERSION):
        raise ValueError("Unexpected WIF version %02x" % version)
    if len(payload) == 33 and payload[-1] == 1:
        return payload[:32], True, version
    if len(payload) == 32:
        return payload, False, version
    raise ValueError("Invalid WIF payload length %d" % len(payload))


def privkey_to_wif(key, main=False):
    payload = key.get_bytes() + (b'\x01' if key.compressed else b'')
    return byte_to_base58(payload, MAINNET_WIF_VERSION if main else TESTNET_WIF_VERSION)


def key_from_wif(wif):
    secret, compressed, _ = wif_to_privkey(wif)
    key = ECKey()
    key.set(secret, compressed)
    return key
