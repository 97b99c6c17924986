#!/usr/bin/env python3
# Copyright (c) 2010 ArtForz -- public domain half-a-node
# Copyright (c) 2012 Jeff Garzik
# Copyright (c) 2010-2016 The Bitcoin Core developers
# Copyright (c) 2020 Bitcoin Association
# Distributed under the Open BSV software license, see the accompanying file LICENSE.

"""Bitcoin data structures exchanged with bitcoind as raw bytes.

COutPoint, CTxIn, CTxOut, CTransaction, CBlockHeader, CBlock:
    transactions and blocks as returned by getrawtransaction/getblock
    (verbosity 0) and accepted by submitblock
ser_*, deser_*: serialization helpers
"""

from io import BytesIO
import hashlib
import struct
import time

from .util import bytes_to_hex_str

COIN = 100000000  # 1 BSV in satoshis


def sha256(s):
    return hashlib.sha256(s).digest()


def hash256(s):
    return sha256(sha256(s))


def ser_compact_size(n):
    if n < 253:
        return struct.pack("B", n)
    if n < 0x10000:
        return struct.pack("<BH", 253, n)
    if n < 0x100000000:
        return struct.pack("<BI", 254, n)
    return struct.pack("<BQ", 255, n)


def deser_compact_size(f):
    n = struct.unpack("<B", f.read(1))[0]
    if n == 253:
        n = struct.unpack("<H", f.read(2))[0]
    elif n == 254:
        n = struct.unpack("<I", f.read(4))[0]
    elif n == 255:
        n = struct.unpack("<Q", f.read(8))[0]
    return n


def ser_string(s):
    return ser_compact_size(len(s)) + bytes(s)


def deser_string(f):
    return f.read(deser_compact_size(f))


# uint256 values are kept as python ints, serialized little endian
def ser_uint256(u):
    return u.to_bytes(32, 'little')


def deser_uint256(f):
    return uint256_from_str(f.read(32))


def uint256_from_str(s):
    return int.from_bytes(s[:32], 'little')


def uint256_from_compact(c):
    nbytes = (c >> 24) & 0xFF
    return (c & 0xFFFFFF) << (8 * (nbytes - 3))


def ser_vector(items):
    return ser_compact_size(len(items)) + b"".join(i.serialize() for i in items)


def deser_vector(f, c):
    items = []
    for _ in range(deser_compact_size(f)):
        item = c()
        item.deserialize(f)
        items.append(item)
    return items


# Deserialize from raw bytes (eg from getblock verbosity 0)
def FromBytes(obj, raw):
    obj.deserialize(BytesIO(raw))
    return obj


class COutPoint():
    def __init__(self, hash=0, n=0):
        self.hash = hash
        self.n = n

    def deserialize(self, f):
        self.hash = deser_uint256(f)
        self.n = struct.unpack("<I", f.read(4))[0]

    def serialize(self):
        return ser_uint256(self.hash) + struct.pack("<I", self.n)

    def __hash__(self):
        return hash((self.hash, self.n))

    def __eq__(self, other):
        return self.n == other.n and self.hash == other.hash

    def __repr__(self):
        return "COutPoint(hash=%064x n=%i)" % (self.hash, self.n)


class CTxIn():
    def __init__(self, outpoint=None, scriptSig=b"", nSequence=0):
        self.prevout = COutPoint() if outpoint is None else outpoint
        self.scriptSig = scriptSig
        self.nSequence = nSequence

    def deserialize(self, f):
        self.prevout = COutPoint()
        self.prevout.deserialize(f)
        self.scriptSig = deser_string(f)
        self.nSequence = struct.unpack("<I", f.read(4))[0]

    def serialize(self):
        return self.prevout.serialize() + ser_string(self.scriptSig) + struct.pack("<I", self.nSequence)

    def __repr__(self):
        return "CTxIn(prevout=%r scriptSig=%s nSequence=%i)" \
            % (self.prevout, bytes_to_hex_str(self.scriptSig), self.nSequence)


class CTxOut():
    def __init__(self, nValue=0, scriptPubKey=b""):
        self.nValue = nValue
        self.scriptPubKey = scriptPubKey

    def deserialize(self, f):
        self.nValue = struct.unpack("<q", f.read(8))[0]
        self.scriptPubKey = deser_string(f)

    def serialize(self):
        return struct.pack("<q", self.nValue) + ser_string(self.scriptPubKey)

    def __repr__(self):
        return "CTxOut(nValue=%i.%08i scriptPubKey=%s)" \
            % (self.nValue // COIN, self.nValue % COIN, bytes_to_hex_str(self.scriptPubKey))


class CTransaction():
    def __init__(self):
        self.nVersion = 1
        self.vin = []
        self.vout = []
        self.nLockTime = 0
        self.sha256 = None
        self.hash = None

    def deserialize(self, f):
        self.nVersion = struct.unpack("<i", f.read(4))[0]
        self.vin = deser_vector(f, CTxIn)
        self.vout = deser_vector(f, CTxOut)
        self.nLockTime = struct.unpack("<I", f.read(4))[0]
        self.sha256 = None
        self.hash = None

    def serialize(self):
        return b"".join((
            struct.pack("<i", self.nVersion),
            ser_vector(self.vin),
            ser_vector(self.vout),
            struct.pack("<I", self.nLockTime),))

    # Recalculate the txid
    def rehash(self):
        self.sha256 = None
        self.calc_sha256()

    # sha256 (int) and hash (hex, as shown by RPC) are the txid; cached until rehash()
    def calc_sha256(self):
        if self.sha256 is None:
            digest = hash256(self.serialize())
            self.sha256 = uint256_from_str(digest)
            self.hash = digest[::-1].hex()

    def is_coinbase(self):
        return len(self.vin) == 1 and self.vin[0].prevout.hash == 0 and self.vin[0].prevout.n == 0xffffffff

    def __repr__(self):
        self.rehash()
        return "CTransaction(hash=%s nVersion=%i vin=%r vout=%r nLockTime=%i)" \
            % (self.hash, self.nVersion, self.vin, self.vout, self.nLockTime)


class CBlockHeader():
    def __init__(self):
        self.nVersion = 1
        self.hashPrevBlock = 0
        self.hashMerkleRoot = 0
        self.nTime = 0
        self.nBits = 0
        self.nNonce = 0
        self.sha256 = None
        self.hash = None

    def deserialize(self, f):
        self.nVersion = struct.unpack("<i", f.read(4))[0]
        self.hashPrevBlock = deser_uint256(f)
        self.hashMerkleRoot = deser_uint256(f)
        self.nTime, self.nBits, self.nNonce = struct.unpack("<III", f.read(12))
        self.sha256 = None
        self.hash = None

    def serialize_header(self):
        return b"".join((
            struct.pack("<i", self.nVersion),
            ser_uint256(self.hashPrevBlock),
            ser_uint256(self.hashMerkleRoot),
            struct.pack("<III", self.nTime, self.nBits, self.nNonce),))

    def serialize(self):
        return self.serialize_header()

    def calc_sha256(self):
        if self.sha256 is None:
            digest = hash256(self.serialize_header())
            self.sha256 = uint256_from_str(digest)
            self.hash = digest[::-1].hex()

    def rehash(self):
        self.sha256 = None
        self.calc_sha256()
        return self.sha256

    def check_proof_of_work(self):
        """True if the header hash does not exceed the target encoded in nBits"""
        self.rehash()
        return self.sha256 <= uint256_from_compact(self.nBits)

    def __repr__(self):
        self.rehash()
        return "CBlockHeader(hash=%s nVersion=%i hashPrevBlock=%064x hashMerkleRoot=%064x nTime=%s nBits=%08x nNonce=%08x)" \
            % (self.hash, self.nVersion, self.hashPrevBlock, self.hashMerkleRoot,
               time.ctime(self.nTime), self.nBits, self.nNonce)


class CBlock(CBlockHeader):

    def __init__(self):
        super(CBlock, self).__init__()
        self.vtx = []

    def deserialize(self, f):
        super(CBlock, self).deserialize(f)
        self.vtx = deser_vector(f, CTransaction)

    def serialize(self):
        return super(CBlock, self).serialize() + ser_vector(self.vtx)

    def calc_merkle_root(self):
        """Merkle root of vtx, every transaction is hashed again"""
        hashes = []
        for tx in self.vtx:
            tx.rehash()
            hashes.append(ser_uint256(tx.sha256))
        while len(hashes) > 1:
            # odd levels pair the last hash with itself
            if len(hashes) % 2:
                hashes.append(hashes[-1])
            hashes = [hash256(hashes[i] + hashes[i + 1]) for i in range(0, len(hashes), 2)]
        return uint256_from_str(hashes[0])

    def update_merkle_root(self):
        self.hashMerkleRoot = self.calc_merkle_root()
        self.rehash()

    def __repr__(self):
        self.rehash()
        return "CBlock(hash=%s nVersion=%i hashPrevBlock=%064x hashMerkleRoot=%064x nTime=%s nBits=%08x nNonce=%08x vtx=%r)" \
            % (self.hash, self.nVersion, self.hashPrevBlock, self.hashMerkleRoot,
               time.ctime(self.nTime), self.nBits, self.nNonce, self.vtx)
