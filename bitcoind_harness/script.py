#!/usr/bin/env python3
# Copyright (c) 2015-2016 The Bitcoin Core developers
# Copyright (c) 2020 Bitcoin Association
# Distributed under the Open BSV software license, see the accompanying file LICENSE.
"""Minimal script support: opcodes, CScript and the FORKID signature hash.

Only what is needed to build P2PKH and coinbase scripts and to sign inputs
spending P2PKH outputs.
"""

import struct

from .primitives import hash256, ser_string

SIGHASH_ALL = 1
SIGHASH_NONE = 2
SIGHASH_SINGLE = 3
SIGHASH_FORKID = 0x40
SIGHASH_ANYONECANPAY = 0x80


class CScriptOp(int):
    """A single script opcode"""

    @staticmethod
    def encode_op_pushdata(d):
        """Encode a PUSHDATA op, returning bytes"""
        if len(d) < 0x4c:
            return b'' + bytes([len(d)]) + d  # OP_PUSHDATA
        elif len(d) <= 0xff:
            return b'\x4c' + bytes([len(d)]) + d  # OP_PUSHDATA1
        elif len(d) <= 0xffff:
            return b'\x4d' + struct.pack(b'<H', len(d)) + d  # OP_PUSHDATA2
        elif len(d) <= 0xffffffff:
            return b'\x4e' + struct.pack(b'<I', len(d)) + d  # OP_PUSHDATA4
        else:
            raise ValueError("Data too long to encode in a PUSHDATA op")

    @staticmethod
    def encode_op_n(n):
        """Encode a small integer op, returning an opcode"""
        if not (0 <= n <= 16):
            raise ValueError('Integer must be in range 0 <= n <= 16, got %d' % n)

        if n == 0:
            return OP_0
        else:
            return CScriptOp(OP_1 + n - 1)

    def __repr__(self):
        return 'CScriptOp(0x%x)' % self


OP_0 = CScriptOp(0x00)
OP_PUSHDATA1 = CScriptOp(0x4c)
OP_PUSHDATA2 = CScriptOp(0x4d)
OP_PUSHDATA4 = CScriptOp(0x4e)
OP_1NEGATE = CScriptOp(0x4f)
OP_1 = CScriptOp(0x51)
OP_TRUE = OP_1
OP_DUP = CScriptOp(0x76)
OP_EQUALVERIFY = CScriptOp(0x88)
OP_HASH160 = CScriptOp(0xa9)
OP_CHECKSIG = CScriptOp(0xac)


class CScriptNum():
    @staticmethod
    def encode(value):
        r = bytearray(0)
        if value == 0:
            return bytes(r)
        neg = value < 0
        absvalue = -value if neg else value
        while (absvalue):
            r.append(absvalue & 0xff)
            absvalue >>= 8
        if r[-1] & 0x80:
            r.append(0x80 if neg else 0)
        elif neg:
            r[-1] |= 0x80
        return bytes(r)


class CScript(bytes):
    """Serialized script

    Constructed either from raw bytes or from an iterable of opcodes, small
    integers and data pushes.
    """

    @classmethod
    def _coerce_instance(cls, other):
        if isinstance(other, CScriptOp):
            other = bytes([other])
        elif isinstance(other, int):
            if 0 <= other <= 16:
                other = bytes([CScriptOp.encode_op_n(other)])
            elif other == -1:
                other = bytes([OP_1NEGATE])
            else:
                other = CScriptOp.encode_op_pushdata(CScriptNum.encode(other))
        elif isinstance(other, (bytes, bytearray)):
            other = CScriptOp.encode_op_pushdata(bytes(other))
        else:
            raise TypeError("Can not coerce %r into a script" % (other,))
        return other

    def __new__(cls, value=b''):
        if isinstance(value, (bytes, bytearray)):
            return super(CScript, cls).__new__(cls, value)
        return super(CScript, cls).__new__(cls, b''.join(cls._coerce_instance(v) for v in value))

    def __repr__(self):
        return "CScript(%s)" % self.hex()


def SignatureHashForkId(script, txTo, inIdx, hashtype, amount):
    """BIP143 style signature hash with SIGHASH_FORKID, returned as raw digest bytes"""

    hashPrevouts = b"\x00" * 32
    hashSequence = b"\x00" * 32
    hashOutputs = b"\x00" * 32

    if not (hashtype & SIGHASH_ANYONECANPAY):
        serialize_prevouts = b"".join(i.prevout.serialize() for i in txTo.vin)
        hashPrevouts = hash256(serialize_prevouts)

    if (not (hashtype & SIGHASH_ANYONECANPAY) and (hashtype & 0x1f) != SIGHASH_SINGLE and (hashtype & 0x1f) != SIGHASH_NONE):
        serialize_sequence = b"".join(struct.pack("<I", i.nSequence) for i in txTo.vin)
        hashSequence = hash256(serialize_sequence)

    if ((hashtype & 0x1f) != SIGHASH_SINGLE and (hashtype & 0x1f) != SIGHASH_NONE):
        serialize_outputs = b"".join(o.serialize() for o in txTo.vout)
        hashOutputs = hash256(serialize_outputs)
    elif ((hashtype & 0x1f) == SIGHASH_SINGLE and inIdx < len(txTo.vout)):
        hashOutputs = hash256(txTo.vout[inIdx].serialize())

    ss = b"".join((
        struct.pack("<i", txTo.nVersion),
        hashPrevouts,
        hashSequence,
        txTo.vin[inIdx].prevout.serialize(),
        ser_string(script),
        struct.pack("<q", amount),
        struct.pack("<I", txTo.vin[inIdx].nSequence),
        hashOutputs,
        struct.pack("<I", txTo.nLockTime),
        struct.pack("<I", hashtype),))

    return hash256(ss)

