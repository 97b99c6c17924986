#!/usr/bin/env python3
# Copyright (c) 2014-2016 The Bitcoin Core developers
# Copyright (c) 2020 Bitcoin Association
# Distributed under the Open BSV software license, see the accompanying file LICENSE.
"""Helpful routines for regression testing."""

from binascii import hexlify, unhexlify
from decimal import Decimal
import json
import os
import time

from .authproxy import JSONRPCException

# Assert functions
##################


def assert_equal(thing1, thing2, *args):
    if thing1 != thing2 or any(thing1 != arg for arg in args):
        raise AssertionError("not(%s)" % " == ".join(str(arg)
                                                     for arg in (thing1, thing2) + args))


def assert_greater_than(thing1, thing2):
    if thing1 <= thing2:
        raise AssertionError("%s <= %s" % (str(thing1), str(thing2)))


def assert_raises(exc, fun, *args, **kwds):
    assert_raises_message(exc, None, fun, *args, **kwds)


def assert_raises_message(exc, message, fun, *args, **kwds):
    try:
        fun(*args, **kwds)
    except JSONRPCException:
        raise AssertionError(
            "Use assert_raises_rpc_error() to test RPC failures")
    except exc as e:
        if message is not None and message not in str(e):
            raise AssertionError(
                "Expected substring not found:" + str(e))
    except Exception as e:
        raise AssertionError(
            "Unexpected exception raised: " + type(e).__name__)
    else:
        raise AssertionError("No exception raised")


def assert_raises_rpc_error(code, message, fun, *args, **kwds):
    """Run an RPC and verify that a specific JSONRPC exception code and message is raised.

    Args:
        code (int), optional: the error code returned by the RPC call. Set to None
            if checking the error code is not required.
        message (string), optional: [a substring of] the error string returned by the
            RPC call. Set to None if checking the error string is not required.
        fun (function): the function to call. This should be the name of an RPC.
        args*: positional arguments for the function.
        kwds**: named arguments for the function.
    """
    assert try_rpc(code, message, fun, *args, **kwds), "No exception raised"


def try_rpc(code, message, fun, *args, **kwds):
    """Tries to run an rpc command.

    Test against error code and message if the rpc fails.
    Returns whether a JSONRPCException was raised."""
    try:
        fun(*args, **kwds)
    except JSONRPCException as e:
        if (code is not None) and (code != e.error["code"]):
            raise AssertionError(
                "Unexpected JSONRPC error code %i" % e.error["code"])
        if (message is not None) and (message not in e.error['message']):
            raise AssertionError(
                "Expected substring not found:" + e.error['message'])
        return True
    except Exception as e:
        raise AssertionError(
            "Unexpected exception raised: " + type(e).__name__)
    else:
        return False

# Utility functions
###################


def check_json_precision():
    """Make sure json library being used does not lose precision converting BSV values"""
    n = Decimal("20000000.00000003")
    satoshis = int(json.loads(json.dumps(float(n))) * 1.0e8)
    if satoshis != 2000000000000003:
        raise RuntimeError("JSON encode/decode loses precision")


def bytes_to_hex_str(byte_str):
    return hexlify(byte_str).decode('ascii')


def hex_str_to_bytes(hex_str):
    return unhexlify(hex_str.encode('ascii'))


def wait_until(predicate, *, attempts=float('inf'), timeout=float('inf'), lock=None, check_interval=0.05, label="wait_until"):
    if attempts == float('inf') and timeout == float('inf'):
        timeout = 60
    attempt = 0
    timestamp = timeout + time.time()

    while attempt < attempts and time.time() < timestamp:
        if lock:
            with lock:
                if predicate():
                    return
        else:
            if predicate():
                return
        attempt += 1
        time.sleep(check_interval)

    # Print the cause of the timeout
    assert attempts > attempt, f"{label} : max attempts exceeeded (attempts={attempt})"
    assert timestamp >= time.time(), f"{label} : timeout exceeded {timeout}"
    raise RuntimeError('Unreachable')


# RPC/P2P connection constants and functions
############################################


# The maximum number of nodes a single test can spawn
MAX_NODES = 8
# Don't assign rpc, p2p or zmq ports lower than this
PORT_MIN = 11000
# The number of ports to "reserve" for p2p, rpc and zmq, each
PORT_RANGE = 5000


class PortSeed:
    # Must be initialized with a unique integer for each process
    n = None


def _port_offset():
    if PortSeed.n is None:
        PortSeed.n = os.getpid()
    return (MAX_NODES * PortSeed.n) % (PORT_RANGE - 1 - MAX_NODES)


def p2p_port(n):
    assert(n <= MAX_NODES)
    return PORT_MIN + n + _port_offset()


def rpc_port(n):
    assert(n <= MAX_NODES)
    return PORT_MIN + PORT_RANGE + n + _port_offset()


def zmq_port(n):
    assert(n <= MAX_NODES)
    return PORT_MIN + 2*PORT_RANGE + n + _port_offset()
