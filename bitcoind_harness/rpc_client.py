#!/usr/bin/env python3
# Copyright (c) 2020 Bitcoin Association
# Distributed under the Open BSV software license, see the accompanying file LICENSE.
"""Typed wrapper over the bitcoind JSON-RPC interface used by the harness."""

from .authproxy import AuthServiceProxy, HTTP_TIMEOUT
from .util import bytes_to_hex_str, hex_str_to_bytes


class RpcClient():
    """Node operations needed to set up chains and mine blocks.

    Every call goes through an AuthServiceProxy, so RPC failures surface as
    JSONRPCException.
    """

    def __init__(self, host, port, user, password, timeout=HTTP_TIMEOUT, proxy=None):
        self.host = host
        self.port = port
        self.url = "http://%s:%s@%s:%d" % (user, password, host, int(port))
        self._proxy = proxy if proxy is not None else AuthServiceProxy(self.url, timeout=timeout)

    def __repr__(self):
        return "RpcClient(%s:%d)" % (self.host, int(self.port))

    def send_to_address(self, address, amount):
        return self._proxy.sendtoaddress(address, amount)

    def get_raw_transaction_as_bytes(self, txid):
        return hex_str_to_bytes(self._proxy.getrawtransaction(txid, 0))

    def get_best_block_hash(self):
        return self._proxy.getbestblockhash()

    def get_block_count(self):
        return self._proxy.getblockcount()

    def get_block_header(self, block_hash):
        return self._proxy.getblockheader(block_hash, True)

    def get_block_as_bytes(self, block_hash):
        return hex_str_to_bytes(self._proxy.getblock(block_hash, 0))

    def generate(self, n):
        return self._proxy.generate(n)

    def submit_block(self, block_bytes):
        """Returns None if the block was accepted, otherwise the rejection reason"""
        return self._proxy.submitblock(bytes_to_hex_str(block_bytes))

    def active_zmq_notifications(self):
        return self._proxy.activezmqnotifications()

    def stop(self):
        return self._proxy.stop()

    def close(self):
        self._proxy.close()
