#!/usr/bin/env python3
# Copyright (c) 2017 The Bitcoin Core developers
# Copyright (c) 2020 Bitcoin Association
# Distributed under the Open BSV software license, see the accompanying file LICENSE.
"""Class for a bitcoind process under test"""

import http.client
import logging
import os
import subprocess
import time

from .authproxy import JSONRPCException
from .errors import FailedToStartError
from .rpc_client import RpcClient
from .util import p2p_port, rpc_port, zmq_port

BITCOIND_PROC_WAIT_TIMEOUT = 60
BITCOIND_START_TIMEOUT = 60

# RPC error code returned while bitcoind is still warming up
RPC_IN_WARMUP = -28

DEFAULT_RPC_USER = "rpcuser"
DEFAULT_RPC_PASSWORD = "rpcpassword"


class BitcoindProcess():
    """A bitcoind process started in its own data directory.

    The process is bound to rpc_port(index) on host and publishes ZMQ
    notifications on zmq_endpoint. rpc_client is available once start()
    returns."""

    def __init__(self, bitcoind_full_path, datadir, index, host, zmq_ip, *,
                 rpc_user=DEFAULT_RPC_USER, rpc_password=DEFAULT_RPC_PASSWORD,
                 start_timeout=BITCOIND_START_TIMEOUT, stop_timeout=BITCOIND_PROC_WAIT_TIMEOUT,
                 extra_args=None):
        self.index = index
        self.host = host
        self.rpc_port = rpc_port(index)
        self.p2p_port = p2p_port(index)
        self.rpc_user = rpc_user
        self.rpc_password = rpc_password
        self.zmq_endpoint = "tcp://%s:%d" % (zmq_ip, zmq_port(index))
        self.datadir = datadir
        self.binary = bitcoind_full_path
        self.start_timeout = start_timeout
        self.stop_timeout = stop_timeout
        self.args = [
            self.binary,
            "-regtest",
            "-server",
            "-datadir=" + self.datadir,
            "-port=%d" % self.p2p_port,
            "-rpcport=%d" % self.rpc_port,
            "-rpcuser=" + self.rpc_user,
            "-rpcpassword=" + self.rpc_password,
            "-rpcallowip=0.0.0.0/0",
            "-rpcbind=0.0.0.0",
            "-listen=0",
            "-txindex=1",
            "-debug=zmq",
            "-excessiveblocksize=0",
            "-maxstackmemoryusageconsensus=0",
            "-genesisactivationheight=1",
            "-invalidtxsink=ZMQ",
            "-zmqpubhashblock=" + self.zmq_endpoint,
            "-zmqpubinvalidtx=" + self.zmq_endpoint,
        ] + list(extra_args or [])
        self.process = None
        self.rpc_client = None
        self._stdout = None
        self._stderr = None
        self.log = logging.getLogger('TestFramework.node%d' % index)

    def __repr__(self):
        return "BitcoindProcess(index=%d %s:%d datadir=%s)" % (self.index, self.host, self.rpc_port, self.datadir)

    @property
    def description(self):
        return "%s:%d" % (self.host, self.rpc_port)

    @property
    def is_running(self):
        return self.process is not None and self.process.poll() is None

    def start(self):
        """Start bitcoind and wait until it answers RPC calls"""
        os.makedirs(self.datadir, exist_ok=True)
        self._stdout = open(os.path.join(self.datadir, "stdout.txt"), "a", encoding="utf8")
        self._stderr = open(os.path.join(self.datadir, "stderr.txt"), "a", encoding="utf8")
        self.log.debug("Starting bitcoind: %s", " ".join(self.args))
        try:
            self.process = subprocess.Popen(self.args, stdout=self._stdout, stderr=self._stderr)
        except Exception:
            self._release()
            raise
        self.rpc_client = RpcClient(self.host, self.rpc_port, self.rpc_user, self.rpc_password)
        try:
            self.wait_for_rpc_connection()
        except Exception:
            self._kill()
            raise
        self.log.debug("bitcoind started, RPC available on %s", self.description)

    def wait_for_rpc_connection(self):
        """Poll until bitcoind's RPC interface accepts calls, fail if the process exits"""
        deadline = time.time() + self.start_timeout
        while time.time() < deadline:
            returncode = self.process.poll()
            if returncode is not None:
                raise FailedToStartError(
                    "bitcoind exited with status %i during initialization (datadir %s)" % (returncode, self.datadir))
            try:
                self.rpc_client.get_block_count()
                return
            except JSONRPCException as e:
                # Initialization phase
                if e.error['code'] != RPC_IN_WARMUP:
                    raise
            except (OSError, http.client.HTTPException):
                # bitcoind not yet listening
                pass
            time.sleep(0.25)
        raise FailedToStartError(
            "Unable to connect to bitcoind %s within %d seconds" % (self.description, self.start_timeout))

    def stop(self):
        """Ask bitcoind to shut down over RPC and wait for the process to exit"""
        if self.process is None:
            return
        if self.is_running:
            self.log.debug("Stopping bitcoind %s", self.description)
            try:
                self.rpc_client.stop()
            except (JSONRPCException, OSError, http.client.HTTPException) as e:
                self.log.warning("Unable to stop bitcoind %s over RPC, killing it: %s", self.description, e)
                self._kill()
        try:
            self.process.wait(timeout=self.stop_timeout)
        except subprocess.TimeoutExpired:
            self.log.warning("bitcoind %s did not exit within %d seconds, killing it", self.description, self.stop_timeout)
            self._kill()
        finally:
            self._release()

    def _kill(self):
        if self.process is not None and self.process.poll() is None:
            self.process.kill()
            self.process.wait()
        self._release()

    def _release(self):
        if self.rpc_client is not None:
            self.rpc_client.close()
        for f in (self._stdout, self._stderr):
            if f is not None and not f.closed:
                f.close()
