#!/usr/bin/env python3
# Copyright (c) 2020 Bitcoin Association
# Distributed under the Open BSV software license, see the accompanying file LICENSE.
"""Exceptions raised by the bitcoind test harness."""


class HarnessError(Exception):
    """Base class for all harness errors"""

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class ConfigurationError(HarnessError):
    """A required configuration value (eg. path to bitcoind) is missing"""


class PathTooLongError(HarnessError):
    """Data directory path would exceed the filesystem path length limit"""

    def __init__(self, datadir, limit):
        super().__init__(
            "Length of data directory path is too long. This might cause problems when running bitcoind on Windows. "
            "Please run tests from directory with a short path. Data directory path: {}".format(datadir))
        self.datadir = datadir
        self.limit = limit


class UntrackedResourceError(HarnessError):
    """Attempt to release a resource that was not acquired through the owner"""


class FailedToStartError(HarnessError):
    """bitcoind exited or did not answer RPC calls while starting"""


class SynchronizationTimeoutError(HarnessError):
    """Awaited event did not arrive before the deadline"""

    def __init__(self, description, timeout):
        super().__init__("Timeout after {}s: {}".format(timeout, description))
        self.description = description
        self.timeout = timeout


class WaitCancelledError(HarnessError):
    """Wait for an event was cancelled by the caller"""

    def __init__(self, description):
        super().__init__("Cancelled: {}".format(description))
        self.description = description


class FundingNotFoundError(HarnessError):
    """Funding transaction does not contain an output paying the test address"""

    def __init__(self, txid, address):
        super().__init__(
            "Unable to find a transaction output with required destination address {} in {}".format(address, txid))
        self.txid = txid
        self.address = address


class ProofOfWorkExhaustedError(HarnessError):
    """No nonce in the bounded search range satisfies the difficulty target"""

    def __init__(self, attempts, bits):
        super().__init__(
            "Bad luck - unable to find nonce that matches required difficulty (nBits=%08x, attempts=%d)" % (bits, attempts))
        self.attempts = attempts
        self.bits = bits


class BlockRejectedError(HarnessError):
    """Node rejected a submitted block"""

    def __init__(self, block_hash, reason):
        super().__init__("Error while submitting new block {} - submitblock returned {}".format(block_hash, reason))
        self.block_hash = block_hash
        self.reason = reason
