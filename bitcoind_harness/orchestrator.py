#!/usr/bin/env python3
# Copyright (c) 2020 Bitcoin Association
# Distributed under the Open BSV software license, see the accompanying file LICENSE.
"""Starting and stopping bitcoind processes for a single test fixture."""

import logging
import os

from .bitcoind_process import BitcoindProcess
from .errors import PathTooLongError, UntrackedResourceError

# Longest path bitcoind creates inside its data directory, with some reserve
BITCOIND_INTERNAL_PATH_LENGTH = len("regtest/blocks/index/MANIFEST-00000") + 10
# LevelDB refuses to open files with paths longer than this on Windows
MAX_PATH_LENGTH = 260


class ProcessOrchestrator():
    """Owns the bitcoind processes started by one test fixture.

    Every fixture must use its own orchestrator. The set of tracked
    processes is not protected against concurrent modification.
    """

    def __init__(self, config, test_run_dir, *, process_factory=BitcoindProcess, path_length_limited=None):
        self.config = config
        self.test_run_dir = test_run_dir
        self._process_factory = process_factory
        if path_length_limited is None:
            path_length_limited = os.name == "nt"
        self.path_length_limited = path_length_limited
        self._processes = []
        self.log = logging.getLogger("TestFramework.orchestrator")

    @property
    def processes(self):
        return tuple(self._processes)

    def get_datadir(self, index, test_class_name, test_name):
        test_prefix = test_class_name
        common_prefix = self.config.common_test_prefix
        if common_prefix and test_prefix.startswith(common_prefix):
            test_prefix = test_prefix[len(common_prefix):]
        return os.path.join(self.test_run_dir, "node" + str(index), test_prefix, test_name)

    def start(self, index, test_class_name, test_name):
        """Start bitcoind with index for the given test and track it"""
        bitcoind_full_path = self.config.require_bitcoind_full_path()

        datadir = self.get_datadir(index, test_class_name, test_name)
        if self.path_length_limited and len(datadir) + BITCOIND_INTERNAL_PATH_LENGTH >= MAX_PATH_LENGTH:
            raise PathTooLongError(datadir, MAX_PATH_LENGTH)

        bitcoind = self._process_factory(bitcoind_full_path, datadir, index, self.config.host_ip, self.config.zmq_ip)
        bitcoind.start()
        self._processes.append(bitcoind)
        self.log.info("Started bitcoind %s (node%d) in %s", bitcoind.description, index, datadir)
        return bitcoind

    def stop(self, bitcoind):
        """Stop a bitcoind previously returned by start()"""
        if bitcoind not in self._processes:
            raise UntrackedResourceError("Can not stop a bitcoind that was not started by start()")
        try:
            bitcoind.stop()
        finally:
            self._processes.remove(bitcoind)

    def stop_all(self):
        """Stop every tracked bitcoind.

        Must be called only after background consumers of the nodes (eg. the
        ZMQ subscription service) are stopped. A failure to stop one process
        is logged and does not prevent stopping the others."""
        if not self._processes:
            return
        total_count = len(self._processes)
        successfully_stopped = 0
        self.log.info("Shutting down %d bitcoind processes", total_count)

        for bitcoind in list(self._processes):
            bitcoind_description = bitcoind.description
            try:
                self.stop(bitcoind)
                successfully_stopped += 1
            except Exception as e:
                self.log.info("Error while stopping bitcoind %s. This can occur if node has been explicitly stopped or if it crashed. "
                              "Will proceed anyway. %s", bitcoind_description, e)

        self.log.info("Successfully stopped %d out of %d bitcoind processes", successfully_stopped, total_count)
        self._processes.clear()
