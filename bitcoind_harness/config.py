#!/usr/bin/env python3
# Copyright (c) 2020 Bitcoin Association
# Distributed under the Open BSV software license, see the accompanying file LICENSE.
"""Harness configuration.

Values are read from an ini file and can be overridden by environment
variables (and, in BitcoindTestFramework.main(), by command line options):

    [bitcoind]
    fullpath = /path/to/bitcoind
    hostip = localhost
    zmqip = 127.0.0.1

    [harness]
    commontestprefix = __main__.
    initialblocks = 150
    coincount = 10
"""

import configparser
import logging
import os

from .errors import ConfigurationError

logger = logging.getLogger("TestFramework.config")

BITCOIND_FULL_PATH_ENV = "BITCOIND_FULL_PATH"
HOST_IP_ENV = "BITCOIND_HOST_IP"
ZMQ_IP_ENV = "BITCOIND_ZMQ_IP"

DEFAULT_HOST_IP = "localhost"
DEFAULT_ZMQ_IP = "127.0.0.1"
DEFAULT_COMMON_TEST_PREFIX = "__main__."
DEFAULT_INITIAL_BLOCKS = 150
DEFAULT_COIN_COUNT = 10


class HarnessConfig():
    def __init__(self, bitcoind_full_path=None, host_ip=DEFAULT_HOST_IP, zmq_ip=DEFAULT_ZMQ_IP,
                 common_test_prefix=DEFAULT_COMMON_TEST_PREFIX, initial_blocks=DEFAULT_INITIAL_BLOCKS,
                 coin_count=DEFAULT_COIN_COUNT):
        self.bitcoind_full_path = bitcoind_full_path
        self.host_ip = host_ip
        self.zmq_ip = zmq_ip
        self.common_test_prefix = common_test_prefix
        self.initial_blocks = initial_blocks
        self.coin_count = coin_count

    @classmethod
    def load(cls, configfile=None, environ=None):
        """Build configuration from (optional) ini file and environment"""
        if environ is None:
            environ = os.environ
        config = cls()
        if configfile:
            parser = configparser.ConfigParser()
            with open(configfile, encoding='utf8') as f:
                parser.read_file(f)
            logger.debug("Reading harness configuration from %s", configfile)
            if parser.has_section("bitcoind"):
                section = parser["bitcoind"]
                config.bitcoind_full_path = section.get("fullpath", config.bitcoind_full_path)
                config.host_ip = section.get("hostip", config.host_ip)
                config.zmq_ip = section.get("zmqip", config.zmq_ip)
            if parser.has_section("harness"):
                section = parser["harness"]
                config.common_test_prefix = section.get("commontestprefix", config.common_test_prefix)
                config.initial_blocks = section.getint("initialblocks", config.initial_blocks)
                config.coin_count = section.getint("coincount", config.coin_count)

        if environ.get(BITCOIND_FULL_PATH_ENV):
            config.bitcoind_full_path = environ[BITCOIND_FULL_PATH_ENV]
        if environ.get(HOST_IP_ENV):
            config.host_ip = environ[HOST_IP_ENV]
        if environ.get(ZMQ_IP_ENV):
            config.zmq_ip = environ[ZMQ_IP_ENV]
        return config

    def require_bitcoind_full_path(self):
        if not self.bitcoind_full_path:
            raise ConfigurationError(
                "Required parameter fullpath (section [bitcoind]) or {} is missing from configuration".format(BITCOIND_FULL_PATH_ENV))
        return self.bitcoind_full_path

    def __repr__(self):
        return "HarnessConfig(bitcoind_full_path=%r host_ip=%r zmq_ip=%r)" % (
            self.bitcoind_full_path, self.host_ip, self.zmq_ip)
