#!/usr/bin/env python3
# Copyright (c) 2020 Bitcoin Association
# Distributed under the Open BSV software license, see the accompanying file LICENSE.

import pytest

from bitcoind_harness.config import HarnessConfig
from bitcoind_harness.errors import ConfigurationError

CONFIG = """
[bitcoind]
fullpath = /opt/bsv/bin/bitcoind
hostip = 10.0.0.5

[harness]
commontestprefix = tests.integration.
coincount = 3
"""


def write_config(tmp_path, text=CONFIG):
    path = tmp_path / "harness.conf"
    path.write_text(text)
    return str(path)


def test_defaults_without_file_or_environment():
    config = HarnessConfig.load(environ={})
    assert config.bitcoind_full_path is None
    assert (config.host_ip, config.zmq_ip) == ("localhost", "127.0.0.1")
    assert (config.initial_blocks, config.coin_count) == (150, 10)
    with pytest.raises(ConfigurationError):
        config.require_bitcoind_full_path()


def test_values_from_file(tmp_path):
    config = HarnessConfig.load(write_config(tmp_path), environ={})
    assert config.require_bitcoind_full_path() == "/opt/bsv/bin/bitcoind"
    assert config.host_ip == "10.0.0.5"
    assert config.zmq_ip == "127.0.0.1"
    assert config.common_test_prefix == "tests.integration."
    assert config.coin_count == 3
    assert config.initial_blocks == 150


def test_environment_overrides_file(tmp_path):
    environ = {"BITCOIND_FULL_PATH": "/usr/local/bin/bitcoind", "BITCOIND_ZMQ_IP": "10.0.0.6",
               "BITCOIND_HOST_IP": ""}
    config = HarnessConfig.load(write_config(tmp_path), environ=environ)
    assert config.bitcoind_full_path == "/usr/local/bin/bitcoind"
    assert config.zmq_ip == "10.0.0.6"
    # empty variables are ignored
    assert config.host_ip == "10.0.0.5"
