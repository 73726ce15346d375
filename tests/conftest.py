# Copyright (C) Internet Systems Consortium, Inc. ("ISC")
#
# SPDX-License-Identifier: MPL-2.0
#
# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0.  If a copy of the MPL was not distributed with this
# file, you can obtain one at https://mozilla.org/MPL/2.0/.
#
# See the COPYRIGHT file distributed with this work for additional
# information regarding copyright ownership.


import base64
import os
from pathlib import Path

import pytest

pytest.register_assert_rewrite("dnstest")

import dns.dnssec
import dns.name
import dns.rrset

import dnstest
import dnstest.client
import dnstest.nameserver
import dnstest.resolver
from dnstest.errors import CommandError
from dnstest.network import Network
from dnstest.nsec3 import NSEC3Fixture
from dnstest.vars import ALL

dnstest.log.init_conftest_logger()
dnstest.log.avoid_duplicated_logs()
dnstest.vars.init_vars()


@pytest.fixture(autouse=True, scope="module")
def module_logger(request, tmp_path_factory):
    module_name = request.module.__name__
    logdir = Path(tmp_path_factory.mktemp(module_name.replace(".", "_")))
    dnstest.log.init_module_logger(module_name, logdir)
    yield
    dnstest.log.deinit_module_logger()


@pytest.fixture(autouse=True)
def logger(request):
    """Logging facility specific to a particular test."""
    dnstest.log.init_test_logger(request.module.__name__, request.node.name)
    yield
    dnstest.log.deinit_test_logger()


@pytest.fixture(scope="session")
def subject():
    """Implementation of the resolver under test."""
    return ALL["DNSTEST_SUBJECT"]


@pytest.fixture(scope="session")
def peer():
    """Implementation of the authoritative servers."""
    return ALL["DNSTEST_PEER"]


@pytest.fixture
def network():
    with Network.new() as net:
        yield net


class FakeNetwork:
    """Stand-in for `dnstest.network.Network` counting open handles."""

    def __init__(self, name="dnstest-fake-1", subnet="192.0.2.0/24", shared=None):
        self.name = name
        self.subnet = subnet
        self.shared = shared if shared is not None else {"handles": 1}
        self.closed = False

    def clone(self):
        self.shared["handles"] += 1
        return FakeNetwork(self.name, self.subnet, self.shared)

    def close(self):
        if not self.closed:
            self.closed = True
            self.shared["handles"] -= 1


class FakeSandbox:
    """
    Registry of fake containers.  The containers emulate the tools the
    harness runs in them: dnssec-keygen, dnssec-signzone, dnssec-dsfromkey,
    dig and the server processes.
    """

    def __init__(self):
        self.network = FakeNetwork()
        self.containers = []
        self.fail_keygen_for = None
        self.dig_output = ""
        self.ready_line = "running"

    def open_containers(self):
        return [c for c in self.containers if not c.closed]


def _fake_dnskey(origin: str, ksk: bool):
    key = base64.b64encode(os.urandom(132)).decode("ascii")
    text = f"{origin} 86400 IN DNSKEY {257 if ksk else 256} 3 8 {key}"
    rrset = dnstest.record.from_text(text)
    return text, dns.dnssec.key_id(rrset[0])


class FakeContainer:
    sandbox = None  # type: FakeSandbox

    def __init__(self, image, network):
        self.image = image
        self.network = network.clone()
        self.files = {}
        self.commands = []
        self.detached = []
        self.closed = False
        self.sandbox.containers.append(self)
        self.ipv4_addr = f"192.0.2.{len(self.sandbox.containers)}"

    def exec(self, command, input_text=None, **kwargs):
        self.commands.append(command)
        handler = {
            "dnssec-keygen": self._keygen,
            "dnssec-signzone": self._signzone,
            "dnssec-dsfromkey": self._dsfromkey,
            "dig": self._dig,
        }.get(command[0])
        if handler is None:
            return ""
        return handler(command)

    def exec_detached(self, command):
        self.detached.append(command)
        log_path = command[-1].split(">")[1].split()[0]
        self.files[log_path] = f"starting\n{self.sandbox.ready_line}\n"

    def shell(self, script):
        return self.exec(["sh", "-c", script])

    def write_file(self, path, content):
        self.files[path] = content

    def read_file(self, path, missing_ok=False):
        if missing_ok:
            return self.files.get(path, "")
        return self.files[path]

    def close(self):
        if not self.closed:
            self.closed = True
            self.network.close()

    def _keygen(self, command):
        origin = command[-1]
        if origin == self.sandbox.fail_keygen_for:
            raise CommandError(command, 1, "", "dnssec-keygen: fatal: failure")
        ksk = "KSK" in command
        text, tag = _fake_dnskey(origin, ksk)
        basename = f"K{origin}+008+{tag:05d}"
        key_dir = command[command.index("-K") + 1]
        self.files[f"{key_dir}/{basename}.key"] = f"; fake key\n{text}\n"
        return f"{basename}\n"

    def _signzone(self, command):
        signed = command[command.index("-f") + 1]
        unsigned = command[command.index("-k") + 2]
        origin = dns.name.from_text(command[command.index("-o") + 1])
        owner = dns.name.from_text(NSEC3Fixture().hash(origin), origin)
        nsec3 = f"{owner} 86400 IN NSEC3 1 0 1 - {owner.labels[0].decode()} NS SOA\n"
        self.files[signed] = self.files[unsigned] + nsec3
        return ""

    def _dsfromkey(self, command):
        digest = {"-1": "SHA1", "-2": "SHA256"}[command[3]]
        key = dnstest.record.from_text(self.files[command[-1]].splitlines()[-1])
        ds = dns.dnssec.make_ds(
            key.name, key[0], digest, policy=dns.dnssec.allow_all_policy
        )
        return dns.rrset.from_rdata(key.name, key.ttl, ds).to_text() + "\n"

    def _dig(self, command):
        return self.sandbox.dig_output


@pytest.fixture
def fake_sandbox(monkeypatch):
    sandbox = FakeSandbox()
    monkeypatch.setattr(FakeContainer, "sandbox", sandbox)
    for module in (dnstest.nameserver, dnstest.resolver, dnstest.client):
        monkeypatch.setattr(module, "Container", FakeContainer)
    yield sandbox
