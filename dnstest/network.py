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

"""
Allocation of isolated docker networks for sandboxed DNS tests.

Every test gets its own `--internal` docker network with a private /24
subnet.  Tests run in parallel, so the subnet must not collide with any
network already present on the host (including the ones created by other
test processes).  Two strategies are implemented:

- "scan": inspect host interfaces and existing docker networks, then walk a
  fixed ladder of candidate /24s and take the first unused one.  The
  inspect-then-create step is serialized across processes with a lock file.

- "random": pick a /24 from a fixed partition of the private address space
  (see `subnet()`), skipping the ones overlapping host interfaces and docker
  networks, and let docker reject it if another process took it meanwhile.
  Retry a bounded number of times.  With `k` foreign /24s appearing in the
  pool after the inspection, one attempt collides with probability about
  k / MAX_SUBNETS and all `n` attempts fail with probability of roughly
  (k / MAX_SUBNETS) ** n, e.g. less than 2e-5 for k = 100 and n = 3.

Both strategies stay away from 172.17.0.0/16, the docker default bridge.
"""

from contextlib import contextmanager
from ipaddress import IPv4Address, IPv4Network, ip_network
from typing import Iterator, List, Optional, Tuple
import fcntl
import os
import random
import socket
import threading

import psutil

from dnstest.errors import CommandError, NetworkAllocationError
from dnstest.vars import ALL
from dnstest.vars.basic import MARKER
import dnstest.docker
import dnstest.log
import dnstest.util
import dnstest.vars.network

InUse = List[Tuple[IPv4Address, int]]

DOCKER_BRIDGE = ip_network("172.17.0.0/16")

POOLS = (
    ip_network("172.18.0.0/15"),
    ip_network("172.20.0.0/14"),
    ip_network("172.24.0.0/13"),
    ip_network("192.168.0.0/16"),
)

MAX_SUBNETS = sum(pool.num_addresses // 256 for pool in POOLS)

_ALLOCATION_LOCK = threading.Lock()


def subnet(index: int) -> str:
    """
    Map `index` in <0, MAX_SUBNETS) to a /24 subnet in CIDR notation.

    >>> subnet(0)
    '172.18.0.0/24'
    >>> subnet(511)
    '172.19.255.0/24'
    >>> subnet(512)
    '172.20.0.0/24'
    >>> subnet(MAX_SUBNETS - 1)
    '192.168.255.0/24'
    """
    if not 0 <= index < MAX_SUBNETS:
        raise ValueError(f"subnet index {index} out of range <0, {MAX_SUBNETS})")
    for pool in POOLS:
        count = pool.num_addresses // 256
        if index < count:
            return str(IPv4Network((int(pool.network_address) + index * 256, 24)))
        index -= count
    raise AssertionError("unreachable")


def candidates() -> Iterator[IPv4Address]:
    """Ladder of /24 network addresses tried by the "scan" strategy."""
    for c in range(256):
        yield IPv4Address(f"192.168.{c}.0")
    for b in range(16, 32):
        for c in range(256):
            candidate = IPv4Address(f"172.{b}.{c}.0")
            if candidate in DOCKER_BRIDGE:
                continue
            yield candidate
    for b in range(256):
        for c in range(256):
            yield IPv4Address(f"10.{b}.{c}.0")


def overlaps_with(candidate: IPv4Address, address: IPv4Address, bits: int) -> bool:
    """
    Check whether the /24 `candidate` overlaps with `address`/`bits`.

    Only the high-order bits shared by both prefixes are compared, so the
    netmasks don't have to match.

    >>> overlaps_with(IPv4Address("10.1.2.0"), IPv4Address("10.1.0.1"), 16)
    True
    >>> overlaps_with(IPv4Address("10.1.2.0"), IPv4Address("10.1.3.1"), 24)
    False
    >>> overlaps_with(IPv4Address("10.1.2.0"), IPv4Address("10.1.2.77"), 30)
    True
    """
    shared = min(24, bits)
    mask = (0xFFFFFFFF << (32 - shared)) & 0xFFFFFFFF
    return int(candidate) & mask == int(address) & mask


def overlaps_with_any(candidate: IPv4Address, in_use: InUse) -> bool:
    for address, bits in in_use:
        if overlaps_with(candidate, address, bits):
            return True
    return False


def choose_network(in_use: InUse) -> IPv4Address:
    for candidate in candidates():
        if not overlaps_with_any(candidate, in_use):
            return candidate
    raise NetworkAllocationError(
        "all candidate /24 subnets overlap with networks in use; "
        "remove stale networks with `dnstest-purge network`"
    )


def host_networks() -> InUse:
    """Return (address, netmask bits) of all IPv4 addresses on host interfaces."""
    in_use = []
    for addrs in psutil.net_if_addrs().values():
        for addr in addrs:
            if addr.family != socket.AF_INET or not addr.netmask:
                continue
            bits = IPv4Network(f"0.0.0.0/{addr.netmask}").prefixlen
            if bits == 0:
                continue
            in_use.append((IPv4Address(addr.address), bits))
    return in_use


def docker_networks() -> InUse:
    in_use = []
    for cidr in dnstest.docker.network_subnets():
        network = ip_network(cidr, strict=False)
        in_use.append((network.network_address, network.prefixlen))
    return in_use


@contextmanager
def _allocation_lock():
    """
    Serialize the inspect-then-create window between threads of this process
    and between concurrently running test processes.
    """
    with _ALLOCATION_LOCK:
        with open(ALL["DNSTEST_NETWORK_LOCK"], "a", encoding="utf-8") as lockfile:
            fcntl.flock(lockfile, fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lockfile, fcntl.LOCK_UN)


def _create(name: str, cidr: str) -> bool:
    try:
        dnstest.docker.create_network(name, cidr)
    except CommandError as exc:
        dnstest.log.debug(f"creating network {name} with subnet {cidr} failed: {exc}")
        return False
    return True


def allocate_scan(name: str, attempts: int) -> str:
    with _allocation_lock():
        in_use = host_networks() + docker_networks()
        for _ in range(attempts):
            candidate = choose_network(in_use)
            cidr = f"{candidate}/24"
            if _create(name, cidr):
                return cidr
            in_use.append((candidate, 24))
    raise NetworkAllocationError(
        f"could not create network {name} after {attempts} attempt(s)"
    )


def _network_address(index: int) -> IPv4Address:
    return IPv4Network(subnet(index)).network_address


def allocate_random(
    name: str, attempts: int, rng: Optional[random.Random] = None
) -> str:
    rng = rng or random.Random()
    in_use = host_networks() + docker_networks()
    free = [
        index
        for index in range(MAX_SUBNETS)
        if not overlaps_with_any(_network_address(index), in_use)
    ]
    for _ in range(attempts):
        if not free:
            break
        index = free.pop(rng.randrange(len(free)))
        cidr = subnet(index)
        if _create(name, cidr):
            return cidr
    raise NetworkAllocationError(
        f"could not create network {name} after {attempts} attempt(s)"
    )


class _NetworkInner:
    """The docker network itself, shared by all `Network` handles."""

    def __init__(self, name: str, subnet_cidr: str) -> None:
        self.name = name
        self.subnet = subnet_cidr
        self._refcount = 1
        self._lock = threading.Lock()

    def acquire(self) -> None:
        with self._lock:
            assert self._refcount > 0, f"network {self.name} already removed"
            self._refcount += 1

    def release(self) -> None:
        with self._lock:
            self._refcount -= 1
            last = self._refcount == 0
        if last:
            dnstest.log.debug(f"removing network {self.name}")
            dnstest.docker.remove_network(self.name)


class Network:
    """
    Reference-counted handle to an isolated docker network.

    The network is removed when the last handle is closed.  Handles are
    context managers; `clone()` returns another handle to the same network.

    ```python
    with Network.new() as network:
        ...  # network is removed on exit, even if the test fails
    ```
    """

    def __init__(self, inner: _NetworkInner) -> None:
        self._inner = inner
        self._closed = False

    @classmethod
    def new(cls, strategy: Optional[str] = None) -> "Network":
        if strategy is None:
            strategy = ALL["DNSTEST_NETWORK_STRATEGY"]
        attempts = dnstest.vars.network.attempts()
        name = f"{MARKER}-{os.getpid()}-{dnstest.util.unique_id()}"
        if strategy == "scan":
            allocate_scan(name, attempts)
        elif strategy == "random":
            allocate_random(name, attempts)
        else:
            raise ValueError(f"unknown network allocation strategy {strategy!r}")

        try:
            subnet_cidr = dnstest.docker.inspect_network(name)
        except CommandError:
            dnstest.docker.remove_network(name)
            raise
        dnstest.log.info(f"created network {name} with subnet {subnet_cidr}")
        return cls(_NetworkInner(name, subnet_cidr))

    @property
    def name(self) -> str:
        return self._inner.name

    @property
    def subnet(self) -> str:
        """CIDR subnet, e.g. "192.168.3.0/24"."""
        return self._inner.subnet

    def clone(self) -> "Network":
        if self._closed:
            raise RuntimeError(f"handle of network {self.name} already closed")
        self._inner.acquire()
        return Network(self._inner)

    def close(self) -> None:
        """Release this handle; the last release removes the network."""
        if self._closed:
            return
        self._closed = True
        self._inner.release()

    def __enter__(self) -> "Network":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Network({self.name!r}, {self.subnet!r})"
