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
Authoritative name servers of a test hierarchy.

A name server goes through three states, each represented by its own class:

- `NameServer` - records are being added, referrals registered
- `SignedNameServer` - the zone has been signed, no more records can be added
- `RunningNameServer` - the server process is up and serving the zone

Each transition consumes the previous object:

```python
ns = NameServer("bind", "example.com.", network)
ns.add(record.a("www.example.com.", "192.0.2.1"))
signed = ns.sign()
parent.add(signed.ds)
running = signed.start()
```
"""

import posixpath
import re
from typing import Optional, Union

from dns.name import Name, NameRelation
import dns.rrset

from .container import Container, Image
from .dnssec import DNSKey, SignSettings, SignedZone, Signer, ZONE_DIR, zone_file_name
from .errors import ServerStartError
from .log import Log, LogTimeout, wait_for_line
from .name import fqdn, nameserver_fqdn
from .network import Network
from .vars import ALL
from .zone import ZoneFile
from . import record
import dnstest.log
import dnstest.template
import dnstest.util

CONFIG_PATH = "/etc/dnstest/named.conf"
LOG_PATH = "/var/log/dnstest/named.log"

RUNNING_RE = re.compile(r"\brunning$")
FATAL_RE = re.compile(r"exiting \(due to fatal error\)")


def _in_zone(name: Name, zone: Name) -> bool:
    relation, _, _ = name.fullcompare(zone)
    return relation in (NameRelation.EQUAL, NameRelation.SUBDOMAIN)


class NameServer:
    """
    Authoritative server of `zone` which is still being built.

    The sandbox container is started right away so that the address of the
    server is known before the zone is finished; the server process itself
    is only started by `start()`.
    """

    def __init__(
        self, implementation: str, zone: Union[str, Name], network: Network
    ) -> None:
        self.implementation = implementation
        self.zone = fqdn(zone)
        self.fqdn = nameserver_fqdn(dnstest.util.unique_id())
        self.container = Container(Image.from_implementation(implementation), network)
        self.zonefile = ZoneFile.new(self.zone, self.fqdn)
        if _in_zone(self.fqdn, self.zone):
            self.zonefile.add(record.a(self.fqdn, self.ipv4_addr))
        self._consumed_by: Optional[str] = None

    @property
    def ipv4_addr(self) -> str:
        return self.container.ipv4_addr

    def _check_usable(self) -> None:
        if self._consumed_by is not None:
            raise RuntimeError(
                f"name server for {self.zone} can't be modified, "
                f"it has been {self._consumed_by}"
            )

    def add(self, rrset: dns.rrset.RRset) -> "NameServer":
        self._check_usable()
        self.zonefile.add(rrset)
        return self

    def referral(
        self, zone: Union[str, Name], nameserver: Union[str, Name], ipv4_addr: str
    ) -> "NameServer":
        """
        Delegate `zone` to `nameserver`.  The glue address is only added
        when the name server's host name lives in this zone; otherwise the
        host name has to be resolvable through another referral.
        """
        self._check_usable()
        zone = fqdn(zone)
        nameserver = fqdn(nameserver)
        if not _in_zone(zone, self.zone) or zone == self.zone:
            raise ValueError(f"{zone} is not a child of {self.zone}")
        self.zonefile.add(record.ns(zone, nameserver))
        if _in_zone(nameserver, self.zone):
            self.zonefile.add(record.a(nameserver, ipv4_addr))
        return self

    def referral_nameserver(self, child) -> "NameServer":
        return self.referral(child.zone, child.fqdn, child.ipv4_addr)

    def sign(self, settings: Optional[SignSettings] = None) -> "SignedNameServer":
        self._check_usable()
        settings = settings or SignSettings()
        signed = Signer(self.container, settings).sign(self.zonefile)
        self._consumed_by = "signed"
        return SignedNameServer(self, signed, settings)

    def start(self) -> "RunningNameServer":
        self._check_usable()
        self._consumed_by = "started"
        return _start(
            self.implementation, self.zone, self.fqdn, self.zonefile, self.container
        )

    def zone_file(self) -> str:
        return self.zonefile.to_text()

    def close(self) -> None:
        self.container.close()

    def __enter__(self) -> "NameServer":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"NameServer({self.zone}, {self.fqdn}, {self.ipv4_addr})"


class SignedNameServer:
    """Name server with a signed, immutable zone."""

    def __init__(
        self, nameserver: NameServer, signed: SignedZone, settings: SignSettings
    ) -> None:
        self.implementation = nameserver.implementation
        self.zone = nameserver.zone
        self.fqdn = nameserver.fqdn
        self.container = nameserver.container
        self.settings = settings
        self._signed = signed
        self._started = False

    @property
    def ipv4_addr(self) -> str:
        return self.container.ipv4_addr

    @property
    def ds(self) -> dns.rrset.RRset:
        """DS record to be installed in the parent zone."""
        return self._signed.ds

    @property
    def key_signing_key(self) -> DNSKey:
        return self._signed.ksk

    @property
    def zone_signing_key(self) -> DNSKey:
        return self._signed.zsk

    @property
    def signed_zone_file(self) -> ZoneFile:
        return self._signed.zonefile

    def start(self) -> "RunningNameServer":
        if self._started:
            raise RuntimeError(f"name server for {self.zone} already started")
        self._started = True
        return _start(
            self.implementation,
            self.zone,
            self.fqdn,
            self.signed_zone_file,
            self.container,
        )

    def zone_file(self) -> str:
        return self.signed_zone_file.to_text()

    def close(self) -> None:
        self.container.close()

    def __enter__(self) -> "SignedNameServer":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"SignedNameServer({self.zone}, {self.fqdn}, {self.ipv4_addr})"


class RunningNameServer:
    """Name server process serving its zone; `terminate()` collects its log."""

    def __init__(
        self, zone: Name, nameserver: Name, zonefile: ZoneFile, container: Container
    ) -> None:
        self.zone = zone
        self.fqdn = nameserver
        self.zonefile = zonefile
        self.container = container
        self._log: Optional[Log] = None

    @property
    def ipv4_addr(self) -> str:
        return self.container.ipv4_addr

    def logs(self) -> Log:
        if self._log is not None:
            return self._log
        text = self.container.read_file(LOG_PATH, missing_ok=True)
        return Log(f"{self.fqdn} ({self.zone})", text)

    def terminate(self) -> Log:
        """Stop the server and return its log; safe to call more than once."""
        if self._log is None:
            try:
                self._log = self.logs()
            except Exception as exc:  # pylint: disable=broad-except
                dnstest.log.debug(f"could not retrieve log of {self.fqdn}: {exc}")
                self._log = Log(str(self.fqdn), "")
            self.container.close()
        return self._log

    def zone_file(self) -> str:
        return self.zonefile.to_text()

    def __enter__(self) -> "RunningNameServer":
        return self

    def __exit__(self, *exc) -> None:
        self.terminate()

    def __repr__(self) -> str:
        return f"RunningNameServer({self.zone}, {self.fqdn}, {self.ipv4_addr})"


def _start(
    implementation: str,
    zone: Name,
    nameserver: Name,
    zonefile: ZoneFile,
    container: Container,
) -> RunningNameServer:
    if implementation != "bind":
        raise ValueError(f"unsupported authoritative server {implementation!r}")
    zone_path = posixpath.join(ZONE_DIR, zone_file_name(zone) + ".served")
    container.write_file(zone_path, zonefile.to_text())
    config = dnstest.template.render(
        "named-auth.conf.j2",
        {
            "ipv4_addr": container.ipv4_addr,
            "zone": zone.to_text(),
            "zone_file": zone_path,
        },
    )
    container.write_file(CONFIG_PATH, config)
    container.shell(f"mkdir -p {posixpath.dirname(LOG_PATH)}")
    container.exec_detached(
        ["sh", "-c", f"exec named -g -c {CONFIG_PATH} > {LOG_PATH} 2>&1"]
    )
    running = RunningNameServer(zone, nameserver, zonefile, container)
    wait_until_running(running.logs, f"name server {nameserver} ({zone})")
    dnstest.log.info(f"name server {nameserver} serving {zone} at {running.ipv4_addr}")
    return running


def wait_until_running(fetch, what: str, ready=RUNNING_RE, fatal=FATAL_RE) -> None:
    """Wait until the server log says it's up, fail with the full log otherwise."""
    timeout = float(ALL["DNSTEST_START_TIMEOUT"])
    try:
        match = wait_for_line(fetch, [ready, fatal], timeout=timeout)
    except LogTimeout:
        raise ServerStartError(what, str(fetch())) from None
    if fatal.search(match.string):
        raise ServerStartError(what, str(fetch()))
