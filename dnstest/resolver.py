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
The resolver under test.

The resolver runs in its own container next to the authority hierarchy and
is told about the root name server through a root hints file.  When a trust
anchor is given, DNSSEC validation is enabled with the root keys as the only
anchors.
"""

from dataclasses import dataclass
import re
from typing import Optional, Sequence

from dns.name import Name

from .container import Container, Image
from .dnssec import TrustAnchor
from .log import Log
from .network import Network
from .vars.basic import SUBJECTS
import dnstest.log
import dnstest.nameserver
import dnstest.template

CONF_DIR = "/etc/dnstest"
ROOT_HINTS_PATH = f"{CONF_DIR}/root.hints"
TRUST_ANCHOR_PATH = f"{CONF_DIR}/trust-anchor.keys"
LOG_PATH = "/var/log/dnstest/resolver.log"


@dataclass(frozen=True)
class Root:
    """Root hint: host name and address of a root name server."""

    fqdn: Name
    ipv4_addr: str


@dataclass(frozen=True)
class _Flavor:
    config_path: str
    template: str
    command: str
    ready: re.Pattern
    fatal: re.Pattern


FLAVORS = {
    "unbound": _Flavor(
        config_path=f"{CONF_DIR}/unbound.conf",
        template="unbound.conf.j2",
        command="unbound -d -c {config}",
        ready=re.compile(r"start of service"),
        fatal=re.compile(r"fatal error|error: could not"),
    ),
    "bind": _Flavor(
        config_path=f"{CONF_DIR}/named.conf",
        template="named-resolver.conf.j2",
        command="named -g -c {config}",
        ready=dnstest.nameserver.RUNNING_RE,
        fatal=dnstest.nameserver.FATAL_RE,
    ),
}
assert set(FLAVORS) == set(SUBJECTS)


class Resolver:
    def __init__(self, implementation: str, container: Container) -> None:
        self.implementation = implementation
        self.container = container
        self._log: Optional[Log] = None

    @classmethod
    def start(
        cls,
        implementation: str,
        roots: Sequence[Root],
        trust_anchor: TrustAnchor,
        network: Network,
    ) -> "Resolver":
        """
        Start resolver `implementation` ("unbound" or "bind") in `network`.
        An empty `trust_anchor` disables DNSSEC validation.
        """
        if implementation not in FLAVORS:
            raise ValueError(f"unsupported resolver {implementation!r}")
        if not roots:
            raise ValueError("at least one root hint is required")
        flavor = FLAVORS[implementation]
        container = Container(Image.from_implementation(implementation), network)
        resolver = cls(implementation, container)
        try:
            resolver._configure(flavor, roots, trust_anchor, network)
            container.shell("mkdir -p /var/log/dnstest")
            command = flavor.command.format(config=flavor.config_path)
            container.exec_detached(["sh", "-c", f"exec {command} > {LOG_PATH} 2>&1"])
            dnstest.nameserver.wait_until_running(
                resolver.logs,
                f"resolver {implementation}",
                ready=flavor.ready,
                fatal=flavor.fatal,
            )
        except Exception:
            resolver.terminate()
            raise
        dnstest.log.info(f"resolver {implementation} running at {resolver.ipv4_addr}")
        return resolver

    def _configure(self, flavor, roots, trust_anchor, network) -> None:
        hints = dnstest.template.render("root.hints.j2", {"roots": list(roots)})
        self.container.write_file(ROOT_HINTS_PATH, hints)
        anchor_file = ""
        if not trust_anchor.is_empty():
            self.container.write_file(TRUST_ANCHOR_PATH, trust_anchor.to_text())
            anchor_file = TRUST_ANCHOR_PATH
        config = dnstest.template.render(
            flavor.template,
            {
                "ipv4_addr": self.ipv4_addr,
                "subnet": network.subnet,
                "root_hints": ROOT_HINTS_PATH,
                "trust_anchor_file": anchor_file,
                "trust_anchors": trust_anchor.bind_statements(),
                "dnssec_validation": "no" if trust_anchor.is_empty() else "yes",
            },
        )
        self.container.write_file(flavor.config_path, config)

    @property
    def ipv4_addr(self) -> str:
        return self.container.ipv4_addr

    def logs(self) -> Log:
        if self._log is not None:
            return self._log
        text = self.container.read_file(LOG_PATH, missing_ok=True)
        return Log(f"resolver {self.implementation}", text)

    def terminate(self) -> Log:
        """Stop the resolver and return its log; safe to call more than once."""
        if self._log is None:
            try:
                self._log = self.logs()
            except Exception as exc:  # pylint: disable=broad-except
                dnstest.log.debug(f"could not retrieve resolver log: {exc}")
                self._log = Log(f"resolver {self.implementation}", "")
            self.container.close()
        return self._log

    def __enter__(self) -> "Resolver":
        return self

    def __exit__(self, *exc) -> None:
        self.terminate()

    def __repr__(self) -> str:
        return f"Resolver({self.implementation}, {self.ipv4_addr})"
