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
Build a complete authority hierarchy for a leaf zone.

The shape of the hierarchy is computed first as a plain `GraphPlan` value,
which makes it easy to inspect (and test) without starting any containers:

>>> p = plan("example.com.")
>>> [str(zone) for zone in p.zones]
['.', 'com.', 'example.com.', 'nameservers.com.']
>>> [str(zone) for zone in p.signing_order()]
['example.com.', 'nameservers.com.', 'com.', '.']

`Graph.build()` then materializes the plan around an already populated leaf
`NameServer`.
"""

from contextlib import ExitStack
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union

from dns.name import Name

from .dnssec import SignSettings, TrustAnchor
from .name import NAMESERVERS, ROOT, ancestors, fqdn
from .nameserver import NameServer, RunningNameServer
from .resolver import Root
from . import record
import dnstest.log


@dataclass(frozen=True)
class Delegation:
    parent: Name
    child: Name


@dataclass(frozen=True)
class GraphPlan:
    leaf: Name
    zones: Tuple[Name, ...]
    delegations: Tuple[Delegation, ...]
    infrastructure: Name = NAMESERVERS

    def parent_of(self, zone: Name) -> Optional[Name]:
        for delegation in self.delegations:
            if delegation.child == zone:
                return delegation.parent
        return None

    def children_of(self, zone: Name) -> List[Name]:
        return [d.child for d in self.delegations if d.parent == zone]

    def signing_order(self) -> List[Name]:
        """Zones ordered so that every child precedes its parent."""
        return sorted(self.zones, key=lambda zone: (-len(zone), zone))


def plan(leaf_zone: Union[str, Name]) -> GraphPlan:
    leaf = fqdn(leaf_zone)
    if leaf == ROOT:
        raise ValueError("the leaf zone must be below the root")
    zones = {leaf, NAMESERVERS}
    zones.update(ancestors(leaf))
    zones.update(ancestors(NAMESERVERS))
    ordered = tuple(sorted(zones, key=lambda zone: (len(zone), zone)))
    delegations = tuple(
        Delegation(parent=zone.parent(), child=zone) for zone in ordered if zone != ROOT
    )
    return GraphPlan(leaf=leaf, zones=ordered, delegations=delegations)


class Graph:
    """
    Running authority hierarchy: all name servers are up and the root
    hint and trust anchor for a resolver are known.
    """

    def __init__(
        self,
        graph_plan: GraphPlan,
        nameservers: Dict[Name, RunningNameServer],
        trust_anchor: TrustAnchor,
    ) -> None:
        self.plan = graph_plan
        self._nameservers = nameservers
        self.trust_anchor = trust_anchor
        root_ns = nameservers[ROOT]
        self.root = Root(root_ns.fqdn, root_ns.ipv4_addr)

    @property
    def nameservers(self) -> List[RunningNameServer]:
        return [self._nameservers[zone] for zone in self.plan.zones]

    def nameserver(self, zone: Union[str, Name]) -> RunningNameServer:
        return self._nameservers[fqdn(zone)]

    @property
    def hosts(self) -> List[Name]:
        """Host names of all name servers."""
        return [ns.fqdn for ns in self.nameservers]

    @classmethod
    def build(cls, leaf: NameServer, sign: Optional[SignSettings] = None) -> "Graph":
        """
        Create the missing ancestors of `leaf` and the infrastructure zone,
        wire the referrals, sign bottom-up (when `sign` is given) and start
        every server.  On failure all containers created so far, including
        the one of `leaf`, are removed.
        """
        graph_plan = plan(leaf.zone)
        with ExitStack() as stack:
            stack.callback(leaf.close)
            builders = {leaf.zone: leaf}
            for zone in graph_plan.zones:
                if zone not in builders:
                    nameserver = NameServer(
                        leaf.implementation, zone, leaf.container.network
                    )
                    stack.callback(nameserver.close)
                    builders[zone] = nameserver

            infrastructure = builders[graph_plan.infrastructure]
            for nameserver in builders.values():
                if nameserver is not infrastructure:
                    infrastructure.add(
                        record.a(nameserver.fqdn, nameserver.ipv4_addr)
                    )

            for delegation in graph_plan.delegations:
                builders[delegation.parent].referral_nameserver(
                    builders[delegation.child]
                )

            trust_anchor = TrustAnchor()
            running = {}
            for zone in graph_plan.signing_order():
                node = builders[zone]
                if sign is not None:
                    node = node.sign(sign)
                    parent = graph_plan.parent_of(zone)
                    if parent is None:
                        trust_anchor.add(node.key_signing_key)
                        trust_anchor.add(node.zone_signing_key)
                    else:
                        builders[parent].add(node.ds)
                running[zone] = node.start()
                stack.callback(running[zone].terminate)

            graph = cls(graph_plan, running, trust_anchor)
            stack.pop_all()
        dnstest.log.info(
            "authority hierarchy running: "
            + ", ".join(f"{ns.zone} at {ns.ipv4_addr}" for ns in graph.nameservers)
        )
        return graph

    def terminate(self) -> Dict[Name, str]:
        """Stop all name servers, returning their logs keyed by zone."""
        logs = {}
        for zone in reversed(self.plan.zones):
            logs[zone] = str(self._nameservers[zone].terminate())
        return logs

    def __enter__(self) -> "Graph":
        return self

    def __exit__(self, *exc) -> None:
        self.terminate()
