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
from typing import Iterable, List, Union

from hypothesis.strategies import (
    binary,
    composite,
    integers,
    lists,
    sampled_from,
    text,
)

import dns.name

from dnstest.name import ROOT
from dnstest.network import MAX_SUBNETS
from dnstest.nsec3 import HashedNameTable, NSEC3Record

B32_TO_EXTENDED_HEX = bytes.maketrans(
    b"ABCDEFGHIJKLMNOPQRSTUVWXYZ234567", b"0123456789ABCDEFGHIJKLMNOPQRSTUV"
)

# Characters allowed in labels generated by dns_names(); letters are kept
# lower case so that generated names are distinct also after case folding.
LABEL_ALPHABET = "abcdefghijklmnopqrstuvwxyz0123456789-"


def subnet_indices():
    return integers(min_value=0, max_value=MAX_SUBNETS - 1)


@composite
def dns_names(
    draw,
    suffix: Union[dns.name.Name, Iterable[dns.name.Name]] = ROOT,
    min_labels: int = 1,
    max_labels: int = 4,
) -> dns.name.Name:
    """
    Absolute names made of `min_labels` to `max_labels` labels prepended to
    `suffix`, which may also be a collection of suffixes.
    """
    if isinstance(suffix, dns.name.Name):
        base = suffix
    else:
        base = draw(sampled_from(sorted(suffix)))
    labels = draw(
        lists(
            text(LABEL_ALPHABET, min_size=1, max_size=20),
            min_size=min_labels,
            max_size=max_labels,
        )
    )
    return dns.name.Name(labels) + base


def nsec3_hashes():
    """Random upper-case base32hex strings shaped like SHA-1 NSEC3 hashes."""
    return binary(min_size=20, max_size=20).map(
        lambda digest: base64.b32encode(digest)
        .translate(B32_TO_EXTENDED_HEX)
        .decode("ascii")
    )


def hashed_name_tables(min_size: int = 1, max_size: int = 50):
    return lists(nsec3_hashes(), min_size=min_size, max_size=max_size, unique=True).map(
        HashedNameTable
    )


def hash_chain(
    table: HashedNameTable, zone: dns.name.Name = ROOT
) -> List[NSEC3Record]:
    """The NSEC3 chain a correct server would publish for `table`."""
    return [
        NSEC3Record(
            owner_hash=owner,
            zone=zone,
            next_hashed_owner_name=table.find_next(owner),
            hash_algorithm=1,
            flags=0,
            salt="-",
            iterations=1,
        )
        for owner in table
    ]
