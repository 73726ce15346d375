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
Remove leftovers of interrupted test runs.

Containers and networks created by the harness carry the `dnstest` marker in
their names; when a test process is killed they are not cleaned up.

    dnstest-purge               # containers first, then networks
    dnstest-purge container
    dnstest-purge network
"""

import argparse
import sys
from typing import List, Optional

from dnstest.errors import CommandError
from dnstest.vars.basic import MARKER
import dnstest.docker

KINDS = ("container", "network")

LIST_COMMANDS = {
    "container": ["ps"],
    "network": ["network", "ls"],
}

REMOVE_COMMANDS = {
    "container": ["rm", "-f"],
    "network": ["network", "rm"],
}

ID_LENGTH = 12


def marked_ids(listing: str, marker: str = MARKER) -> List[str]:
    """
    Return the short ids of lines of `docker ps`-like output naming `marker`.

    >>> marked_ids('''CONTAINER ID   IMAGE   NAMES
    ... 0123456789ab   x       dnstest-1-2
    ... ba9876543210   y       other''')
    ['0123456789ab']
    """
    return [line[:ID_LENGTH] for line in listing.splitlines() if marker in line]


def purge(kind: str) -> None:
    ids = marked_ids(dnstest.docker.docker(LIST_COMMANDS[kind]))
    if not ids:
        print(f"No {kind}s to be removed")
        return
    removed = dnstest.docker.docker(REMOVE_COMMANDS[kind] + ids)
    print(f"Removed {kind}s:")
    print(removed, end="")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="dnstest-purge",
        description=f"remove docker containers and networks marked '{MARKER}'",
    )
    parser.add_argument(
        "kind",
        nargs="?",
        choices=KINDS,
        help="remove only containers or only networks (default: both)",
    )
    args = parser.parse_args(argv)

    kinds = [args.kind] if args.kind else list(KINDS)
    try:
        for kind in kinds:
            purge(kind)
    except CommandError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
