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
Thin wrappers around the `docker` CLI.

Everything the harness needs from the sandbox runtime goes through the
functions in this module: creating and removing networks, running, executing
into and removing containers, and building images.
"""

from typing import List, Optional

from dnstest.errors import CommandError
from dnstest.vars import ALL
import dnstest.log
import dnstest.run


def docker(args: List[str], input_text: Optional[bytes] = None, **kwargs) -> str:
    """Run `docker <args>` and return its stdout; raise CommandError on failure."""
    return dnstest.run.output([ALL["DOCKER"]] + args, input_text=input_text, **kwargs)


def create_network(name: str, subnet: str, internal=True, attachable=True) -> None:
    args = ["network", "create"]
    if internal:
        args.append("--internal")
    if attachable:
        args.append("--attachable")
    args += ["--subnet", subnet, name]
    docker(args)


def remove_network(name: str) -> None:
    """Best-effort removal, errors are logged and ignored."""
    try:
        docker(["network", "rm", "--force", name], log_stdout=False)
    except CommandError as exc:
        dnstest.log.debug(f"failed to remove network {name}: {exc.stderr.strip()}")


def inspect_network(name: str) -> str:
    """Return the subnet (CIDR) of network `name`."""
    return docker(
        ["network", "inspect", "-f", "{{range .IPAM.Config}}{{.Subnet}}{{end}}", name]
    ).strip()


def network_subnets() -> List[str]:
    """Return subnets of all docker networks known to the docker daemon."""
    ids = docker(["network", "ls", "-q"]).split()
    if not ids:
        return []
    out = docker(
        ["network", "inspect", "-f", "{{range .IPAM.Config}}{{.Subnet}} {{end}}"] + ids
    )
    return [subnet for subnet in out.split() if ":" not in subnet]


def run_container(
    image: str, name: str, network: str, command: Optional[List[str]] = None
) -> str:
    """Start a detached container and return its id."""
    args = ["run", "--rm", "--detach", "--name", name, "--network", network, image]
    if command:
        args += command
    return docker(args).strip()


def container_ipv4_addr(container_id: str) -> str:
    return docker(
        [
            "inspect",
            "-f",
            "{{range .NetworkSettings.Networks}}{{.IPAddress}}{{end}}",
            container_id,
        ]
    ).strip()


def exec_in(
    container_id: str,
    command: List[str],
    input_text: Optional[bytes] = None,
    detach=False,
    **kwargs,
) -> str:
    args = ["exec"]
    if input_text is not None:
        args.append("--interactive")
    if detach:
        args.append("--detach")
    return docker(args + [container_id] + command, input_text=input_text, **kwargs)


def remove_container(container_id: str) -> None:
    """Best-effort removal, errors are logged and ignored."""
    try:
        docker(["rm", "--force", container_id], log_stdout=False)
    except CommandError as exc:
        dnstest.log.debug(
            f"failed to remove container {container_id}: {exc.stderr.strip()}"
        )


def image_exists(tag: str) -> bool:
    try:
        docker(["image", "inspect", tag], log_stdout=False)
    except CommandError:
        return False
    return True


def build_image(tag: str, dockerfile: str) -> None:
    """Build image `tag` from a Dockerfile passed on stdin (no build context)."""
    docker(["build", "--tag", tag, "-"], input_text=dockerfile.encode(), timeout=1800)
