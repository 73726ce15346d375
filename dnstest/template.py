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

from pathlib import Path
from typing import Any, Dict, Optional, Union

import jinja2

from .log import debug
from .vars import ALL

TEMPLATE_DIR = Path(__file__).parent / "templates"


class TemplateEngine:
    """
    Engine for rendering jinja2 templates of server configuration files,
    zone-independent root hints and Dockerfiles.
    """

    def __init__(self, directory: Union[str, Path] = TEMPLATE_DIR, env_vars=ALL):
        """
        Initialize the template engine for `directory`, optionally overriding
        the `env_vars` that will be used when rendering the templates (defaults
        to the harness configuration variables).
        """
        self.directory = Path(directory)
        self.env_vars = dict(env_vars)
        self.j2env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(str(self.directory)),
            undefined=jinja2.StrictUndefined,
            variable_start_string="@",
            variable_end_string="@",
            keep_trailing_newline=True,
        )

    def render(self, template: str, data: Optional[Dict[str, Any]] = None) -> str:
        """
        Render `template` and fill in the `data`. The variables which the
        engine was initialized with are also filled in. In case of a variable
        name clash, `data` has precedence.
        """
        if data is None:
            data = self.env_vars
        else:
            data = {**self.env_vars, **data}

        debug("rendering template `%s`", template)
        return self.j2env.get_template(template).render(data)


def render(template: str, data: Optional[Dict[str, Any]] = None) -> str:
    return TemplateEngine().render(template, data)
