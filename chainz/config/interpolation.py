"""Variable expansion for RPC URL templates.

Handles ``${VAR}`` placeholders in two passes: first from the explicit
``variables`` mapping stored in the config, then from the process
environment.  Placeholders that neither source knows are left unchanged.
"""

from __future__ import annotations

import os
import re
from typing import List, Mapping, Optional

# First ``${`` paired with the nearest following ``}``
_PLACEHOLDER_RE = re.compile(r"\$\{([^}]*)\}")


def expand(
    template: str,
    variables: Mapping[str, str],
    environ: Optional[Mapping[str, str]] = None,
) -> str:
    """Expand ``${NAME}`` placeholders in *template*.

    - Explicit *variables* are substituted first, including empty values.
    - Remaining placeholders are looked up in *environ* (``os.environ``
      when omitted); unknown names are left as literal text.
    - Never raises.
    """
    if not template or "${" not in template:
        return template

    result = template
    for name, value in variables.items():
        result = result.replace(f"${{{name}}}", value)

    env = os.environ if environ is None else environ
    return _PLACEHOLDER_RE.sub(
        lambda m: env.get(m.group(1), m.group(0)),
        result,
    )


class VariableInterpolator:
    """Binds a variable mapping (and optionally an environment) for reuse.

    Parameters
    ----------
    variables:
        Explicit name -> value mapping, consulted before the environment.
    environ:
        Environment lookup; defaults to ``os.environ`` at expansion time.
    """

    def __init__(
        self,
        variables: Optional[Mapping[str, str]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._variables = dict(variables or {})
        self._environ = environ

    def expand(self, template: str) -> str:
        return expand(template, self._variables, self._environ)

    def placeholders(self, template: str) -> List[str]:
        """Return the placeholder names still unresolved after expansion."""
        return _PLACEHOLDER_RE.findall(self.expand(template))
