"""Query template inspection and variable substitution.

Templates are PromQL-style queries with ``$name`` placeholders. Only a fixed
set of variables (``instance``, ``ifName``) gets a value picker backed by
label-value lookups; the substitution helpers work with any name.
"""

from __future__ import annotations

import re
from typing import Dict, List, Mapping, Optional, Pattern, Tuple

INSTANCE_VARIABLE = "instance"
IFNAME_VARIABLE = "ifName"
RECOGNIZED_VARIABLES: Tuple[str, ...] = (INSTANCE_VARIABLE, IFNAME_VARIABLE)

WILDCARD_VALUE = '".+"'

_VARIABLE_RE = re.compile(r"\$([a-zA-Z_][a-zA-Z0-9_]*)")
_QUOTED_MATCHER_RE = re.compile(r'(\w+)=\\?"\$(\w+)\\?"')

# Ordered: first match wins. Interface counters first, then any selector name.
METRIC_NAME_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"(ifHCIn\w+|ifIn\w+|ifOut\w+|ifHCOut\w+)", re.ASCII),
    re.compile(r"(\w+)\{", re.ASCII),
)


def extract_variables(template: str) -> List[str]:
    """Return every ``$name`` placeholder in first-appearance order.

    Duplicates are reported once.

    >>> extract_variables('rate(x{instance="$instance"}[5m]) / $instance')
    ['instance']
    """
    seen: Dict[str, None] = {}
    for match in _VARIABLE_RE.finditer(template or ""):
        seen.setdefault(match.group(1), None)
    return list(seen)


def detect_variables(template: str) -> Tuple[str, ...]:
    """Return the recognized variables present in ``template``.

    The result follows the order of :data:`RECOGNIZED_VARIABLES`, so it can
    be compared across template edits to detect presence-flag changes.
    """
    present = set(extract_variables(template))
    return tuple(name for name in RECOGNIZED_VARIABLES if name in present)


def extract_metric_name(template: str) -> str:
    """Best-effort metric name used to narrow label-value lookups.

    >>> extract_metric_name('rate(ifHCInOctets{instance="$instance"}[5m])')
    'ifHCInOctets'
    >>> extract_metric_name('node_load1{job="node"}')
    'node_load1'
    >>> extract_metric_name("up")
    ''
    """
    for pattern in METRIC_NAME_PATTERNS:
        match = pattern.search(template or "")
        if match and match.group(1):
            return match.group(1)
    return ""


def unbound_variables(
    template: str, bindings: Mapping[str, Optional[str]]
) -> Tuple[str, ...]:
    """Recognized variables present in ``template`` with no bound value."""
    return tuple(name for name in detect_variables(template) if not bindings.get(name))


def substitute_variables(
    template: str,
    bindings: Mapping[str, Optional[str]],
    use_wildcard: bool = False,
) -> str:
    """Replace ``$name`` placeholders with their bound values.

    Unbound placeholders are left as they are, or replaced with a match-all
    pattern when ``use_wildcard`` is set.

    >>> substitute_variables('up{instance="$instance"}', {"instance": "a:9100"})
    'up{instance="a:9100"}'
    >>> substitute_variables("$job", {}, use_wildcard=True)
    '".+"'
    """
    if not bindings and not use_wildcard:
        return template

    def _replace(match: "re.Match[str]") -> str:
        value = bindings.get(match.group(1))
        if value:
            return value
        if use_wildcard:
            return WILDCARD_VALUE
        return match.group(0)

    return _VARIABLE_RE.sub(_replace, template)


def wildcard_unbound_matchers(
    template: str, bindings: Optional[Mapping[str, Optional[str]]] = None
) -> str:
    """Prepare a template for rule evaluation, where no picker exists.

    With bindings, this is plain substitution. Without any, every quoted
    ``label="$var"`` matcher becomes ``label=~".+"`` so the rule covers all
    series.

    >>> wildcard_unbound_matchers('up{instance="$instance"}')
    'up{instance=~".+"}'
    """
    if "$" not in template:
        return template
    if bindings:
        return substitute_variables(template, bindings)
    return _QUOTED_MATCHER_RE.sub(
        lambda m: f"{m.group(1)}=~{WILDCARD_VALUE}", template
    )
