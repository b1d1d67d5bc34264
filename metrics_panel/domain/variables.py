"""Label-value lookups for template variables.

For every recognized variable present in a template and not yet bound, one
lookup is issued against the first datasource. Lookups run concurrently and
are best-effort: a failed lookup leaves its variable unbound and is only
logged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from ..adapters import QueryBackend
from ..schemas.query_contract import ErrorKind, LabelValuesRequest
from ..utils.correlation import get_request_id
from ..utils.partial_results import FailureInfo, gather_partial
from .errors import LookupFailure
from .templating import detect_variables, extract_metric_name

logger = logging.getLogger(__name__)


@dataclass
class VariableResolution:
    """Outcome of one resolver pass.

    Attributes
    ----------
    present: Tuple[str, ...]
        Recognized variables found in the template.
    metric_name: str
        Metric filter sent with the lookups, empty when none was extracted.
    options: Dict[str, List[str]]
        Values returned per successfully looked-up variable.
    bindings: Dict[str, str]
        Input bindings plus the first value of each newly fetched list for
        variables that had none.
    failures: List[FailureInfo]
        One entry per failed lookup.
    """

    present: Tuple[str, ...] = ()
    metric_name: str = ""
    options: Dict[str, List[str]] = field(default_factory=dict)
    bindings: Dict[str, str] = field(default_factory=dict)
    failures: List[FailureInfo] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        """True when every present variable ended up bound."""
        return all(self.bindings.get(name) for name in self.present)


class VariableResolver:
    """Resolve unbound template variables from live label values.

    Parameters
    ----------
    backend: QueryBackend
        Collaborator providing ``label_values``.
    timeout: float, optional
        Per-lookup timeout in seconds.
    """

    def __init__(self, backend: QueryBackend, timeout: Optional[float] = 5.0) -> None:
        self._backend = backend
        self._timeout = timeout

    async def _lookup(
        self, datasource_id: str, label_name: str, metric_name: str
    ) -> List[str]:
        req = LabelValuesRequest(
            datasource_id=datasource_id,
            label_name=label_name,
            metric_name=metric_name or None,
        )
        resp = await self._backend.label_values(req)
        if not resp.ok:
            raise LookupFailure(
                label_name, resp.msg or f"unexpected response code {resp.code}"
            )
        return list(resp.data or [])

    async def resolve(
        self,
        template: str,
        datasources: Sequence[str],
        bindings: Mapping[str, Optional[str]],
    ) -> VariableResolution:
        """Look up options for unbound variables and auto-bind first values.

        Nothing is fetched when the template is blank, no datasource is
        given, or no recognized variable is present.
        """
        present = detect_variables(template)
        resolved = {name: value for name, value in bindings.items() if value}
        result = VariableResolution(present=present, bindings=resolved)
        if not template.strip() or not datasources or not present:
            return result

        pending = [name for name in present if not resolved.get(name)]
        if not pending:
            return result

        result.metric_name = extract_metric_name(template)
        datasource_id = datasources[0]
        logger.debug(
            "variables.lookup.start",
            extra={
                "req_id": get_request_id(),
                "datasource_id": datasource_id,
                "variables": pending,
                "metric_name": result.metric_name,
            },
        )
        outcome = await gather_partial(
            {
                name: self._lookup(datasource_id, name, result.metric_name)
                for name in pending
            },
            operation_type="label_values",
            timeout=self._timeout,
        )

        for name in pending:
            values = outcome.successes.get(name)
            if values is None:
                continue
            result.options[name] = values
            if values and not result.bindings.get(name):
                result.bindings[name] = values[0]

        result.failures = list(outcome.failures)
        for failure in result.failures:
            logger.warning(
                "variables.lookup.failed",
                extra={
                    "req_id": get_request_id(),
                    "error_kind": ErrorKind.LOOKUP_FAILURE.value,
                    "variable": failure.identifier,
                    "error_type": failure.error_type,
                    "error": failure.error,
                },
            )
        return result
