"""Column mapping for the Cortex ``met`` stream.

Metrics frames carry a bare numeric array. Its meaning comes from the
column list the service returns once, in the ``subscribe`` acknowledgment,
for example::

    ["eng.isActive", "eng", "exc.isActive", "exc", "lex",
     "str.isActive", "str", "rel.isActive", "rel",
     "int.isActive", "int", "foc.isActive", "foc"]

A metric ``X`` with a sibling ``X.isActive`` column is only trusted while
that flag is true; otherwise it reads as 0.
"""

import logging
import threading
from typing import Any, Dict, List, Optional, Sequence

from cortexgrid.core.events import PerformanceMetricsEvent
from cortexgrid.core.exceptions import SchemaNotReadyError


logger = logging.getLogger(__name__)


ACTIVE_SUFFIX = ".isActive"

# Cortex short names -> PerformanceMetricsEvent fields
METRIC_FIELDS = {
    "exc": "excitement",
    "eng": "engagement",
    "str": "stress",
    "rel": "relaxation",
    "int": "interest",
    "foc": "focus",
}


def _as_float(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


class MetricsColumnMapper:
    """Turns positional ``met`` arrays into named, validity-gated values.

    The schema is captured once per subscription and replaced when the
    client resubscribes. Until a schema is known no frame is interpretable.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._columns: Optional[List[str]] = None

    @property
    def columns(self) -> Optional[List[str]]:
        columns = self._columns
        return list(columns) if columns is not None else None

    @property
    def has_schema(self) -> bool:
        return self._columns is not None

    def set_schema(self, columns: Sequence[str]) -> None:
        """Store the column names verbatim, replacing any previous schema."""
        with self._lock:
            previous = self._columns
            self._columns = [str(c) for c in columns]
        if previous is not None and previous != self._columns:
            logger.info("Metrics schema replaced: %s", self._columns)
        else:
            logger.debug("Metrics schema captured: %s", self._columns)

    def reset(self) -> None:
        """Forget the schema; frames are dropped until the next subscription."""
        with self._lock:
            self._columns = None

    def map(self, values: Sequence[Any]) -> Dict[str, float]:
        """Zip column names to values and apply ``.isActive`` gating.

        Args:
            values: The raw ``met`` array.

        Returns:
            Mapping of metric column name to value. Validity columns are not
            included.

        Raises:
            SchemaNotReadyError: If no schema has been captured yet.
        """
        columns = self._columns
        if columns is None:
            raise SchemaNotReadyError()

        raw: Dict[str, Any] = {}
        for index, name in enumerate(columns):
            raw[name] = values[index] if index < len(values) else None

        metrics: Dict[str, float] = {}
        for name, value in raw.items():
            if name.endswith(ACTIVE_SUFFIX):
                continue
            flag_name = name + ACTIVE_SUFFIX
            if flag_name in raw and raw[flag_name] is not True:
                metrics[name] = 0.0
            else:
                metrics[name] = _as_float(value)
        return metrics

    def to_event(
        self,
        values: Sequence[Any],
        headset_id: str,
        timestamp: float,
    ) -> PerformanceMetricsEvent:
        """Map a ``met`` array straight to a PerformanceMetricsEvent.

        Metrics the schema does not carry read as 0; every value is clamped
        to 0.0 .. 1.0.

        Raises:
            SchemaNotReadyError: If no schema has been captured yet.
        """
        metrics = self.map(values)
        fields = {
            field_name: max(0.0, min(1.0, metrics.get(short_name, 0.0)))
            for short_name, field_name in METRIC_FIELDS.items()
        }
        return PerformanceMetricsEvent(
            timestamp=timestamp,
            headset_id=headset_id,
            **fields,
        )
