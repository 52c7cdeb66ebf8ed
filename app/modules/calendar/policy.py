import json
import logging
from pathlib import Path
from app.core.config import Settings, settings as default_settings
from app.modules.calendar.schemas import CalendarPolicy, OpenHours

logger = logging.getLogger(__name__)

def policy_from_settings(s: Settings = default_settings) -> CalendarPolicy:
    if s.CALENDAR_POLICY_FILE:
        return load_policy_file(s.CALENDAR_POLICY_FILE)
    return CalendarPolicy(
        timezone=s.POLICY_TIMEZONE,
        business_hours={day: OpenHours(open=o, close=c) for day, (o, c) in s.BUSINESS_HOURS.items()},
        holidays=frozenset(s.HOLIDAYS),
        min_duration_minutes=s.MIN_DURATION_MINUTES,
        max_duration_minutes=s.MAX_DURATION_MINUTES,
    )

def load_policy_file(path: str | Path) -> CalendarPolicy:
    """Read a policy document such as::

        {"timezone": "Europe/London",
         "business_hours": {"0": {"open": "08:00", "close": "18:00"}},
         "holidays": ["2024-12-25"],
         "min_duration_minutes": 15, "max_duration_minutes": 240}
    """
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return CalendarPolicy.model_validate(data)

class PolicyProvider:
    """Holds the live policy; readers always see one complete policy object.

    The config collaborator swaps in a new policy with ``replace``/``reload``;
    in-flight checks keep the reference they already read.
    """

    def __init__(self, policy: CalendarPolicy, source: str | Path | None = None):
        self._policy = policy
        self._source = source

    def current(self) -> CalendarPolicy:
        return self._policy

    def replace(self, policy: CalendarPolicy) -> CalendarPolicy:
        previous, self._policy = self._policy, policy
        logger.info(
            "Calendar policy replaced: %d open weekdays, %d holidays, duration %d-%d min",
            len(policy.business_hours), len(policy.holidays),
            policy.min_duration_minutes, policy.max_duration_minutes,
        )
        return previous

    def reload(self) -> CalendarPolicy:
        if self._source is None:
            raise RuntimeError("policy provider has no file source to reload from")
        self.replace(load_policy_file(self._source))
        return self._policy
