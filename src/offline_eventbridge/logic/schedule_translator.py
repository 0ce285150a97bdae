"""
Translation of EventBridge schedule expressions into cron triggers.

EventBridge supports ``rate(<n> <unit>)`` and six-field ``cron(...)``
expressions (minutes, hours, day-of-month, month, day-of-week, year). The
scheduler runs standard five-field crontab expressions, so rates are expanded
and the year field is dropped.
https://docs.aws.amazon.com/eventbridge/latest/userguide/eb-scheduled-rule-pattern.html
"""

import re
from dataclasses import dataclass
from typing import Optional

from apscheduler.triggers.cron import CronTrigger

from offline_eventbridge.handlers.utils.observability import logger

SUBSYSTEM = 'schedule-translator'

_RATE_PATTERN = re.compile(r'^\s*rate\(\s*(\d+)\s+([A-Za-z]+)\s*\)\s*$')
_CRON_PATTERN = re.compile(r'^\s*cron\((.*)\)\s*$')
_DAY_OF_WEEK_TERM = re.compile(r'^(\*|\d+)(?:-(\d+))?(?:/(\d+))?$')
AWS_CRON_FIELD_COUNT = 6

# crontab numbering: 0 and 7 are Sunday
WEEKDAY_NAMES = ('sun', 'mon', 'tue', 'wed', 'thu', 'fri', 'sat')


def day_of_week_names(field: str) -> str:
    """
    Rewrite numeric crontab day-of-week terms as weekday names.

    APScheduler numbers weekdays from Monday (0) while crontab numbers them
    from Sunday (0 or 7), so numbers are never handed to ``CronTrigger``.
    Named terms (``MON-FRI``) are kept as written.

    Example:
        >>> day_of_week_names('1-5')
        'mon,tue,wed,thu,fri'

    Raises:
        ValueError: If a numeric term is out of range.
    """
    if field == '*':
        return field

    terms = []
    for term in field.split(','):
        match = _DAY_OF_WEEK_TERM.match(term)
        if not match:
            terms.append(term)
            continue

        start, end, step = match.groups()
        if start == '*':
            if step is None:
                terms.append(term)
                continue
            first, last = 0, 6
        else:
            first = int(start)
            if end is not None:
                last = int(end)
            else:
                last = 6 if step is not None else first

        if last > 7 or first > last:
            raise ValueError(f'invalid day-of-week term {term!r}')
        terms.extend(WEEKDAY_NAMES[day % 7] for day in range(first, last + 1, int(step or 1)))

    return ','.join(dict.fromkeys(terms))


@dataclass(frozen=True)
class RecurringTrigger:
    """Five-field crontab expression."""

    minute: str
    hour: str
    day: str
    month: str
    day_of_week: str

    @property
    def expression(self) -> str:
        return ' '.join((self.minute, self.hour, self.day, self.month, self.day_of_week))

    def to_trigger(self, timezone: str = 'UTC') -> CronTrigger:
        """
        Build the scheduler trigger.

        Raises:
            ValueError: If a field is not a valid cron field.
        """
        return CronTrigger(
            minute=self.minute,
            hour=self.hour,
            day=self.day,
            month=self.month,
            day_of_week=day_of_week_names(self.day_of_week),
            timezone=timezone,
        )

    def __str__(self) -> str:
        return self.expression


def _translate_rate(value: str, unit: str) -> Optional[RecurringTrigger]:
    unit = unit.lower()
    if unit.startswith('minute'):
        return RecurringTrigger(f'*/{value}', '*', '*', '*', '*')
    if unit.startswith('hour'):
        return RecurringTrigger('0', f'*/{value}', '*', '*', '*')
    if unit.startswith('day'):
        return RecurringTrigger('0', '0', f'*/{value}', '*', '*')
    return None


def _translate_cron(body: str) -> Optional[RecurringTrigger]:
    fields = body.split()
    if len(fields) != AWS_CRON_FIELD_COUNT:
        return None
    # "?" is the AWS "no specific value" marker for day-of-month / day-of-week
    minute, hour, day, month, day_of_week = (field.replace('?', '*') for field in fields[:5])
    return RecurringTrigger(minute, hour, day, month, day_of_week)


def translate(schedule_expression: str) -> Optional[RecurringTrigger]:
    """
    Convert a schedule expression into a recurring trigger.

    Returns ``None`` for unsupported rate units and malformed expressions;
    never raises.

    Example:
        >>> translate('rate(5 minutes)').expression
        '*/5 * * * *'
        >>> translate('cron(0 5 * * ? *)').expression
        '0 5 * * *'
    """
    if not isinstance(schedule_expression, str):
        return None

    trigger: Optional[RecurringTrigger] = None
    rate = _RATE_PATTERN.match(schedule_expression)
    cron = _CRON_PATTERN.match(schedule_expression)
    if rate:
        trigger = _translate_rate(*rate.groups())
    elif cron:
        trigger = _translate_cron(cron.group(1))

    if trigger is None:
        logger.debug(
            'Unsupported schedule expression',
            extra={'subsystem': SUBSYSTEM, 'schedule': schedule_expression}
        )
        return None

    try:
        trigger.to_trigger()
    except ValueError as exc:
        logger.debug(
            'Schedule expression produced an invalid cron trigger',
            extra={'subsystem': SUBSYSTEM, 'schedule': schedule_expression, 'error': str(exc)}
        )
        return None

    return trigger
