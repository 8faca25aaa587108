"""Reconciliation of CronJob resources against the Jobs they own."""

from __future__ import annotations

import copy
import logging
import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Iterable, Protocol

from .schedule import ScheduleError, parse_standard
from .types import (
    CONDITION_TRUE,
    CRON_JOB_KIND,
    JOB_COMPLETE,
    JOB_FAILED,
    ConcurrencyPolicy,
    CronJob,
    Job,
    ObjectMeta,
    group_version_string,
)

logger = logging.getLogger(__name__)

SCHEDULED_TIME_ANNOTATION = "batch.lumexralph.dev/scheduled-at"
JOB_OWNER_KEY = ".metadata.controller"
MAX_MISSED_STARTS = 100

_ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)
_RFC3339_RE = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:\d{2})"
)


class Clock(Protocol):
    """Knows how to tell the current time; lets tests fix the time."""

    def now(self) -> datetime: ...


class RealClock:
    """A clock that reads the system time."""

    def now(self) -> datetime:
        """Return the current local time, with its offset."""
        return datetime.now().astimezone()


class NotFoundError(LookupError):
    """Raised when a requested object does not exist."""


class TooManyMissedStartsError(ValueError):
    """Raised when a schedule has missed more starts than can be caught up on."""


class Client:
    """An in-memory store of CronJobs and Jobs.

    Objects handed out are copies, so changes only take effect once they
    are written back.
    """

    def __init__(self, cron_jobs: Iterable[CronJob] = (), jobs: Iterable[Job] = ()) -> None:
        self._cron_jobs: dict[tuple[str, str], CronJob] = {}
        self._jobs: dict[tuple[str, str], Job] = {}
        for cron_job in cron_jobs:
            self._cron_jobs[_key(cron_job.metadata)] = copy.deepcopy(cron_job)
        for job in jobs:
            self.create_job(job)

    def get_cron_job(self, namespace: str, name: str) -> CronJob:
        """Return a copy of the named CronJob."""
        try:
            return copy.deepcopy(self._cron_jobs[(namespace, name)])
        except KeyError:
            raise NotFoundError(f'cronjobs "{name}" not found in namespace "{namespace}"') from None

    def list_jobs(self, namespace: str, owner_name: str) -> list[Job]:
        """Return copies of the Jobs in a namespace controlled by the named CronJob."""
        found = [
            job
            for (job_namespace, _), job in self._jobs.items()
            if job_namespace == namespace and owner_name in job_owner_index(job)
        ]
        return [copy.deepcopy(job) for job in sorted(found, key=lambda j: j.metadata.name)]

    def update_cron_job(self, cron_job: CronJob) -> None:
        """Store a changed CronJob in place of the existing one."""
        key = _key(cron_job.metadata)
        if key not in self._cron_jobs:
            raise NotFoundError(f'cronjobs "{key[1]}" not found in namespace "{key[0]}"')
        self._cron_jobs[key] = copy.deepcopy(cron_job)

    def create_job(self, job: Job) -> None:
        """Store a new Job; its name must be free in its namespace."""
        key = _key(job.metadata)
        if key in self._jobs:
            raise ValueError(f'jobs "{key[1]}" already exists in namespace "{key[0]}"')
        self._jobs[key] = copy.deepcopy(job)

    def delete_job(self, job: Job) -> None:
        """Remove a Job."""
        key = _key(job.metadata)
        if self._jobs.pop(key, None) is None:
            raise NotFoundError(f'jobs "{key[1]}" not found in namespace "{key[0]}"')


def _key(meta: ObjectMeta) -> tuple[str, str]:
    return meta.namespace, meta.name


@dataclass(frozen=True)
class Result:
    """The outcome of one reconcile: when, if ever, to look again."""

    requeue_after: timedelta | None = None


def is_job_finished(job: Job) -> tuple[bool, str | None]:
    """Tell whether a Job has completed or failed, and which."""
    for condition in job.status.conditions:
        if condition.type in (JOB_COMPLETE, JOB_FAILED) and condition.status == CONDITION_TRUE:
            return True, condition.type
    return False, None


def _parse_rfc3339(text: str) -> datetime:
    match = _RFC3339_RE.fullmatch(text)
    if match is None:
        raise ValueError(f'cannot parse "{text}" as an RFC 3339 time')
    year, month, day, hour, minute, second, fraction, offset = match.groups()
    if offset == "Z":
        tz = timezone.utc
    else:
        sign = -1 if offset[0] == "-" else 1
        hours, minutes = int(offset[1:3]), int(offset[4:6])
        tz = timezone(sign * timedelta(hours=hours, minutes=minutes))
    micro = int((fraction or "0")[:6].ljust(6, "0"))
    return datetime(
        int(year), int(month), int(day), int(hour), int(minute), int(second), micro, tzinfo=tz
    )


def _format_rfc3339(moment: datetime) -> str:
    offset = moment.utcoffset()
    base = moment.strftime("%Y-%m-%dT%H:%M:%S")
    if not offset:
        return base + "Z"
    sign = "-" if offset < timedelta(0) else "+"
    minutes = abs(offset) // timedelta(minutes=1)
    return f"{base}{sign}{minutes // 60:02d}:{minutes % 60:02d}"


def scheduled_time_for_job(job: Job) -> datetime | None:
    """Return the time a Job was scheduled for, from its annotation.

    Returns None when the annotation is absent or empty and raises
    ValueError when it cannot be parsed.
    """
    raw = job.metadata.annotations.get(SCHEDULED_TIME_ANNOTATION, "")
    if not raw:
        return None
    return _parse_rfc3339(raw)


def next_schedule(cron_job: CronJob, now: datetime) -> tuple[datetime | None, datetime | None]:
    """Return the most recent missed run (or None) and the next run after ``now``.

    Raises ScheduleError for an unparseable schedule and
    TooManyMissedStartsError when more than 100 starts were missed.
    """
    schedule_text = cron_job.spec.schedule
    try:
        sched = parse_standard(schedule_text)
    except ScheduleError as err:
        raise ScheduleError(f'unparseable schedule "{schedule_text}": {err}') from None

    # Start from the last observed run rather than reconstructing it.
    if cron_job.status.last_schedule_time is not None:
        earliest = cron_job.status.last_schedule_time
    else:
        earliest = cron_job.metadata.creation_timestamp or _ZERO_TIME

    deadline_seconds = cron_job.spec.starting_deadline_seconds
    if deadline_seconds is not None:
        scheduling_deadline = now - timedelta(seconds=deadline_seconds)
        if scheduling_deadline > earliest:
            earliest = scheduling_deadline

    if earliest > now:
        return None, sched.next(now)

    last_missed: datetime | None = None
    starts = 0
    candidate = sched.next(earliest)
    while candidate is None or candidate <= now:
        # Too many missed starts means a bug or clock skew; stop counting them.
        starts += 1
        if candidate is None or starts > MAX_MISSED_STARTS:
            raise TooManyMissedStartsError(
                "too many missed start times (> 100). Set or decrease "
                ".spec.startingDeadlineSeconds or check clock skew"
            )
        last_missed = candidate
        candidate = sched.next(candidate)
    return last_missed, sched.next(now)


def construct_job(cron_job: CronJob, scheduled_time: datetime) -> Job:
    """Build the Job a CronJob runs at ``scheduled_time``.

    The name is derived from the scheduled time so that one nominal run
    never creates two Jobs.
    """
    template = cron_job.spec.job_template
    annotations = dict(template.metadata.annotations)
    annotations[SCHEDULED_TIME_ANNOTATION] = _format_rfc3339(scheduled_time)
    return Job(
        metadata=ObjectMeta(
            name=f"{cron_job.metadata.name}-{math.floor(scheduled_time.timestamp())}",
            namespace=cron_job.metadata.namespace,
            labels=dict(template.metadata.labels),
            annotations=annotations,
            owner_references=[cron_job.owner_reference()],
        ),
        spec=copy.deepcopy(template.spec),
    )


def job_owner_index(job: Job) -> list[str]:
    """Return the name of the CronJob controlling a Job, as an index value list."""
    owner = job.metadata.controller_of()
    if owner is None:
        return []
    if owner.api_version != group_version_string() or owner.kind != CRON_JOB_KIND:
        return []
    return [owner.name]


@dataclass
class CronJobReconciler:
    """Brings the Jobs of a CronJob in line with its schedule and spec."""

    client: Client
    clock: Clock = field(default_factory=RealClock)

    def reconcile(self, namespace: str, name: str) -> Result:
        """Run one reconcile pass for the named CronJob."""
        try:
            cron_job = self.client.get_cron_job(namespace, name)
        except NotFoundError as err:
            logger.error("unable to fetch CronJob: %s", err)
            return Result()

        child_jobs = self.client.list_jobs(namespace, name)

        active_jobs: list[Job] = []
        successful_jobs: list[Job] = []
        failed_jobs: list[Job] = []
        most_recent: datetime | None = None

        for job in child_jobs:
            _, finished_type = is_job_finished(job)
            if finished_type is None:
                active_jobs.append(job)
            elif finished_type == JOB_FAILED:
                failed_jobs.append(job)
            elif finished_type == JOB_COMPLETE:
                successful_jobs.append(job)

            try:
                scheduled = scheduled_time_for_job(job)
            except ValueError as err:
                logger.error(
                    "unable to parse scheduled time for child job %s: %s", job.metadata.name, err
                )
                continue
            if scheduled is not None and (most_recent is None or scheduled > most_recent):
                most_recent = scheduled

        cron_job.status.last_schedule_time = most_recent
        cron_job.status.active = [job.reference() for job in active_jobs]

        logger.debug(
            "job count: active jobs=%d successful jobs=%d failed jobs=%d",
            len(active_jobs),
            len(successful_jobs),
            len(failed_jobs),
        )
        self.client.update_cron_job(cron_job)

        limit = cron_job.spec.failed_jobs_history_limit
        if limit is not None:
            self._delete_old_failed_jobs(failed_jobs, limit)

        if cron_job.spec.suspend:
            logger.debug("CronJob is suspended, skipping")
            return Result()

        try:
            missed_run, next_run = next_schedule(cron_job, self.clock.now())
        except (ScheduleError, TooManyMissedStartsError) as err:
            # Wait for a spec change rather than requeueing.
            logger.error("unable to figure out CronJob schedule: %s", err)
            return Result()

        now = self.clock.now()
        scheduled_result = Result(requeue_after=None if next_run is None else next_run - now)

        if missed_run is None:
            logger.debug("no upcoming scheduled times, sleeping until next")
            return scheduled_result

        deadline_seconds = cron_job.spec.starting_deadline_seconds
        if deadline_seconds is not None and missed_run + timedelta(seconds=deadline_seconds) < now:
            logger.debug("missed starting deadline for last run, sleeping till next")
            return scheduled_result

        policy = cron_job.spec.concurrency_policy
        if policy == ConcurrencyPolicy.FORBID and active_jobs:
            logger.debug(
                "concurrency policy blocks concurrent runs, skipping (num active %d)",
                len(active_jobs),
            )
            return scheduled_result

        if policy == ConcurrencyPolicy.REPLACE:
            for job in active_jobs:
                try:
                    self.client.delete_job(job)
                except NotFoundError:
                    pass

        job = construct_job(cron_job, missed_run)
        self.client.create_job(job)
        logger.debug("created Job %s for CronJob run", job.metadata.name)
        return scheduled_result

    def _delete_old_failed_jobs(self, failed_jobs: list[Job], limit: int) -> None:
        # Best effort: a failed deletion is logged and skipped.
        ordered = sorted(
            failed_jobs,
            key=lambda j: (False,) if j.status.start_time is None else (True, j.status.start_time),
        )
        for job in ordered[: max(len(ordered) - limit, 0)]:
            try:
                self.client.delete_job(job)
            except NotFoundError:
                pass
            except Exception as err:  # noqa: BLE001
                logger.error("unable to delete old failed job %s: %s", job.metadata.name, err)
                continue
            logger.info("deleted old failed job %s", job.metadata.name)