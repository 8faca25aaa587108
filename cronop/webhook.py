"""Admission checks for CronJob resources: defaulting and validation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from .schedule import ScheduleError, parse_standard
from .types import GROUP, CRON_JOB_KIND, ConcurrencyPolicy, CronJob

logger = logging.getLogger(__name__)

DNS1035_LABEL_MAX_LENGTH = 63
JOB_NAME_SUFFIX_LENGTH = 11
MAX_CRON_JOB_NAME_LENGTH = DNS1035_LABEL_MAX_LENGTH - JOB_NAME_SUFFIX_LENGTH


@dataclass(frozen=True)
class FieldError:
    """An invalid value found at one field of an object."""

    field: str
    bad_value: Any
    detail: str

    def __str__(self) -> str:
        value = f'"{self.bad_value}"' if isinstance(self.bad_value, str) else self.bad_value
        return f"{self.field}: Invalid value: {value}: {self.detail}"


class InvalidError(ValueError):
    """Raised when an object fails validation; holds every field error found."""

    def __init__(self, group: str, kind: str, name: str, errors: list[FieldError]) -> None:
        self.group = group
        self.kind = kind
        self.name = name
        self.errors = list(errors)
        if len(self.errors) == 1:
            details = str(self.errors[0])
        else:
            details = "[" + ", ".join(str(err) for err in self.errors) + "]"
        super().__init__(f'{kind}.{group} "{name}" is invalid: {details}')


def _expect_cron_job(obj: object, what: str = "a CronJob object") -> CronJob:
    if not isinstance(obj, CronJob):
        raise TypeError(f"expected {what} but got {type(obj).__name__}")
    return obj


def validate_schedule_format(schedule: str, path: str) -> FieldError | None:
    """Return a field error when ``schedule`` is not a valid cron schedule."""
    try:
        parse_standard(schedule)
    except ScheduleError as err:
        return FieldError(path, schedule, str(err))
    return None


def validate_cron_job_spec(cron_job: CronJob) -> FieldError | None:
    """Check the spec of a CronJob; only the schedule needs checking."""
    return validate_schedule_format(cron_job.spec.schedule, "spec.schedule")


def validate_cron_job_name(cron_job: CronJob) -> FieldError | None:
    """Check that a CronJob's name leaves room for the suffix added to its Jobs."""
    name = cron_job.metadata.name
    # Job names get a "-<timestamp>" suffix of 11 characters and must fit
    # in a 63-character label.
    if len(name) > MAX_CRON_JOB_NAME_LENGTH:
        return FieldError(
            "metadata.name", name, f"must be no more than {MAX_CRON_JOB_NAME_LENGTH} characters"
        )
    return None


def validate_cron_job(cron_job: CronJob) -> None:
    """Raise InvalidError listing every problem found in a CronJob."""
    errors = [
        err
        for err in (validate_cron_job_name(cron_job), validate_cron_job_spec(cron_job))
        if err is not None
    ]
    if errors:
        raise InvalidError(GROUP, CRON_JOB_KIND, cron_job.metadata.name, errors)


@dataclass
class CronJobDefaulter:
    """Fills in unset optional fields of a CronJob."""

    default_concurrency_policy: ConcurrencyPolicy = ConcurrencyPolicy.ALLOW
    default_suspend: bool = False
    default_successful_jobs_history_limit: int = 3
    default_failed_jobs_history_limit: int = 1

    def default(self, obj: object) -> None:
        """Set defaults in place on a CronJob."""
        cron_job = _expect_cron_job(obj, "an CronJob object")
        logger.info("Defaulting for CronJob %s", cron_job.metadata.name)
        spec = cron_job.spec
        if not spec.concurrency_policy:
            spec.concurrency_policy = self.default_concurrency_policy
        if spec.suspend is None:
            spec.suspend = self.default_suspend
        if spec.successful_jobs_history_limit is None:
            spec.successful_jobs_history_limit = self.default_successful_jobs_history_limit
        if spec.failed_jobs_history_limit is None:
            spec.failed_jobs_history_limit = self.default_failed_jobs_history_limit


class CronJobValidator:
    """Validates CronJobs when they are created, updated or deleted."""

    def validate_create(self, obj: object) -> list[str]:
        """Validate a new CronJob; return warnings or raise InvalidError."""
        cron_job = _expect_cron_job(obj)
        logger.info("Validation for CronJob upon creation %s", cron_job.metadata.name)
        validate_cron_job(cron_job)
        return []

    def validate_update(self, old_obj: object, new_obj: object) -> list[str]:
        """Validate the updated CronJob; return warnings or raise InvalidError."""
        cron_job = _expect_cron_job(new_obj, "a CronJob object for the newObj")
        logger.info("Validation for CronJob upon update %s", cron_job.metadata.name)
        validate_cron_job(cron_job)
        return []

    def validate_delete(self, obj: object) -> list[str]:
        """Accept any CronJob being deleted."""
        cron_job = _expect_cron_job(obj)
        logger.info("Validation for CronJob upon deletion %s", cron_job.metadata.name)
        return []