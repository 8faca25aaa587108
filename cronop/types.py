"""Object model for the CronJob resource and the Jobs it owns."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

GROUP = "batch.lumexralph.dev"
VERSION = "v1"
CRON_JOB_KIND = "CronJob"

JOB_API_VERSION = "batch/v1"
JOB_KIND = "Job"

JOB_COMPLETE = "Complete"
JOB_FAILED = "Failed"
CONDITION_TRUE = "True"
CONDITION_FALSE = "False"


def group_version_string() -> str:
    """Return the API group and version of the CronJob resource, as "group/version"."""
    return f"{GROUP}/{VERSION}"


class ConcurrencyPolicy(str, enum.Enum):
    """How concurrent runs of a CronJob's Jobs are treated."""

    ALLOW = "Allow"
    """Jobs may run concurrently."""

    FORBID = "Forbid"
    """A run is skipped while the previous one has not finished."""

    REPLACE = "Replace"
    """Running Jobs are cancelled and replaced by the new one."""


@dataclass
class ObjectReference:
    """A pointer to another object in the cluster."""

    api_version: str = ""
    kind: str = ""
    name: str = ""
    namespace: str = ""
    uid: str = ""


@dataclass
class OwnerReference:
    """Names the object that owns another one."""

    api_version: str
    kind: str
    name: str
    uid: str = ""
    controller: bool = False
    block_owner_deletion: bool = False


@dataclass
class ObjectMeta:
    """Metadata common to every stored object."""

    name: str = ""
    namespace: str = ""
    uid: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    owner_references: list[OwnerReference] = field(default_factory=list)
    creation_timestamp: datetime | None = None

    def controller_of(self) -> OwnerReference | None:
        """Return the owner reference marked as the controller, if any."""
        return next((ref for ref in self.owner_references if ref.controller), None)


@dataclass
class JobCondition:
    """One observed condition of a Job, such as completion or failure."""

    type: str
    status: str = CONDITION_TRUE


@dataclass
class JobStatus:
    """The observed state of a Job."""

    conditions: list[JobCondition] = field(default_factory=list)
    start_time: datetime | None = None
    active: int = 0


@dataclass
class Job:
    """A batch Job, the unit of work a CronJob creates."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: dict[str, Any] = field(default_factory=dict)
    status: JobStatus = field(default_factory=JobStatus)

    def reference(self) -> ObjectReference:
        """Return a reference that points at this Job."""
        return ObjectReference(
            api_version=JOB_API_VERSION,
            kind=JOB_KIND,
            name=self.metadata.name,
            namespace=self.metadata.namespace,
            uid=self.metadata.uid,
        )


@dataclass
class JobTemplateSpec:
    """The template from which a CronJob's Jobs are made."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: dict[str, Any] = field(default_factory=dict)


@dataclass
class CronJobSpec:
    """The desired state of a CronJob.

    Optional settings are None when not given, so that an explicit zero
    can be told apart from an absent value.
    """

    schedule: str = ""
    starting_deadline_seconds: int | None = None
    concurrency_policy: ConcurrencyPolicy | None = None
    suspend: bool | None = None
    job_template: JobTemplateSpec = field(default_factory=JobTemplateSpec)
    successful_jobs_history_limit: int | None = None
    failed_jobs_history_limit: int | None = None


@dataclass
class CronJobStatus:
    """The observed state of a CronJob."""

    active: list[ObjectReference] = field(default_factory=list)
    last_schedule_time: datetime | None = None


@dataclass
class CronJob:
    """A resource that runs Jobs on a cron schedule."""

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: CronJobSpec = field(default_factory=CronJobSpec)
    status: CronJobStatus = field(default_factory=CronJobStatus)

    api_version = group_version_string()
    kind = CRON_JOB_KIND

    def owner_reference(self) -> OwnerReference:
        """Return a controller owner reference pointing at this CronJob."""
        return OwnerReference(
            api_version=self.api_version,
            kind=self.kind,
            name=self.metadata.name,
            uid=self.metadata.uid,
            controller=True,
            block_owner_deletion=True,
        )