import pytest

from cronop.types import (
    ConcurrencyPolicy,
    CronJob,
    CronJobSpec,
    Job,
    ObjectMeta,
    OwnerReference,
    group_version_string,
)


def test_group_version_string():
    assert group_version_string() == "batch.lumexralph.dev/v1"


@pytest.mark.parametrize(
    "raw, policy",
    [
        ("Allow", ConcurrencyPolicy.ALLOW),
        ("Forbid", ConcurrencyPolicy.FORBID),
        ("Replace", ConcurrencyPolicy.REPLACE),
    ],
)
def test_concurrency_policy_round_trip(raw, policy):
    assert ConcurrencyPolicy(raw) is policy
    assert policy.value == raw
    assert policy == raw


def test_concurrency_policy_rejects_unknown_value():
    with pytest.raises(ValueError):
        ConcurrencyPolicy("Sometimes")


def test_controller_of_picks_controller_reference():
    plain = OwnerReference(api_version="v1", kind="ConfigMap", name="cfg")
    ctrl = OwnerReference(api_version="v1", kind="Thing", name="boss", controller=True)
    meta = ObjectMeta(name="job", owner_references=[plain, ctrl])
    assert meta.controller_of() is ctrl


def test_controller_of_without_controller_is_none():
    meta = ObjectMeta(
        owner_references=[OwnerReference(api_version="v1", kind="ConfigMap", name="cfg")]
    )
    assert meta.controller_of() is None
    assert ObjectMeta().controller_of() is None


def test_job_reference_copies_identity():
    job = Job(metadata=ObjectMeta(name="test-job", namespace="default", uid="uid-1"))
    ref = job.reference()
    assert ref.name == "test-job"
    assert ref.namespace == "default"
    assert ref.uid == "uid-1"
    assert ref.kind == "Job"


def test_cron_job_owner_reference_is_controller():
    cron_job = CronJob(metadata=ObjectMeta(name="test-cronjob", namespace="default", uid="u"))
    ref = cron_job.owner_reference()
    assert ref.kind == "CronJob"
    assert ref.api_version == group_version_string()
    assert ref.name == "test-cronjob"
    assert ref.uid == "u"
    assert ref.controller is True


def test_owner_reference_found_through_job_metadata():
    cron_job = CronJob(metadata=ObjectMeta(name="test-cronjob"))
    job = Job(metadata=ObjectMeta(owner_references=[cron_job.owner_reference()]))
    owner = job.metadata.controller_of()
    assert owner == cron_job.owner_reference()


def test_defaults_are_not_shared_between_instances():
    first = CronJob()
    second = CronJob()
    first.metadata.labels["a"] = "b"
    first.spec.job_template.metadata.annotations["x"] = "y"
    assert second.metadata.labels == {}
    assert second.spec.job_template.metadata.annotations == {}
    assert second.status.active == []


def test_spec_optional_fields_unset_by_default():
    spec = CronJobSpec(schedule="1 * * * *")
    assert spec.schedule == "1 * * * *"
    assert spec.concurrency_policy is None
    assert spec.suspend is None
    assert spec.failed_jobs_history_limit is None
    assert spec.starting_deadline_seconds is None