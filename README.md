# cronop

`cronop` has the decision logic for CronJob resources. A CronJob runs Jobs on
a cron schedule. The package parses cron schedules and works out which Jobs
should exist for a CronJob. It also fills in defaults and checks CronJobs
before they are accepted.

## Modules

### `cronop.types`

Dataclasses for the object model:

- `CronJob`, `CronJobSpec`, `CronJobStatus`
- `Job`, `JobStatus`, `JobCondition`, `JobTemplateSpec`
- `ObjectMeta`, `OwnerReference`, `ObjectReference`

Optional spec fields are `None` when unset. The concurrency policy is the
`ConcurrencyPolicy` enum: `ALLOW`, `FORBID` or `REPLACE`.

Helpers:

- `group_version_string()` returns `"batch.lumexralph.dev/v1"`.
- `ObjectMeta.controller_of()` returns the owner reference marked as
  controller.
- `Job.reference()` returns an `ObjectReference` to the Job.
- `CronJob.owner_reference()` returns a controller `OwnerReference` to the
  CronJob.

### `cronop.schedule`

`parse_standard(spec)` reads either of these into a `CronSchedule`:

- a five-field cron line (minute, hour, day of month, month, day of week).
  Fields may use `*`, `?`, ranges, steps, lists, and month and weekday names.
- one of the descriptors `@yearly`, `@annually`, `@monthly`, `@weekly`,
  `@daily`, `@midnight`, `@hourly` or `@every <duration>`.

Bad input raises `ScheduleError`, a subclass of `ValueError`.

`CronSchedule.next(after)` returns the first activation strictly after
`after`, with sub-second precision dropped. It returns `None` if there is no
activation within five years.

### `cronop.controller`

- `Client` is an in-memory store of CronJobs and Jobs. Its methods are
  `get_cron_job`, `list_jobs`, `update_cron_job`, `create_job` and
  `delete_job`. They hand out and store copies. A missing object raises
  `NotFoundError`, and a duplicate Job name raises `ValueError`.
- `CronJobReconciler(client, clock=RealClock())` has one method,
  `reconcile(namespace, name)`, which runs one pass:
  1. It records the active Jobs and the last schedule time in the CronJob's
     status and writes the CronJob back.
  2. It deletes the oldest failed Jobs beyond `failed_jobs_history_limit`.
  3. It stops there if the CronJob is suspended.
  4. Otherwise it creates the Job for the most recent missed run. This step
     respects `starting_deadline_seconds` and the concurrency policy. Under
     `REPLACE`, active Jobs are deleted first.

  `reconcile` returns a `Result`. Its `requeue_after` field is the
  `timedelta` until the next run, or `None`. A CronJob that cannot be found,
  or whose schedule cannot be worked out, gives `Result()`.
- Helper functions:
  - `is_job_finished(job)`
  - `scheduled_time_for_job(job)`, which reads the
    `batch.lumexralph.dev/scheduled-at` annotation.
  - `next_schedule(cron_job, now)`. It raises `TooManyMissedStartsError`
    after more than 100 missed starts.
  - `construct_job(cron_job, scheduled_time)`. Job names are
    `<cronjob-name>-<unix-seconds>`.
  - `job_owner_index(job)`
- A clock is any object with a `now()` method (the `Clock` protocol). Tests
  can pass a fixed clock.

### `cronop.webhook`

- `CronJobDefaulter.default(obj)` sets unset fields in place. The defaults are:
  - concurrency policy: `Allow`
  - `suspend`: `False`
  - successful history limit: 3
  - failed history limit: 1
- `CronJobValidator` has `validate_create`, `validate_update` and
  `validate_delete`. Each returns a list of warnings, which is always empty.
  Create and update raise `InvalidError` if the schedule does not parse or
  the name is longer than 52 characters. The error holds one `FieldError` for
  each problem. Passing something other than a `CronJob` raises `TypeError`.
- The checks are also available as functions: `validate_schedule_format`,
  `validate_cron_job_spec`, `validate_cron_job_name` and
  `validate_cron_job`.

## Example

```python
from datetime import datetime, timezone

from cronop.controller import Client, CronJobReconciler
from cronop.schedule import parse_standard
from cronop.types import CronJob, CronJobSpec, ObjectMeta
from cronop.webhook import CronJobDefaulter, CronJobValidator

schedule = parse_standard("*/5 * * * *")
print(schedule.next(datetime(2025, 1, 1, 12, 3, tzinfo=timezone.utc)))
# 2025-01-01 12:05:00+00:00

cron_job = CronJob(
    metadata=ObjectMeta(
        name="nightly-report",
        namespace="default",
        creation_timestamp=datetime(2025, 1, 1, tzinfo=timezone.utc),
    ),
    spec=CronJobSpec(schedule="0 2 * * *"),
)
CronJobDefaulter().default(cron_job)
CronJobValidator().validate_create(cron_job)

client = Client(cron_jobs=[cron_job])
result = CronJobReconciler(client).reconcile("default", "nightly-report")
print(result.requeue_after)
```

## What it does not do

- It does not talk to a cluster. `Client` keeps objects in memory only.
- It does not watch for changes or run a reconcile loop. The caller has to
  call `reconcile` again after `requeue_after`.
- It does not serve admission webhooks over HTTP, run Jobs, or provide a
  command-line program.

Logging goes through the standard `logging` module, under the
`cronop.controller` and `cronop.webhook` loggers.

## Running the tests

```
pip install -e .[test]
pytest
```