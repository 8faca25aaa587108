[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "cronop"
version = "0.1.0"
description = "Cron schedules, CronJob reconciliation, defaulting and validation"
requires-python = ">=3.10"
dependencies = []
keywords = ["cron", "cronjob", "scheduler", "reconciler", "controller", "jobs", "validation"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["cronop"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
