[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "telemetry-extras"
version = "0.1.0"
description = "Resource detectors, a Cloud Trace context propagator and span-to-request conversion helpers for telemetry pipelines"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "telemetry",
    "tracing",
    "resource",
    "propagator",
    "stackdriver",
    "cloud-trace",
    "kubernetes",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["telemetry_extras"]

[tool.pytest.ini_options]
addopts = "-ra"
