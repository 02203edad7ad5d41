[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "loggrelay"
version = "0.1.0"
description = "Building blocks for relaying log and metric envelopes: diodes, counters and gauges, batching, averaging and subscription fan-in."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "logging",
    "metrics",
    "envelopes",
    "diode",
    "ring-buffer",
    "batching",
    "firehose",
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
    "Topic :: System :: Logging",
    "Topic :: System :: Monitoring",
]

[project.optional-dependencies]
test = [
    "pytest",
    "cryptography",
]

[tool.hatch.build.targets.wheel]
packages = ["loggrelay"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
