[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "flamefold"
version = "0.1.0"
description = "Collapse DTrace ustack() stack traces into folded stack lines for flame graphs"
requires-python = ">=3.10"
dependencies = []
keywords = ["flamegraph", "profiling", "dtrace", "stack", "folded", "collapse"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Debuggers",
    "Topic :: System :: Benchmark",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
flamefold-collapse-dtrace = "flamefold.cli_dtrace:main"

[tool.hatch.build.targets.wheel]
packages = ["flamefold"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
