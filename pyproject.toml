[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "heapview"
version = "0.1.0"
description = "Analysis and reporting of recorded heap allocation traces: merged call trees, caller/callee costs, top-allocator reports, flame graphs and massif output."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "heap",
    "memory",
    "profiler",
    "allocations",
    "leaks",
    "flamegraph",
    "massif",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Debuggers",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["heapview"]

[tool.hatch.build.targets.sdist]
include = ["heapview", "tests", "README.md", "pyproject.toml"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
