[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kabtrace"
version = "0.1.0"
description = "EVM execution tracers, trace filtering with a block cache, and transaction pool views for Ethereum-compatible nodes"
requires-python = ">=3.10"
dependencies = []
keywords = ["evm", "ethereum", "tracing", "debug", "trace_filter", "txpool"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Debuggers",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["kabtrace"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
