[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "controlkit"
version = "0.1.0"
description = "Building blocks for a handheld controller and its base station: logging, state machines, button input, menus, data formatting and a paired radio link protocol."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "embedded",
    "controller",
    "state-machine",
    "buttons",
    "debounce",
    "menu",
    "crc16",
    "pairing",
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
    "Topic :: Software Development :: Embedded Systems",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["controlkit"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
