[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "vulnscout"
version = "0.1.0"
description = "Option handling, vulnerability database management and cache operations for a container image vulnerability scanner"
requires-python = ">=3.10"
dependencies = []
keywords = ["security", "vulnerability", "scanner", "container", "database"]
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
    "Topic :: Security",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["vulnscout"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
