[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "wkit"
version = "0.1.0"
description = "A Git worktree management toolkit"
requires-python = ">=3.11"
keywords = ["git", "worktree", "cli", "branch", "developer-tools"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Operating System :: MacOS",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Version Control :: Git",
]
dependencies = [
    "tomli-w",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
wkit = "wkit.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["wkit"]

[tool.pytest.ini_options]
addopts = "-ra"
