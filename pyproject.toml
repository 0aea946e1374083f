[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pegmatch"
version = "1.0.1"
description = "Parsing expression grammars: composable patterns compiled to a backtracking matching machine"
requires-python = ">=3.10"
dependencies = []
keywords = ["peg", "parsing", "pattern matching", "grammar", "captures"]
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
    "Topic :: Text Processing :: General",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["pegmatch"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
