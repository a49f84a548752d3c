[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mergebot"
version = "0.1.0"
description = "Core of a merge bot for GitHub repositories: webhook parsing, repository configuration, permissions and GitHub API operations"
requires-python = ">=3.11"
keywords = ["github", "merge", "bot", "webhook", "ci", "try-build"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Framework :: AsyncIO",
    "Topic :: Software Development :: Version Control :: Git",
]
dependencies = [
    "httpx",
    "starlette",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
    "respx",
    "httpx",
]

[tool.hatch.build.targets.wheel]
packages = ["mergebot"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.mypy]
python_version = "3.11"
