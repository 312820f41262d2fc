[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "daprcli"
version = "0.1.0"
description = "Tools for running, inspecting and talking to Dapr sidecars on a local machine"
requires-python = ">=3.10"
keywords = ["dapr", "sidecar", "microservices", "pubsub", "kubernetes", "helm", "docker"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Distributed Computing",
]
dependencies = [
    "psutil",
    "pyyaml",
    "packaging",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["daprcli"]

[tool.hatch.build.targets.sdist]
include = ["daprcli", "tests"]

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
