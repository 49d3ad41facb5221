[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "obliviousdb"
version = "0.1.0"
description = "Building blocks for three-party secret-shared database joins: share generation, LowMC, oblivious permutations and switching networks, and select query descriptions."
requires-python = ">=3.10"
keywords = [
    "secure multi-party computation",
    "secret sharing",
    "oblivious permutation",
    "switching network",
    "LowMC",
    "private join",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Security :: Cryptography",
    "Topic :: Database",
]
dependencies = [
    "numpy",
    "cryptography",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["obliviousdb"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
ignore_missing_imports = true
