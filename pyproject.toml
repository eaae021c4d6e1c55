[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "palletsim"
version = "0.1.0"
description = "In-memory models of blockchain runtime pallets: a staked price oracle, a parachain ping service and a transaction fee charger"
requires-python = ">=3.10"
dependencies = []
keywords = ["oracle", "transaction fees", "staking", "simulation", "blockchain"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Financial and Insurance Industry",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Office/Business :: Financial",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["palletsim"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
