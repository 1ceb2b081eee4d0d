[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "lnpayment"
version = "0.1.0"
description = "Lightning Network payment channel primitives: identifiers, node addresses, BOLT-3 commitments and HTLCs"
requires-python = ">=3.10"
dependencies = [
    "pycryptodome",
]
keywords = ["lightning", "bitcoin", "payment-channel", "bolt3", "htlc"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Office/Business :: Financial",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["lnpayment"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"
