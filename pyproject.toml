[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sakura_exporter"
version = "0.1.0"
description = "Metric collectors for Sakura Cloud servers, NFS appliances, mobile gateways, SIMs and proxy load balancers"
requires-python = ">=3.10"
keywords = ["monitoring", "metrics", "exporter", "sakura cloud", "collector", "gauge"]
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
    "Topic :: System :: Monitoring",
    "Typing :: Typed",
]
dependencies = [
    "cryptography",
]

[project.optional-dependencies]
test = [
    "pytest",
    "cryptography",
]

[tool.hatch.build.targets.wheel]
packages = ["sakura_exporter"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
