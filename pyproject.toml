[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kubeshark"
version = "0.1.0"
description = "Configuration model, --set overrides, config file handling and PCAP helpers for a Kubernetes-aware network traffic analyzer"
requires-python = ">=3.10"
dependencies = [
    "pyyaml",
]
keywords = ["kubernetes", "network", "sniffer", "pcap", "configuration", "monitoring"]
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
    "Topic :: System :: Networking :: Monitoring",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
kubeshark = "kubeshark.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["kubeshark"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
