[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "nezha-agent"
version = "0.0.2"
description = "Monitoring agent that reports host information and live system state to a Nezha dashboard over gRPC"
requires-python = ">=3.10"
keywords = ["monitoring", "agent", "nezha", "grpc", "protobuf", "system-metrics"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
    "Topic :: System :: Networking :: Monitoring",
]
dependencies = [
    "psutil",
    "grpcio",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
nezha-agent = "nezha_agent.agent:main"

[tool.hatch.build.targets.wheel]
packages = ["nezha_agent"]

[tool.pytest.ini_options]
addopts = "-ra"
