[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "epollchat"
version = "0.1.0"
description = "Multi-threaded TCP chat server with length-prefixed binary packets and MongoDB-backed accounts"
requires-python = ">=3.10"
dependencies = [
    "pymongo",
]
keywords = ["chat", "server", "tcp", "mongodb", "protobuf"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: No Input/Output (Daemon)",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications :: Chat",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
epollchat = "epollchat.server:main"

[tool.hatch.build.targets.wheel]
packages = ["epollchat"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]
