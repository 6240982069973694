[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "wsframe"
version = "0.1.0"
description = "WebSocket frame parsing, formatting, handshake and per-connection event handling"
requires-python = ">=3.10"
dependencies = []
keywords = ["websocket", "rfc6455", "framing", "permessage-deflate", "handshake"]
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
    "Topic :: Internet :: WWW/HTTP",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
wsframe-build = "wsframe.buildtool:main"

[tool.hatch.build.targets.wheel]
packages = ["wsframe"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
