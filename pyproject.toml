[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "hatchmsg"
version = "0.1.0"
description = "A small messaging service that stores SMS, MMS and email conversations in SQLite and serves them over HTTP"
requires-python = ">=3.10"
dependencies = [
    "pyyaml",
]
keywords = ["messaging", "sms", "email", "webhooks", "conversations", "wsgi", "sqlite"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Web Environment",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications",
    "Topic :: Internet :: WWW/HTTP :: WSGI :: Application",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
hms = "hatchmsg.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["hatchmsg"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]
