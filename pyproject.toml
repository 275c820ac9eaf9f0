[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "guardalloc"
version = "0.1.0"
description = "A simulated guarded heap for tests: detects leaks and buffer overruns, and injects allocation failures."
requires-python = ">=3.10"
dependencies = []
keywords = ["testing", "allocator", "memory", "leak detection", "buffer overrun", "fault injection"]
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
    "Topic :: Software Development :: Testing",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["guardalloc"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
