[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "shapevm"
version = "0.1.0"
description = "A small register-based virtual machine with a register allocator and interpreters for closed-form implicit surface expressions"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "implicit surfaces",
    "virtual machine",
    "register allocation",
    "interpreter",
    "evaluation",
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
    "Topic :: Scientific/Engineering :: Mathematics",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["shapevm"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
