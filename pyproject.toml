[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pigen"
version = "0.1.0"
description = "Command-line client for a pigen core service: deploys the core, installs plugins, renders step files and sets up CI/CD pipelines."
requires-python = ">=3.10"
keywords = ["ci", "cd", "pipeline", "cloud-build", "cloud-run", "plugins", "cli"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Build Tools",
]
dependencies = [
    "pyyaml>=6.0",
    "requests>=2.28",
    "python-dotenv>=1.0",
    "click>=8.1",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
    "responses>=0.23",
]

[project.scripts]
pigen = "pigen.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["pigen"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
