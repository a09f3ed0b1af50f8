[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "vitaltrack"
version = "0.1.0"
description = "Medicine stock tracking with Airtable storage, Telegram alerts and monthly financial reports"
requires-python = ">=3.10"
keywords = ["medicine", "stock", "forecast", "airtable", "telegram", "alerts", "flask"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Web Environment",
    "Framework :: Flask",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Office/Business",
]
dependencies = [
    "requests>=2.28",
    "flask>=2.2",
    "python-dotenv>=1.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
    "responses>=0.23",
    "freezegun>=1.2",
]

[project.scripts]
vitaltrack = "vitaltrack.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["vitaltrack"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
ignore_missing_imports = true
