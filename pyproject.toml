[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mediatimeline"
version = "0.1.0"
description = "Media timeline for the fediverse"
requires-python = ">=3.11"
keywords = ["mastodon", "fediverse", "hashtag", "timeline", "media"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Web Environment",
    "Framework :: aiohttp",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: Dynamic Content",
]
dependencies = [
    "aiohttp>=3.9",
    "httpx>=0.27",
    "jinja2>=3.1",
]

[project.optional-dependencies]
test = [
    "pytest>=8",
    "pytest-asyncio>=0.23",
    "respx>=0.21",
]

[project.scripts]
mediatimeline = "mediatimeline.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["mediatimeline"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
