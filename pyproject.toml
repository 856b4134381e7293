[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "bridgecli"
version = "0.1.0"
description = "Command-line tools that drive a logged-in browser through a local bridge daemon for web search and image generation"
requires-python = ">=3.10"
dependencies = [
    "requests",
    "pillow",
]
keywords = ["browser", "automation", "search", "image-generation", "cli", "daemon"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[project.scripts]
baidu-cli = "bridgecli.baidu_cli:main"
google-cli = "bridgecli.google_cli:main"
chatgpt-image-cli = "bridgecli.chatgpt_cli:main"
nanobanana-cli = "bridgecli.nanobanana_cli:main"

[tool.hatch.build.targets.wheel]
packages = ["bridgecli"]

[tool.hatch.build.targets.sdist]
include = ["bridgecli", "tests"]

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
