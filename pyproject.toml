[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "gtracker"
version = "0.1.0"
description = "Song model, GTS5/GTI5 file formats, playback routine and SID register mixer for a chiptune tracker"
requires-python = ">=3.10"
dependencies = []
keywords = ["sid", "c64", "tracker", "chiptune", "music", "gts5"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Multimedia :: Sound/Audio :: Editors",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["gtracker"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
