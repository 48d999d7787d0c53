[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "codewords"
version = "0.1.0"
description = "A team word-guessing board game: game rules, matchmaking pieces and curses client screens"
requires-python = ">=3.10"
dependencies = []
keywords = ["game", "board-game", "word-game", "terminal", "curses", "multiplayer"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console :: Curses",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Games/Entertainment :: Board Games",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["codewords"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
