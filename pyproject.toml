[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "xvkit"
version = "0.1.0"
description = "User programs of a small Unix-like teaching system and a model of its Sv39 page tables, as a Python library and command-line tools"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "operating-system",
    "teaching",
    "risc-v",
    "sv39",
    "page-table",
    "shell",
    "grep",
    "malloc",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Operating System",
    "Topic :: Education",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
xv-sh = "xvkit.sh:main"
xv-grep = "xvkit.grep:main"
xv-wc = "xvkit.wc:main"
xv-cat = "xvkit.tools:cat_main"
xv-echo = "xvkit.tools:echo_main"
xv-ls = "xvkit.tools:ls_main"
xv-ln = "xvkit.tools:ln_main"
xv-mkdir = "xvkit.tools:mkdir_main"
xv-rm = "xvkit.tools:rm_main"
xv-kill = "xvkit.tools:kill_main"
xv-grind = "xvkit.grind:main"
xv-zombie = "xvkit.procs:zombie_main"

[tool.hatch.build.targets.wheel]
packages = ["xvkit"]

[tool.hatch.build.targets.sdist]
include = ["xvkit", "tests", "pyproject.toml", "README.md"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
