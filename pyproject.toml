[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "concur"
version = "0.1.0"
description = "Concurrency building blocks in plain Python: QSBR, epoch reclamation, ring buffers, reference counting, thread pools, work stealing and a tiny netcat"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "concurrency",
    "qsbr",
    "epoch-reclamation",
    "ring-buffer",
    "reference-counting",
    "thread-pool",
    "futures",
    "work-stealing",
    "coroutines",
    "netcat",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
concur-refcnt = "concur.refcnt:main"
concur-qsbr = "concur.qsbr:main"
concur-qsbr-queue = "concur.qsbr_queue:main"
concur-ringbuffer = "concur.ringbuffer:main"
concur-tpool = "concur.tpool:main"
concur-workstealing = "concur.workstealing:main"
concur-tinync = "concur.tinync:main"

[tool.hatch.build.targets.wheel]
packages = ["concur"]

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
