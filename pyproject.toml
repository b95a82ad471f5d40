[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "streaminfa"
version = "0.1.0"
description = "Live video segmenting, fMP4 packaging, HLS playlist generation and in-memory media storage"
requires-python = ">=3.11"
dependencies = []
keywords = ["hls", "fmp4", "streaming", "video", "m3u8", "packaging", "segmenting"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Framework :: AsyncIO",
    "Topic :: Multimedia :: Video :: Conversion",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[tool.hatch.build.targets.wheel]
packages = ["streaminfa"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.mypy]
python_version = "3.11"
