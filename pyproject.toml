[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "melab"
version = "0.1.0"
description = "Emulated on-chip peripherals: config parsing, device registry, SHA-256/HMAC hash unit, DMA, key store and address translation"
requires-python = ">=3.10"
dependencies = []
keywords = ["emulator", "peripherals", "sha256", "hmac", "dma", "config", "register"]
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
    "Topic :: System :: Emulators",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["melab"]

[tool.pytest.ini_options]
addopts = "-ra"
