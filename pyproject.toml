[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "krmspec"
version = "0.1.0"
description = "Condition-driven specialization of KRM resource lists and Kptfiles"
requires-python = ">=3.10"
keywords = ["kpt", "krm", "kubernetes", "kptfile", "specialization", "yaml", "conditions"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries",
]
dependencies = [
    "ruamel-yaml",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["krmspec"]

[tool.pytest.ini_options]
addopts = "-ra"
