from setuptools import setup, find_packages

setup(
    name="baseline",
    version="0.4.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.11",
    install_requires=[
        "pydantic>=2",
        "python-dotenv",
        "click",
        "httpx",
        "colorama",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
        ],
    },
    entry_points={
        "console_scripts": [
            "baseline=baseline.cli.cli:main",
        ],
    },
)
