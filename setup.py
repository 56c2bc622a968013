"""Setup configuration for the inquiry engine."""

from setuptools import find_packages, setup

setup(
    name="inquiry-engine",
    version="0.1.0",
    packages=find_packages(include=["src", "src.*"]),
    package_dir={"": "."},
    python_requires=">=3.10",
    install_requires=[
        "boto3>=1.28",
        "pydantic>=2.0",
        "PyYAML>=6.0",
        "python-dotenv>=1.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
)
