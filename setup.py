# setup.py
from setuptools import setup, find_packages

setup(
    name="rispy-debugger",
    version="0.1.0",
    packages=find_packages(include=["rispy_debugger", "rispy_debugger.*"]),
    python_requires=">=3.9",
    extras_require={"test": ["pytest", "hypothesis"]},
    entry_points={
        # terminal front end for stepping through engine snapshots
        "console_scripts": ["rispy-debugger=rispy_debugger.cli:main"],
    },
    zip_safe=False,
)
