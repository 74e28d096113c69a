"""Setup configuration for the chatguard moderation core."""

from setuptools import setup, find_packages

setup(
    name="chatguard",
    version="0.0.1",
    description="Client-side moderation core for a realtime group chat",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.11",
    install_requires=[
        "PyYAML",
        "prompt_toolkit",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
        ],
    },
)
