"""
Confirmed-block replay and event indexing for staking and ERC20 contracts
"""

from setuptools import find_packages, setup

with open("README.md", encoding="utf-8") as f:
    long_description = f.read()

with open("requirements.txt", encoding="utf-8") as f:
    requirements = f.read().splitlines()

setup(
    name="stakesync",
    version="0.0.1",
    description="Confirmed-block replay and event indexing for staking and ERC20 contracts",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["stakesync.tests"]),
    package_data={
        "stakesync": ["abi/*.json"],
    },
    install_requires=requirements,
    extras_require={
        "test": ["pytest"],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.10",
)
