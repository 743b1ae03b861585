from setuptools import setup, find_packages

setup(
    name="processflow",
    version="0.1.0",
    description="Process-flow components (queues, resources, stations, downtime) for discrete event simulation",
    author="adamfilli",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "matplotlib",
        "pandas",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    include_package_data=True,
    python_requires=">=3.11",
)
