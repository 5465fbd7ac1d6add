from setuptools import setup, find_packages

setup(
    name="fanout-simulator",
    version="0.1.0",
    description="Discrete event simulation of request fan-out and client-side load balancing",
    author="adamfilli",
    packages=find_packages(include=["fanoutsim", "fanoutsim.*"]),
    install_requires=[
        "matplotlib",
        "numpy",
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
