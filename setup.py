from setuptools import setup, find_packages

setup(
    name="extreme-evaporation-events",
    version="0.2.0",
    packages=find_packages(exclude=("tests", "tests.*")),
    install_requires=[
        "numpy>=1.22.0",
        "pandas>=1.5.0",
        "scipy>=1.7.0",
        "xarray>=2022.3.0",
        "netCDF4>=1.5.8",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "exeves=exeves.cli:main",
        ],
    },
    author="Your Name",
    description="Identification of extreme evaporation events in gridded daily data",
    python_requires=">=3.8",
)
