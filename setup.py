from setuptools import setup, find_packages

setup(
    name="cbb-stats-engine",
    version="0.1.0",
    description="Player and lineup analytics for college basketball: ratings, luck, positions and lineups",
    author="Ben Rosen",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "numpy>=1.22.4,<2.0.0",
        "pandas>=1.5.3,<2.0.0",
        "scipy>=1.10.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    python_requires=">=3.8",
    entry_points={
        "console_scripts": [
            "cbb-engine=cbb_engine.main:main",
        ],
    },
)
