from setuptools import setup, find_packages

setup(
    name="air-vc",
    version="0.1.0",
    description="AIR — assertion intermediate representation and verification-condition engine",
    packages=find_packages(include=["air", "air.*"]),
    python_requires=">=3.10",
    install_requires=[
        "z3-solver>=4.12.0",
        "PyYAML>=6.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
)
