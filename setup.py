from setuptools import setup, find_packages


setup(
    name="gmad",
    version="0.1",
    packages=find_packages(include=["gmad", "gmad.*"]),
    description="Reader and builder for .gma addon archives with CRC-32 integrity checks.",
    install_requires=[],
    entry_points={
        "console_scripts": [
            "gmad=gmad.cli:main",
        ]
    },
)
