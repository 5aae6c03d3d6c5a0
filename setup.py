from setuptools import setup, find_packages


setup(
    name="minitar",
    version="0.1",
    packages=find_packages(include=["minitar", "minitar.*"]),
    description="A minimal USTAR archiver: create, append, list, update and extract regular files.",
    author="vercingetorx",
    python_requires=">=3.8",
    install_requires=[],
    entry_points={
        "console_scripts": [
            "minitar=minitar.cli:main",
        ]
    },
)
