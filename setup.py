from setuptools import setup, find_packages


setup(
    name="romfs",
    version="0.1",
    packages=find_packages(include=["romfs", "romfs.*"]),
    description="Embeddable read-only file bundles with optional compression and encryption.",
    install_requires=[
        "pycryptodomex>=3.23.0",
        "argon2-cffi>=23.1.0",
    ],
    python_requires=">=3.8",
    entry_points={
        "console_scripts": [
            "romfs=romfs.cli:main",
        ]
    },
)
