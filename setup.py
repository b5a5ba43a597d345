from setuptools import find_packages, setup

setup(
    name="vm-client",
    version="0.1.0",
    description="Computation client: Relay-style IR -> closure-aware passes -> register VM",
    package_dir={"": "src"},
    packages=find_packages("src"),
    python_requires=">=3.10",
    install_requires=[
        "numpy>=1.24",
    ],
    extras_require={
        "dev": [
            "pytest>=7",
        ],
    },
    zip_safe=False,
)
