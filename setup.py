from setuptools import setup, find_packages

setup(
    name="itemrec-modelcon",
    version="0.1",
    packages=find_packages(exclude=["tests", "tests.*"]),
    package_data={"itemrec": ["config.yaml"]},
    python_requires=">=3.10",
    install_requires=[
        "numpy",
        "scipy",
        "pandas",
        "pyarrow",
        "pydantic>=2",
        "fastavro",
        "prometheus-client",
        "python-dotenv",
        "pyyaml",
    ],
    extras_require={
        "test": ["pytest"],
    },
)
