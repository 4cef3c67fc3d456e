from setuptools import setup, find_namespace_packages

setup(
    name="amrmeta",
    version="0.1.0",
    description="Metadata exchange and ghost-cell stripping for block-structured AMR datasets.",
    author="Hao Wu",
    author_email="aster0502@outlook.com",
    license="GPL-3.0",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",

    # Package discovery, the subpackages carry no __init__.py
    package_dir={"": "src"},
    packages=find_namespace_packages(where="src", include=["amrmeta", "amrmeta.*"]),

    # Python version requirement
    python_requires=">=3.11",

    # Core dependencies
    install_requires=[
        "numpy>=2.1.1",
        "loguru>=0.7.0",
    ],

    extras_require={
        "mpi": [
            "mpi4py>=3.1.0",
        ],
        "test": [
            "pytest>=8.3.4",
        ],
    },
)
