"""
ollcube: last-layer orientation for the 3x3x3 cube

Packaging for the `ollcube` library and its offline discovery scripts.
"""

import setuptools

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setuptools.setup(
    name="ollcube",
    version="0.1.0",
    description="Learning OLL solver for the 3x3x3 cube with JAX-batched searches",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=setuptools.find_packages(include=["ollcube", "ollcube.*"]),
    include_package_data=True,
    install_requires=[
        "jax>=0.4.0",
        "chex>=0.1.0",
        "numpy>=1.24.0",
        "tabulate>=0.9.0",
        "termcolor>=2.1.0",
        "tqdm>=4.67.1",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
        ]
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
        "Topic :: Games/Entertainment :: Puzzle Games",
    ],
    python_requires=">=3.10",
)
