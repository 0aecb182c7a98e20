"""Setup configuration for kmerseer package"""

from setuptools import setup, find_packages

setup(
    name="kmerseer",
    version="0.1.0",
    author="kmerseer Development Team",
    description="k-mer association testing for binary phenotypes with MDS population structure correction",
    long_description=open("README.md").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*", "examples"]),
    install_requires=[
        "numpy>=1.19.0",
        "scipy>=1.6.0",
        "pandas>=1.2.0",
        "statsmodels>=0.12.0",
        "joblib>=1.3.0",
        "numba>=0.50.0",
    ],
    extras_require={
        "tests": [
            "pytest>=6.0",
        ],
    },
    python_requires=">=3.8",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Topic :: Scientific/Engineering :: Bio-Informatics",
    ],
)
