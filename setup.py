# setup.py
from setuptools import setup, find_packages

setup(
    name="cartocover",
    version="0.1.0",
    description="Compile ordered, overlapping scale-dependent style rules into non-overlapping ones",
    package_dir={"": "src"},
    packages=find_packages(where="src"),        # automatically finds your modules
    install_requires=[
        "numpy>=1.24",
        "pandas>=2.0",
    ],
    extras_require={
        "test": ["pytest>=7"],
    },
    python_requires=">=3.8",
    include_package_data=True,
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
)
