from setuptools import setup, find_packages

setup(
    name="CRTPower",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=[
        "numpy",
        "pandas",
        "matplotlib",
        "scipy>=1.8",
        "statsmodels",
        "joblib",
    ],
    extras_require={
        "progress": ["tqdm"],
        "plot": ["matplotlib"],
        "test": ["pytest"],
    },
    description="Monte Carlo Power Analysis for Multi-Arm Cluster-Randomised Trials",
)
