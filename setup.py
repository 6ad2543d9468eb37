from setuptools import setup, find_packages

setup(
    name="copula-risk-forecast",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["models", "config", "run_forecast"],
    install_requires=[
        "numpy<2.4",  # copulae 0.8 calls float() on 1-element arrays, an error in numpy>=2.4
        "pandas",
        "scipy",
        "arch",
        "copulae",
        "statsmodels",
        "tqdm",
        "yfinance",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": ["risk-forecast=run_forecast:main"],
    },
    python_requires=">=3.8",
)
