"""Setup file for bitbucket-cloud-client package."""

from setuptools import setup, find_packages

setup(
    name="bitbucket-cloud-client",
    version="0.1.0",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.8",
    install_requires=[
        "requests",
        "urllib3",
        "python-dotenv"
    ],
    extras_require={
        "dev": [
            "pytest",
            "responses",
            "black",
            "flake8",
            "mypy"
        ]
    },
    entry_points={
        "console_scripts": [
            "bitbucket-cloud=bitbucket_cloud.main:main"
        ]
    }
)
