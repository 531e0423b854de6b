"""
Setup configuration for the restguard package.
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

with open("requirements.txt", "r", encoding="utf-8") as fh:
    requirements = [line.strip() for line in fh if line.strip() and not line.startswith("#")]

setup(
    name="restguard",
    version="0.1.0",
    author="restguard Contributors",
    author_email="contributors@restguard.example.com",
    description="An HTTP API request pipeline with declarative rate limiting, authentication and validation",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/yourusername/restguard",
    packages=find_packages(exclude=["tests", "tests.*", "examples", "examples.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.9",
    install_requires=requirements,
    extras_require={
        "server": ["uvicorn"],
        "dev": [
            "pytest>=6.0",
            "anyio>=3.0",
            "pytest-cov",
            "ruff",
            "mypy",
        ],
    },
    project_urls={
        "Bug Reports": "https://github.com/yourusername/restguard/issues",
        "Source": "https://github.com/yourusername/restguard",
    },
)
