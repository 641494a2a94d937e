# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Third-Auth contributors

"""Setup configuration for third-auth package."""

from pathlib import Path

from setuptools import find_packages, setup

# Read the README file
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text(encoding="utf-8")

setup(
    name="third-auth",
    version="0.1.0",
    author="Third-Auth Contributors",
    description="Server-side validation of Sign in with Apple, Google, X, LinkedIn and SnapChat credentials",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["third_auth", "third_auth.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.10",
    install_requires=[
        "httpx>=0.27.0",  # Async HTTP client for provider token, key and user-info endpoints
        "PyJWT>=2.8.0",  # For identity token verification and Apple client secret signing
        "cryptography>=44.0.1",  # For RSA/EC key handling behind PyJWT
        "pydantic>=2.4.0",  # For credential and settings validation
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.0.0",
            "pylint>=3.0.0",
            "mypy>=1.0.0",
        ],
    },
)
