"""Setup configuration for lewis-storefront project."""

from setuptools import setup, find_packages

setup(
    name="lewis-storefront",
    version="1.0.0",
    description="Storefront cart and checkout service for the Lewis store API, built on FastAPI",
    author="Your Name",
    packages=find_packages(include=["shared", "shared.*", "storefront", "storefront.*"]),
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.109.0",
        "uvicorn>=0.27.0",
        "redis>=5.0.0",
        "httpx>=0.26.0",
        "pydantic>=2.5.0",
        "pydantic-settings>=2.1.0",
        "python-multipart>=0.0.9",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
        ],
    },
)
