from setuptools import setup, find_packages

setup(
    name="therapy-practice",
    version="0.1.0",
    packages=find_packages(exclude=["therapy_practice.tests"]),
    install_requires=[
        "fastapi>=0.100.0",
        "uvicorn>=0.22.0",
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        "sqlalchemy>=2.0.0",
        "alembic>=1.11.0",
        "python-dotenv>=0.19.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "httpx>=0.24.0",
        ],
    },
    python_requires=">=3.8",
)
