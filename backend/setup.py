from setuptools import setup, find_namespace_packages

setup(
    name="vetclinic-ops",
    version="0.1.0",
    python_requires=">=3.10",
    packages=find_namespace_packages(include=["app", "app.*"]),
    install_requires=[
        "fastapi",
        "uvicorn",
        "sqlalchemy",
        "psycopg2-binary",
        "python-jose[cryptography]",
        "passlib[bcrypt]",
        "bcrypt<4.1",
        "python-dotenv",
        "pydantic",
        "pydantic-settings",
        "email-validator",
        "httpx",
        "celery",
        "redis",
        "prometheus-client",
        "prometheus-fastapi-instrumentator",
        "tzdata",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
)
