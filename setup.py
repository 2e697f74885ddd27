"""
Fleet Maintenance Core

Multi-tenant fleet maintenance backend: permission evaluation, invariant
hooks, audit logging, user provisioning and admin bootstrap.
"""

from setuptools import setup, find_packages

setup(
    name="fleetcore",
    version="1.0.0",
    description="Fleet maintenance SaaS backend core",
    author="EquipTrack",
    packages=find_packages(include=["fleetcore", "fleetcore.*"]),
    python_requires=">=3.11",
    install_requires=[
        # API
        "fastapi>=0.104.0",
        "uvicorn[standard]>=0.24.0",
        "pydantic>=2.5.0",
        "pydantic-settings>=2.1.0",
        "email-validator>=2.1.0",

        # PostgreSQL support
        "sqlalchemy[asyncio]>=2.0.23",
        "psycopg2-binary>=2.9.9",
        "asyncpg>=0.29.0",

        # Database migrations
        "alembic>=1.13.0",

        # Security
        "python-jose[cryptography]>=3.3.0",
        "bcrypt>=4.1.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.23.0",
            "pytest-cov>=4.1.0",
            "httpx>=0.25.0",
            "aiosqlite>=0.19.0",
            "black>=23.10.0",
            "flake8>=6.1.0",
            "mypy>=1.7.0",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3.11",
        "License :: Other/Proprietary License",
    ],
)
