"""
Setup script para instalação do projeto Portal NPJ.

Este arquivo permite instalar o projeto em modo editable para desenvolvimento:
    pip install -e .

Isso adiciona o projeto ao PYTHONPATH e permite imports como:
    from sistemas.processos.services import query_visiveis
"""

from setuptools import setup, find_namespace_packages

setup(
    name="portal-npj",
    version="1.0.0",
    description="Portal NPJ - Núcleo de Prática Jurídica",
    packages=find_namespace_packages(
        include=["auth*", "users*", "database*", "middleware*", "services*", "utils*", "sistemas*"],
        exclude=["tests", "tests.*"],
    ),
    py_modules=["main", "config"],
    python_requires=">=3.10",
    install_requires=[
        "fastapi>=0.110",
        "uvicorn[standard]>=0.27",
        "sqlalchemy>=2.0",
        "pydantic>=2.5",
        "email-validator>=2.1",
        "python-jose[cryptography]>=3.3",
        "bcrypt>=4.1",
        "python-multipart>=0.0.9",
        "python-dotenv>=1.0",
        "structlog>=24.1",
        "slowapi>=0.1.9",
        "pytz>=2024.1",
        "python-dateutil>=2.9",
        "redis>=5.0.1",
        "aiosmtplib>=3.0",
        "openpyxl>=3.1",
    ],
    extras_require={
        "postgres": [
            "psycopg2-binary>=2.9",
        ],
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
            "fakeredis>=2.21",
            "httpx>=0.27",
        ],
    },
)
