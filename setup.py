from setuptools import find_packages, setup

setup(
    name="motor-rental",
    version="0.1.0",
    packages=find_packages(include=["motor_rental", "motor_rental.*"]),
    package_dir={"": "."},
    python_requires=">=3.9",
    install_requires=[
        "sqlalchemy>=2.0.0",
        "loguru>=0.7.0",
        "python-dotenv>=1.0.0",
        "fastapi>=0.100.0",
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        "uvicorn>=0.23.0",
        "prometheus-client>=0.17.0",
        "prometheus-fastapi-instrumentator>=6.1.0",
        "alembic>=1.12.0",
        "psycopg2-binary>=2.9.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "httpx>=0.24.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "motor-rental-api=motor_rental.main:main",
            "motor-rental-worker=motor_rental.worker:main",
        ],
    },
)
