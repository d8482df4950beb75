from setuptools import setup, find_packages

setup(
    name="audition",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "fastapi>=0.104.0",
        "uvicorn>=0.24.0",
        "python-dotenv>=1.0.0",
        "pydantic>=2.4.2",
        "pydantic-settings>=2.0.3",
        "structlog>=23.2.0",
        "httpx>=0.25.0",
        "aiofiles>=23.2.1",
        "python-multipart>=0.0.6",
        "numpy>=1.24.0",
        "soundfile>=0.12.1",
        "sounddevice>=0.4.6",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "audition-client=audition.client:main",
        ],
    },
)
