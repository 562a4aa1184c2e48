from setuptools import setup, find_packages

setup(
    name="folioguard",
    version="0.1.0",
    packages=find_packages(include=["folioguard", "folioguard.*"]),
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.110",
        "starlette",
        "pydantic>=2.6",
        "pydantic-settings>=2.7",
        "httpx",
        "redis>=5.0",
        "python-multipart",
        "uvicorn[standard]",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
            "respx",
        ],
    },
)
