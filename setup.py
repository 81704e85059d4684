"""Package setup for railway-terminus."""

from setuptools import setup, find_packages

setup(
    name="railway-terminus",
    version="1.0.0",
    description="Railway project dashboard for e-ink displays",
    packages=find_packages(include=["terminus", "terminus.*"]),
    package_data={
        "terminus": ["queries/*.gql", "templates/*.html"],
    },
    python_requires=">=3.9",
    install_requires=[
        "fastapi>=0.100.0",
        "uvicorn>=0.23.0",
        "httpx>=0.24.0",
        "pydantic>=2.0.0",
        "pyyaml>=6.0",
        "jinja2>=3.1.0",
        "typer>=0.9.0",
        "rich>=13.0.0",
        "tzdata; platform_system == 'Windows'",
    ],
    extras_require={
        "test": ["pytest>=7.0.0"],
    },
    entry_points={
        "console_scripts": [
            "terminus=terminus.cli:app",
        ],
    },
)
