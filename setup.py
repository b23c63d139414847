from setuptools import setup, find_packages

setup(
    name="crawlrank",
    version="0.1.0",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    package_data={"crawlrank": ["templates/*.html"]},
    python_requires=">=3.11",
    install_requires=[
        "aiohttp>=3.9",
        "beautifulsoup4",
        "cachetools",
        "numpy",
        "nltk",
        "fastapi",
        "jinja2",
        "uvicorn",
        "pydantic>=2.0.0",
        "prometheus-client",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
            "httpx",
        ],
    },
    entry_points={
        "console_scripts": [
            "crawlrank=crawlrank.cli:main",
        ],
    },
)
