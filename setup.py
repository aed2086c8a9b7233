from setuptools import find_packages, setup

# Core requirements
INSTALL_REQUIRES = [
    "aiohttp>=3.9.1",
    "python-dotenv>=1.0.0",
    "pydantic>=2.5.0",
    "structlog>=23.2.0",
    "prometheus-client>=0.17.1",
    "click>=8.0.0",
]

# Development requirements
EXTRAS_REQUIRE = {
    "dev": [
        "pytest>=7.4.3",
        "pytest-cov>=4.1.0",
        "pytest-asyncio>=0.23.2",
        "black>=23.11.0",
        "flake8>=6.1.0",
        "mypy>=1.7.1",
        "isort>=5.12.0",
    ],
    "test": [
        "pytest>=7.4.3",
        "pytest-cov>=4.1.0",
        "pytest-asyncio>=0.23.2",
    ],
}

setup(
    name="post_cache",
    version="1.0.0",
    description="Read-optimized blog post cache backed by Azure Table storage",
    long_description=open("README.md", "r", encoding="utf-8").read(),
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests*", "docs*"]),
    classifiers=[
        "Development Status :: 5 - Production/Stable",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.12",
        "Topic :: Internet :: WWW/HTTP :: Dynamic Content :: News/Diary",
    ],
    python_requires=">=3.11",
    install_requires=INSTALL_REQUIRES,
    extras_require=EXTRAS_REQUIRE,
    entry_points={
        "console_scripts": [
            "post-cache=post_cache.cli:main",
        ],
    },
)
