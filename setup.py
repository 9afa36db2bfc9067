"""
Установочный скрипт для ядра анализатора эмоций.
"""

from setuptools import setup, find_packages
from pathlib import Path

# Чтение README
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text(encoding='utf-8')

setup(
    name="face-analyzer-core",
    version="1.0.0",
    author="Face Analyzer Team",
    author_email="team@faceanalyzer.example.com",
    description="Ядро анализатора эмоций по лицу: ограниченный адаптивный пул воркеров и TTL-кэш с бюджетом по размеру",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/example/face-analyzer-core",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "Topic :: Scientific/Engineering :: Image Recognition",
    ],
    python_requires=">=3.8",
    install_requires=[
        "psutil>=5.9.0",
        "pyyaml>=6.0",
        "requests>=2.28.0",
        "prometheus-client>=0.15.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "pytest-mock>=3.10.0",
            "black>=22.0.0",
            "flake8>=5.0.0",
            "mypy>=1.0.0",
            "isort>=5.12.0",
        ],
        "test": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "pytest-mock>=3.10.0",
        ],
    },
    include_package_data=True,
    package_data={
        "analyzer_core": ["config/*.yaml"],
    },
    keywords="face emotion analyzer worker pool ttl cache autoscaling graceful shutdown",
    project_urls={
        "Bug Reports": "https://github.com/example/face-analyzer-core/issues",
        "Source": "https://github.com/example/face-analyzer-core",
    },
)
