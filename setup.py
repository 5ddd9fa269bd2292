from setuptools import setup, find_packages

setup(
    name="route_registry",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "pyyaml",
        "numpy>=1.24",
        # Static scanning
        "tree-sitter>=0.23",
        "tree-sitter-javascript",
        "tree-sitter-typescript",
        "tqdm>=4.60",
    ],
    extras_require={
        # External embedding provider (install separately when needed)
        "semantic": [
            "openai>=1.0",
        ],
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "route-registry=route_registry.cli:main",
        ],
    },
    author="Uday Kanth",
    description="Static route registry scanner with vector similarity search.",
)
