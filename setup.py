from setuptools import setup, find_packages
from pathlib import Path

readme_path = Path(__file__).parent / "README.md"
if readme_path.exists():
    long_description = readme_path.read_text(encoding="utf-8")
else:
    long_description = "An object-graph mapper for Neo4j: typed repositories over dataclasses and pydantic models."

setup(
    name="neopersist",
    version="0.1.0",
    description="An object-graph mapper for Neo4j: typed repositories over dataclasses and pydantic models",
    long_description=long_description,
    long_description_content_type="text/markdown",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.9",
    install_requires=[
        "networkx>=3.0",
        "pyyaml>=6.0",
        "pydantic>=2.0.0",
    ],
    extras_require={
        "dev": [
            "pytest",
            "coverage",
            "neo4j>=5.0",  # For runner tests (driver types are mocked)
        ],
        "neo4j": ["neo4j>=5.0"],
        "all": ["neo4j>=5.0"],
    },
)
