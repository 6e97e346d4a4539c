# setup.py
from setuptools import setup, find_packages

install_requires = [
    # --- MODELS & CONFIG ---
    "pydantic>=2.0.0",
    "pyyaml>=6.0.0",
    "python-dotenv>=1.0.0",

    # --- LOCAL CACHE ---
    "duckdb>=0.10.0",

    # --- BACKEND ---
    # Firestore + Cloud Storage through the Admin SDK
    "firebase-admin>=6.2.0",
    "httpx>=0.27.0",  # Identity Toolkit REST endpoints

    # --- TESTS---
    "pytest-asyncio==1.3.0",
    "pytest"
]

setup(
    name="odyssea",
    version="0.3.0",
    description="Odyssea travel journal - client state and sync layer",
    packages=find_packages(),
    package_data={"odyssea": ["shared/config/settings/*.yaml"]},
    include_package_data=True,
    install_requires=install_requires,
    python_requires=">=3.11",
)
