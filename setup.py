from setuptools import find_packages, setup

setup(
    name="vault_migrator",
    version="0.1.0",
    packages=find_packages(exclude=["vault_migrator_tests", "vault_migrator_tests.*"]),
    python_requires=">=3.9",
    install_requires=[
        "hvac>=1.1",
        "pydantic>=2",
        "python-dotenv",
        "requests",
    ],
    extras_require={"dev": ["pytest"]},
    entry_points={
        "console_scripts": ["vault-migrator=vault_migrator.cli:main"],
    },
)
