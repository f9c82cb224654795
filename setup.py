from setuptools import find_packages, setup

setup(
    name="ado-access-reporter",
    version="0.1.0",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    install_requires=[
        "pyyaml",
        "requests",
        "rich",
        "tenacity",
        "urllib3",
        "azure-identity",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "adoar=ado_access_reporter.cli:main",  # Shorter CLI command
            "ado-access-reporter=ado_access_reporter.cli:main",  # Full name
        ],
    },
    description="Report Azure DevOps group membership and usage across projects",
    author="Christos Galanopoulos",
    author_email="christosgalano@outlook.com",
    python_requires=">=3.10",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: System Administrators",
        "Topic :: System :: Systems Administration",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
    ],
)
