from setuptools import setup, find_packages

setup(
    name="eventlog-archiver",
    version="0.1.0",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    install_requires=[
        "jinja2>=3.1.0",
        "pydantic>=2.5.0",
        "pydantic-settings>=2.1.0",
        "pywinrm[kerberos]>=0.4.3",
        "requests>=2.31.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "eventlog-archiver=eventlog_archiver.cli:main",
        ],
    },
    python_requires=">=3.11",
)
