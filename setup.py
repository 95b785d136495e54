from setuptools import setup, find_packages

setup(
    name="smol_coder",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "pyyaml",
        "textual",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "smol-edit=smol_coder.cli:main",
        ],
    },
    description="Applies anchored, machine-proposed edits with diffs, backups and undo.",
)
