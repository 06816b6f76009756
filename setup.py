from setuptools import setup, find_packages

setup(
    name="scrapbox_skill",
    version="0.1.0",
    packages=find_packages(include=["scrapbox_skill", "scrapbox_skill.*"]),
    python_requires=">=3.10",
    install_requires=[
        "requests",
        "pyyaml",
        # Browser automation for append / patch
        "playwright>=1.45",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "scrapbox-skill=scrapbox_skill.cli:main",
        ],
    },
    description="Read Scrapbox/Cosense pages and apply unified diffs to them.",
)
