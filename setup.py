from setuptools import setup


setup(
    name="achievement-report",
    version="0.1.0",
    description="Fill achievement report spreadsheet templates from loosely shaped sales payloads",
    packages=["achievement_report"],
    python_requires=">=3.9",
    install_requires=[
        "pandas",
        "chardet",
        "openpyxl",
        "requests",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "achievement-report=achievement_report.cli:main",
        ]
    },
)
