from setuptools import setup
from io import open
from os import path

this_directory = path.abspath(path.dirname(__file__))
with open(path.join(this_directory, "README.md"), encoding="utf-8") as f:
    LONG_DESCRIPTION = f.read()

setup(
    name="databrickshl7",
    version="0.0.1",
    python_requires='>=3.9',
    author="Aaron Zavora, Raven Mukherjee",
    author_email="aaron.zavora@databricks.com",
    description= "Parser for HL7 v2.x pipe-delimited messages",
    long_description=LONG_DESCRIPTION,
    long_description_content_type="text/markdown",
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: Other/Proprietary License",
        "Operating System :: OS Independent",
    ],
    packages=['databrickshl7'],
    install_requires=[
        'loguru>=0.7.0',
        'PyYAML>=6.0'
    ],
    extras_require={
        'spark': [
            'pyarrow>=12.0.0',
            'pyspark>=3.4.0'
        ],
        'test': [
            'pyarrow>=12.0.0',
            'pyspark>=3.4.0',
            'pytest>=7.0.0'
        ]
    }
)
