from setuptools import setup, find_packages

setup(
    name="dissect.fixedvhd",
    version="1.0",
    packages=list(map(lambda v: "dissect." + v, find_packages("dissect"))),
    install_requires=[
        "dissect.cstruct>=4.0.dev,<5.0.dev",
        "dissect.util>=3.0.dev,<4.0.dev",
    ],
    extras_require={
        "full": [
            "rich",
        ],
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "vhd-tool=dissect.fixedvhd.tools.vhd:main",
        ]
    },
)
