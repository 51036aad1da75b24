from setuptools import setup, find_packages

setup(
    name="python-package",
    version="1.0",
    description="Example setup.py",
    url="https://github.com/example/python-package",
    author="Example",
    license="MIT",
    packages=find_packages(),
    install_requires=[
        "attrs",
        "mock",
    ],
)
