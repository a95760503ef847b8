import os
from setuptools import setup

NAME = 'dsconverge'


def getPackages(base):
    """
    Recursively find python packages.
    """
    packages = []

    for directory, _, files in os.walk(base):
        if '__init__.py' in files:
            packages.append(directory.replace(os.sep, '.'))

    return packages

packages = getPackages(NAME)


setup(
    name=NAME,
    version='0.0.0',
    description='Converges the clustering configuration (config sync, '
                'failover, trust and device groups) of network appliances',
    packages=packages,
    license="Apache 2.0",
    python_requires='>=3.7',
    install_requires=[
        'attrs',
        'constantly',
        'jsonschema',
        'pyrsistent',
        'toolz',
        'Twisted',
        'zope.interface',
    ],
    extras_require={
        'test': ['mock', 'pytest'],
    },
)
