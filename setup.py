#!/usr/bin/env python
""" Query Envelope adapter for MongoDB: JSON queries in, MongoDB statements out """

from setuptools import setup, find_packages

setup(
    name='mongoqe',
    version='1.0.0',
    author='Mark Vartanyan',
    author_email='kolypto@gmail.com',

    url='https://github.com/kolypto/py-mongoqe',
    license='BSD',
    description=__doc__,
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
    keywords=['mongodb', 'motor', 'asyncio'],

    packages=find_packages(exclude=('tests',)),
    scripts=[],
    entry_points={},

    python_requires='>= 3.8',
    install_requires=[
        'motor >= 3.0',
        'pymongo >= 4.0',
    ],
    extras_require={
        'test': [
            'pytest',
            'pytest-cov',
            'nox',
        ],
    },
    include_package_data=True,

    platforms='any',
    classifiers=[
        # https://pypi.python.org/pypi?%3Aaction=list_classifiers
        'Development Status :: 4 - Beta',
        'Intended Audience :: Developers',
        'Natural Language :: English',
        'Operating System :: OS Independent',
        'Programming Language :: Python :: 3',
        'Framework :: AsyncIO',
        'Topic :: Database',
        'Topic :: Software Development :: Libraries :: Python Modules',
    ],
)
