#!/usr/bin/env python3
"""
arbrochure Setup Script
"""

from setuptools import setup, find_packages

setup(
    name='arbrochure',
    version='1.0.0',
    description='Pose stabilization core for an AR brochure viewer',
    author='AR Brochure Team',
    packages=find_packages(include=['arbrochure', 'arbrochure.*']),
    python_requires='>=3.8',
    install_requires=[
        'numpy>=1.20.0',
        'scipy>=1.7.0',
        'pyyaml>=5.4.0',
        'pandas>=1.3.0',
    ],
    extras_require={
        'dev': [
            'pytest>=6.0.0',
            'pytest-cov>=2.0.0',
        ],
    },
)
