"""Setup script for PM2 Pilot."""

from setuptools import setup, find_packages
import os

# Read the README file
def read_readme():
    readme_path = os.path.join(os.path.dirname(__file__), 'README.md')
    if os.path.exists(readme_path):
        with open(readme_path, 'r', encoding='utf-8') as f:
            return f.read()
    return "PM2 Pilot - natural language assistant for the PM2 process manager"

setup(
    name='pm2-pilot',
    version='0.1.0',
    description='Natural language assistant for managing PM2 processes',
    long_description=read_readme(),
    long_description_content_type='text/markdown',
    author='PM2 Pilot Team',
    author_email='dev@example.com',

    packages=find_packages(include=['pm2_pilot', 'pm2_pilot.*']),
    python_requires='>=3.9',
    install_requires=[
        'requests>=2.31.0',
        'pydantic>=2.0.0',
        'click>=8.1.0',
        'python-dotenv>=1.0.0',
    ],

    extras_require={
        'openai': ['openai>=1.0.0'],
        'anthropic': ['anthropic>=0.18.0'],
        'all': ['openai>=1.0.0', 'anthropic>=0.18.0', 'pyyaml>=6.0', 'tomli>=2.0.0'],
        'yaml': ['pyyaml>=6.0', 'tomli>=2.0.0'],
        'dev': [
            'pytest>=7.4.0',
            'pytest-asyncio>=0.21.0',
            'pytest-cov>=4.1.0',
            'black>=23.0.0',
            'flake8>=6.0.0',
            'mypy>=1.5.0',
        ],
    },

    entry_points={
        'console_scripts': [
            'pm2-pilot=pm2_pilot.cli:cli',
        ],
    },

    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: System Administrators',
        'Intended Audience :: Developers',
        'Topic :: System :: Systems Administration',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
    ],

    keywords='pm2 process-manager nodejs ai assistant automation',

    include_package_data=True,
    zip_safe=False,
)
