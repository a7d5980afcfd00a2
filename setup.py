"""
docgraph Setup Script

Install with: pip install -e .
"""

from setuptools import setup, find_packages

setup(
    name='docgraph',
    version='0.1.0',
    description='Graph-backed document retrieval: overlapping chunks, embeddings, hybrid search',
    packages=find_packages(include=['docgraph', 'docgraph.*']),
    install_requires=[
        'falkordb>=1.0.0',
        'redis>=5.0.0',
        'structlog>=23.2.0',
        'numpy>=1.26.0',
        'sentence-transformers>=2.2.0',
        'aiohttp>=3.9.0',
        'pyyaml>=6.0.1',
    ],
    extras_require={
        'test': [
            'pytest>=7.4.0',
            'pytest-asyncio>=0.21.0',
        ],
    },
    python_requires='>=3.11',
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Developers',
        'Intended Audience :: Science/Research',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: Scientific/Engineering :: Artificial Intelligence',
        'Topic :: Text Processing :: Indexing',
    ],
)
