from setuptools import setup, find_packages

setup(
    name='polywalk',
    version='0.1.0',
    description='Random-walk samplers for convex bodies (hit-and-run, ball, billiard, Dikin, HMC, NUTS) with effective sample size diagnostics.',
    packages=find_packages(exclude=['tests', 'tests.*', 'experiments']),
    install_requires=[
        'numpy',
        'scipy',
        'torch',
        'tqdm',
        'pandas',
    ],
    extras_require={
        'test': ['pytest'],
        'experiments': ['arviz'],
    },
    python_requires='>=3.8'
)
