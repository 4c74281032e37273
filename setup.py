from setuptools import setup, find_packages

# Find all packages in the current directory
packages = find_packages(include=["odbclite", "odbclite.*"])

setup(
    name='odbclite',
    version='0.1.0',
    description='A lightweight Python layer over the platform ODBC driver manager',
    author='Microsoft Corporation',
    author_email='pysqldriver@microsoft.com',
    packages=packages,
    # Requires >= Python 3.8
    python_requires='>=3.8',
    classifiers=[
        'Operating System :: Microsoft :: Windows',
        'Operating System :: MacOS',
        'Operating System :: POSIX :: Linux',
    ],
    extras_require={
        'test': ['pytest'],
    },
    zip_safe=False,
)
