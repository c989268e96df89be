from setuptools import setup, find_packages

with open("README.md", "r", encoding='utf-8') as fh:
    long_description = fh.read()

setup(
    name="python-ldap-paged-search",
    version="1.0.0",
    packages=find_packages(),
    include_package_data=True,
    package_data={'ldap_paged_search': ["py.typed", "test/*.json"]},
    python_requires=">=3.10",
    install_requires=[
        'python-ldap',
        'case-insensitive-dictionary',
    ],
    extras_require={
        'test': [
            'python-ldap-faker',
            'pytest',
        ],
    },
    author="Caltech IMSS ADS",
    author_email="cmalek@caltech.edu",
    url="https://github.com/caltechads/python-ldap-paged-search",
    description="Run paged LDAP searches with python-ldap and get back plain, normalized entries.",
    long_description=long_description,
    long_description_content_type="text/markdown",
    keywords=['ldap', 'paged results', 'active directory'],
    classifiers=[
        'Development Status :: 4 - Beta',
        'Environment :: Console',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: BSD License',
        'Operating System :: OS Independent',
        'Programming Language :: Python',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: System :: Systems Administration :: Authentication/Directory :: LDAP',
    ],
)
