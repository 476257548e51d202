import codecs

from setuptools import setup, find_packages

from signon import __version__


def long_description() -> str:
    with codecs.open('README.md', encoding='utf-8') as fd:
        return fd.read()


setup(
    name='signon',
    version=__version__,
    description='Browser based OIDC sign in, MFA and session state reuse for end-to-end test suites',
    long_description=long_description(),
    long_description_content_type='text/markdown',
    license='MIT',
    packages=find_packages(exclude=['*tests', '*tests.*']),
    package_data={
        'signon': ['py.typed'],
    },
    python_requires='>=3.9',
    install_requires=[
        'gevent>=21.12.0',
        'Jinja2>=3.0.3',
        'playwright>=1.40.0',
        'pyotp>=2.6.0',
        'PyYAML>=5.3.0',
    ],
    keywords=[
        'oidc',
        'sso',
        'totp',
        'mfa',
        'playwright',
        'end-to-end testing',
    ],
    classifiers=[
        'Development Status :: 4 - Beta',
        'License :: OSI Approved :: MIT License',
        'Natural Language :: English',
        'Programming Language :: Python',
        'Programming Language :: Python :: 3 :: Only',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Programming Language :: Python :: Implementation :: CPython',
        'Operating System :: POSIX :: Linux',
    ],
    extras_require={
        'dev': [
            'mypy>=0.931',
            'flake8>=4.0.0',
            'pylint>=2.12.2',
            'pytest>=7.0.0',
            'pytest-cov>=3.0.0',
            'pytest-mock>=3.7.0',
            'pytest-timeout>=2.1.0',
            'types-PyYAML>=5.3.0',
        ],
        'ci': [
            'twine>=3.8.0',
            'wheel>=0.37.1',
        ]
    },
    entry_points={
        'console_scripts': [
            'signon=signon.__main__:main',
        ]
    },
)
