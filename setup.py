"""
Packaging for the HTTP communication layer. Tests are run with `pytest`, configured in setup.cfg.
"""

from setuptools import setup


setup(
    name='fbhttp',
    version='0.0.1',
    description='HTTP client and server communication layers for function-block runtimes.',
    url='',
    author='',
    author_email='',
    license='LGPL',
    package_dir={'': 'src'},
    packages=['fbhttp', 'fbhttp.com', 'fbhttp.config', 'fbhttp.http', 'fbhttp.support', 'fbhttp.transport'],
    package_data={'fbhttp': ['*.cfg'], 'fbhttp.config': ['*.cfg']},
    install_requires=['configobj', 'h11'],
    extras_require={
        'tests': ['PyHamcrest', 'pytest']
    },
    zip_safe=False,
)
