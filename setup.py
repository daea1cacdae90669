import setuptools

VERSION = '0.1.0'

setup_params = dict(
    name='cachedproxy',
    version=VERSION,
    keywords='http proxy cache fallback',
    packages=['cachedproxy'],
    package_dir={'cachedproxy': 'cachedproxy'},
    include_package_data=True,
    description='A reverse proxy that answers from the last good response when the upstream is down',
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
    install_requires=[
        'requests~=2.31',
        'urllib3>=2.0,<3',
        'flask>=2.3,<4',
        'click>=8.1,<9',
    ],
    extras_require={
        'dev': [
            'mockito>=1.4',
            'pytest>=7.4',
            'pytest-cov>=4.1',
            'ddt>=1.6',
        ]
    },
    entry_points={
        'console_scripts': [
            'cachedproxy = cachedproxy.cli:main',
        ],
    },
    python_requires='>=3.8',
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Environment :: Web Environment',
        'Intended Audience :: System Administrators',
        'Natural Language :: English',
        'Operating System :: OS Independent',

        'Programming Language :: Python',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3 :: Only',
        'Topic :: Internet :: Proxy Servers',
    ],
)


if __name__ == '__main__':
    setuptools.setup(**setup_params)
