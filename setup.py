from setuptools import setup

setup(
    name='rtgen',
    version='0.1dev',
    packages=['rtgen', 'rtgen.outputs'],
    install_requires=[
        'toml>=0.10'
    ],
    extras_require={
        'tests': ['pytest']
    },
    python_requires='>=3.6',
    #long_description=open('README.md').read()
    entry_points={
        'console_scripts': [
            'rtgen=rtgen.__main__:main'
        ]
    })
