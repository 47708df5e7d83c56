"""Install the user account service."""

from setuptools import setup, find_packages

setup(
    name='user-service',
    version='0.1.0',
    packages=find_packages(exclude=['*tests*']),
    entry_points={
        'console_scripts': [
            'generate-token=users.generate_token:generate_token'
        ]
    },
    install_requires=[
        "click",
        "flask",
        "werkzeug",
        "sqlalchemy",
        "flask-sqlalchemy>=3",
        "python-dateutil",
        "python-json-logger",
        "pyjwt>=2",
        "pytz",
        "redis>=4.1"
    ],
    extras_require={
        'test': [
            "pytest",
            "fakeredis",
            "hypothesis",
            "mimesis"
        ]
    },
    zip_safe=False
)
