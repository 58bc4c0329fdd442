"""Install the Nomadiqe identity and onboarding service."""

from setuptools import setup, find_packages

setup(
    name='nomadiqe-auth',
    version='0.1.0',
    packages=find_packages(exclude=['*tests*']),
    package_data={'nomadiqe_auth': ['templates/email/*']},
    install_requires=[
        "flask",
        "werkzeug",
        "sqlalchemy>=1.4",
        "pyjwt>=2",
        "pytz",
        "wtforms>=3",
        "retry",
        "bcrypt",
        "python-json-logger",
        "jinja2",
    ],
    extras_require={
        'test': ["pytest", "mimesis"]
    },
    zip_safe=False
)
