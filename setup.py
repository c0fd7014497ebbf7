from setuptools import setup, find_packages
import os

# Read requirements.txt
requirements_file = 'requirements.txt'
install_requires = []
if os.path.exists(requirements_file):
    with open(requirements_file, 'r') as f:
        install_requires = [line.strip() for line in f if line.strip() and not line.startswith('#')]

setup(
    name="solana_alert_bot_bundle",
    version="0.1.0",
    packages=find_packages(include=['solana_alert_bot_bundle', 'solana_alert_bot_bundle.*']),
    install_requires=install_requires,
    extras_require={
        'test': ['pytest>=7.4', 'pytest-asyncio>=0.21'],
    },
    author="Effie Choupette",
    author_email="effie_choupette@outlook.com",
    description="Solana token trust & opportunity scoring alert bot",
    long_description=open('README.md').read() if os.path.exists('README.md') else '',
    long_description_content_type="text/markdown",
    python_requires=">=3.9",
    package_data={
        'solana_alert_bot_bundle': ['*.yaml', '*.txt'],
    },
    include_package_data=True,
    entry_points={
        'console_scripts': [
            'solana-alert-bot=solana_alert_bot_bundle.alert_bot.__main__:main',
        ],
    },
)
