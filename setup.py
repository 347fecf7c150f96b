# setup.py

from setuptools import setup, find_packages

setup(
    name="k8s-node-balancer",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "kubernetes",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        'console_scripts': [
            'balance-nodes=k8s_balancer.cli:main',
        ],
    },
    description="Kubernetes node utilization balancer",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    keywords="kubernetes descheduler load-balancing",
    python_requires=">=3.8",
)
