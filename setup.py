import setuptools

setuptools.setup(
    name="static-site-blue-green",
    version="0.1.0",

    description="CDK app for an S3 + CloudFront static site with a blue/green release pipeline",
    author="author",

    packages=setuptools.find_packages(include=["infra", "infra.*"]),

    install_requires=[
        "aws-cdk-lib>=2.156.0,<3.0.0",
        "constructs>=10.0.0,<11.0.0",
        "cdk-nag>=2.27.0,<3.0.0",
    ],

    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },

    python_requires=">=3.8",

    classifiers=[
        "Development Status :: 4 - Beta",

        "Intended Audience :: Developers",

        "Programming Language :: Python :: 3 :: Only",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",

        "Topic :: Software Development :: Code Generators",
        "Topic :: Utilities",
    ],
)
