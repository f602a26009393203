from setuptools import setup, find_packages
from pathlib import Path
import sys

# Check Python version requirement
if sys.version_info < (3, 9):
    raise RuntimeError("FtpStore requires Python 3.9 or newer")

setup(
    name="FtpStore",
    version="1.0.0",
    author="Andrew Hernandez",
    author_email="andromedeyz@hotmail.com",
    description="An async FTP file system for Python: path-based streams, listings, copies and moves over a pool of reusable sessions.",
    long_description=(
        open("README.md", "r", encoding="utf-8").read()
        if Path("README.md").exists()
        else "FtpStore turns an FTP server into something you can navigate like a file system. Open streams, list directories, copy, move and stat remote files with plain paths, while a small pool of sessions does the talking and server quirks in directory listings are detected for you."
    ),
    long_description_content_type="text/markdown",
    url="http://github.com/ApaxPhoenix/FtpStore",
    project_urls={
        "Bug Tracker": "http://github.com/ApaxPhoenix/FtpStore/issues",
        "Source Code": "http://github.com/ApaxPhoenix/FtpStore",
    },
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 5 - Production/Stable",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Internet :: File Transfer Protocol (FTP)",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "Topic :: System :: Filesystems",
    ],
    python_requires=">=3.9",
    install_requires=[
        "aioftp>=0.21.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
        ],
    },
    keywords="ftp, ftps, async, file system, file transfer, connection pool",
    license="MIT",
    zip_safe=False,  # Set to False for packages with data files or C extensions
    include_package_data=True,  # Include files specified in MANIFEST.in
)
