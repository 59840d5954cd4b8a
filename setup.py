from setuptools import find_packages, setup
import io
import os
import re

this_directory = os.path.abspath(os.path.dirname(__file__))

with open(
    os.path.join(this_directory, "requirements.txt"), encoding="utf-8"
) as f:
    requirements = f.read().splitlines()


def readme():
    readme_file = os.path.join(this_directory, "README.md")
    if not os.path.exists(readme_file):
        return ""
    with open(readme_file, encoding="utf-8") as f:
        return f.read()


def read(*names, **kwargs):
    with io.open(
        os.path.join(os.path.dirname(__file__), *names),
        encoding=kwargs.get("encoding", "utf8"),
    ) as fp:
        return fp.read()


def find_version(*file_paths):
    version_file = read(*file_paths)
    version_match = re.search(
        r"^__version__ = ['\"]([^'\"]*)['\"]", version_file, re.M
    )
    if version_match:
        return version_match.group(1)
    raise RuntimeError("Unable to find version string.")


setup(
    name="sisrs",
    version=find_version("sisrs/__init__.py"),
    description="sisrs: site identification from short read sequences "
    + "across multiple taxa without a reference genome",
    long_description=readme(),
    long_description_content_type="text/markdown",
    license="MIT",
    packages=find_packages(exclude=["tests"]),
    include_package_data=True,
    install_requires=requirements,
    extras_require={"test": "pytest"},
    entry_points={"console_scripts": ["sisrs = sisrs.__main__:main"]},
    python_requires=">=3.8",
)
