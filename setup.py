"""
standoff setup: standoff is a library for standoff annotation of a
primary text, and for measuring inter-annotator agreement on it
"""

from setuptools import setup, find_packages
import glob
import os

REQS = [
    'nltk >= 3.0.0',
    'numpy',
    'tabulate >= 0.8.3',
]

TEST_REQS = [
    'pytest',
]


setup(name='standoff',
      version='0.1',
      author='Eric Kow',
      author_email='eric@erickow.com',
      packages=find_packages(),
      scripts=[f for f in glob.glob('scripts/*') if not os.path.isdir(f)],
      install_requires=REQS,
      extras_require={'test': TEST_REQS})
