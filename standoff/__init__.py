"""
standoff is a library for standoff annotation over a fixed primary text,
and for measuring how well several annotators agree on such annotations.

It is organised in a few layers:

* :py:mod:`standoff.spans`: character offsets and the textual span notation
* :py:mod:`standoff.annotation`: tag types, tags, attributes and arguments
* :py:mod:`standoff.store`: the editable annotation store for one document
* :py:mod:`standoff.tagxml`: reading and writing annotation XML files
* :py:mod:`standoff.dtd`: reading task schemas from DTD files
* :py:mod:`standoff.corpus`: finding per-annotator files for a set of documents
* :py:mod:`standoff.agreement`: inter-annotator agreement
"""

# Author: Eric Kow
# License: BSD3

__all__ = ['agreement',
           'annotation',
           'corpus',
           'dtd',
           'ids',
           'spans',
           'store',
           'tagxml',
           'util']
