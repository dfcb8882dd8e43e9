# Author: Eric Kow
# License: BSD3

"""
Parsed annotation files, read at most once per agreement run
"""

import sys
import warnings

from ..tagxml import read_annotation_file


class ParseCache(object):
    """
    Per-document parses of every annotator's file.

    Not meant to be shared between threads.

    :param index: which files belong to which document and annotator
    :type index: standoff.corpus.AnnotationIndex

    :param schema: the task the files were annotated for
    :type schema: standoff.annotation.TaskSchema

    :param verbose: report progress on stderr
    """
    def __init__(self, index, schema, verbose=False):
        self.index = index
        self.schema = schema
        self.verbose = verbose
        self._parses = {}

    def get_parses(self, doc):
        """
        One :py:class:`standoff.tagxml.ParseResult` per annotator, in
        annotator order (None where the annotator has no file for the
        document)
        """
        if doc not in self._parses:
            paths = self.index.annotation_files(doc)
            parses = []
            for i, path in enumerate(paths):
                if self.verbose:
                    sys.stderr.write("\rParsing annotations for %s [%d/%d]" %
                                     (doc, i, len(paths)))
                parses.append(None if path is None else
                              read_annotation_file(path, self.schema))
            if self.verbose:
                sys.stderr.write("\rParsing annotations for %s [%d/%d done]\n"
                                 % (doc, len(paths), len(paths)))
            self._parses[doc] = parses
        return self._parses[doc]

    def document_length(self, doc):
        """
        Length of the primary text of the document. Annotators that
        disagree on the primary text are reported with a warning; the
        longest text wins.
        """
        lengths = [len(p.primary_text) for p in self.get_parses(doc)
                   if p is not None]
        if not lengths:
            return 0
        if len(set(lengths)) > 1:
            warnings.warn("Annotators of %s do not agree on the length of "
                          "the primary text: %s" % (doc, lengths))
        return max(lengths)
