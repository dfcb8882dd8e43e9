# Author: Eric Kow
# License: BSD3

"""
Corpus management
"""
#
# A corpus here is a directory of annotation files, one per document
# and annotator, named
#
#     <document><delimiter><annotator>.xml
#
# eg. `story1_alice.xml`, `story1_bob.xml`. The document name may itself
# contain the delimiter; the annotator is whatever follows the last one.

from collections import OrderedDict
from glob import glob
import os
import warnings

ANNOTATOR_DELIMITER = '_'
XML_EXT = '.xml'

# adjudicated (gold standard) files are not counted as an annotator
# for agreement purposes unless asked for
GOLD_ANNOTATORS = frozenset(['gold', 'goldstandard', 'adjudication'])


def is_gold(annotator):
    "True if this is the annotator name of an adjudicated file"
    return annotator.lower() in GOLD_ANNOTATORS


class FileId(object):
    """
    Information needed to uniquely identify an annotation file.

    Note that this includes the annotator, so if you want to do
    comparisons on the "same" file between annotators you'll want
    to ignore this field.

    :param doc: document name
    :type doc:  string

    :param annotator: the annotator (or annotation tool) that
        generated this annotation file
    :type annotator: string
    """
    def __init__(self, doc, annotator):
        self.doc = doc
        self.annotator = annotator

    def __str__(self):
        return "%s %s" % (self.doc, self.annotator)

    def __repr__(self):
        return "FileId(%r, %r)" % (self.doc, self.annotator)

    def _tuple(self):
        """
        For internal use by __hash__, __eq__, etc
        """
        return (self.doc, self.annotator)

    def __hash__(self):
        return hash(self._tuple())

    def __eq__(self, other):
        return self._tuple() == other._tuple()

    def __lt__(self, other):
        return self._tuple() < other._tuple()


def parse_filename(filename, delimiter=ANNOTATOR_DELIMITER):
    """
    `FileId` for an annotation file name, or None if the name does not
    follow the `<document><delimiter><annotator>.xml` convention
    """
    base = os.path.basename(filename)
    if not base.endswith(XML_EXT):
        return None
    stem = base[:-len(XML_EXT)]
    if delimiter not in stem:
        return None
    doc, annotator = stem.rsplit(delimiter, 1)
    if not doc or not annotator:
        return None
    return FileId(doc, annotator)


def annotation_filename(file_id, delimiter=ANNOTATOR_DELIMITER):
    """
    File name (without directory) for the given document and annotator
    """
    return file_id.doc + delimiter + file_id.annotator + XML_EXT


class Reader(object):
    """
    `Reader` provides little more than dictionaries from `FileId`
    to file paths.

    :param rootdir: the directory holding the annotation files
    :type rootdir: str

    A potentially useful pattern to apply here is to take a slice of
    these dictionaries for processing. For example, you might only be
    interested in files from certain annotators

    .. code-block:: python

        reader = Reader(corpus_dir)
        files = reader.filter(reader.files(),
                              lambda k: k.annotator in ['bob', 'alice'])
    """
    def __init__(self, rootdir, delimiter=ANNOTATOR_DELIMITER):
        self.rootdir = rootdir
        self.delimiter = delimiter

    def files(self):
        """
        Return a dictionary from FileId to file path, sorted by
        document then annotator. File names that do not follow our
        conventions are skipped (with a warning).
        """
        found = {}
        for path in glob(os.path.join(self.rootdir, '*' + XML_EXT)):
            file_id = parse_filename(path, self.delimiter)
            if file_id is None:
                warnings.warn("Skipping %s: annotation files should be "
                              "named <document>%s<annotator>%s" %
                              (path, self.delimiter, XML_EXT))
                continue
            found[file_id] = path
        return OrderedDict(sorted(found.items()))

    def filter(self, d, pred):
        """
        Convenience function equivalent to ::

            { k:v for k,v in d.items() if pred(k) }
        """
        return OrderedDict([(k, v) for k, v in d.items() if pred(k)])


class AnnotationIndex(object):
    """
    Which annotation file belongs to which document and annotator.

    Annotators are kept in a fixed order (their `annotator_index`),
    which is the order of raters in agreement studies. Adjudicated
    files are left out unless `include_gold` is set, in which case the
    gold annotator comes last.

    :param files: dictionary from `FileId` to path, like what
        `Reader.files()` returns
    """
    def __init__(self, files, include_gold=False):
        self._paths = {}
        annotators = set()
        documents = set()
        for file_id, path in files.items():
            if is_gold(file_id.annotator) and not include_gold:
                continue
            self._paths[file_id] = path
            annotators.add(file_id.annotator)
            documents.add(file_id.doc)
        self.annotators = sorted(annotators,
                                 key=lambda x: (is_gold(x), x))
        self.documents = sorted(documents)

    @classmethod
    def from_directory(cls, rootdir, delimiter=ANNOTATOR_DELIMITER,
                       include_gold=False):
        "index of all annotation files in a directory"
        return cls(Reader(rootdir, delimiter).files(),
                   include_gold=include_gold)

    def annotator_index(self, annotator):
        return self.annotators.index(annotator)

    def document_names(self):
        return list(self.documents)

    def annotation_files(self, doc):
        """
        One path per annotator (in annotator order), None where the
        annotator has no file for this document
        """
        return [self._paths.get(FileId(doc, annotator))
                for annotator in self.annotators]

    def is_complete(self, doc):
        "True if every annotator has a file for this document"
        return all(path is not None for path in self.annotation_files(doc))
