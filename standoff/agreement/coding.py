# Author: Eric Kow
# License: BSD3

"""
Coding agreement: how often annotators put the same category on the
same unit of text, corrected for chance.

Each target tag type gives one study per targeted attribute (labelled
`TAG.attribute`), and a combined study for the tag type as a whole
(labelled `TAG`) whose categories are all the targeted attribute values
together, or just the presence of the tag if no attributes are
targeted.

A unit is either a tag position (the exact set of offsets of a tag) or
a single character, depending on the requested granularity. Every unit
that any annotator tagged is an item of the study; annotators that did
not tag it assign it the :py:data:`NONE_CATEGORY`.

The coefficients themselves come from `nltk.metrics.agreement`.
"""

from collections import OrderedDict
import warnings

from nltk.metrics.agreement import AnnotationTask

from ..spans import offsets_to_string

NONE_CATEGORY = '(none)'
UNSET_VALUE = '(unset)'
MULTI_VALUE_JOINER = '|'

GRANULARITIES = ['tag', 'char']

# metric name to AnnotationTask method
CODING_METRICS = OrderedDict([('multi_pi', 'pi'),
                              ('cohen_kappa', 'kappa'),
                              ('multi_kappa', 'multi_kappa'),
                              ('alpha', 'alpha')])

# pylint: disable=too-many-arguments


class CodingStudy(object):
    """
    Category assigned by each rater to each item

    :param raters: names of the raters, in annotator order
    """
    def __init__(self, label, raters):
        self.label = label
        self.raters = list(raters)
        self._items = OrderedDict()

    def add(self, item, rater_index, category):
        """
        Record the category a rater gave to an item. Raters that never
        mention the item are taken to have given it `NONE_CATEGORY`.
        """
        if item not in self._items:
            self._items[item] = [NONE_CATEGORY] * len(self.raters)
        self._items[item][rater_index] = category

    def item_count(self):
        return len(self._items)

    def categories(self):
        "every category assigned by any rater"
        return set(c for row in self._items.values() for c in row)

    def triples(self):
        """
        (rater, item, category) for every rater and item
        """
        return [(rater, item, category)
                for item, row in self._items.items()
                for rater, category in zip(self.raters, row)]

    def annotation_task(self):
        "the study as an nltk AnnotationTask"
        return AnnotationTask(data=self.triples())


def coding_agreement(study, metric='multi_pi'):
    """
    Agreement coefficient for a coding study.

    `multi_pi` is Fleiss's multi-rater generalisation of Scott's pi,
    `cohen_kappa` is Cohen's kappa (two raters only), `multi_kappa` is
    Davies and Fleiss's multi-rater kappa, `alpha` is Krippendorff's
    alpha with the nominal distance.

    NaN if there is nothing to agree on (no items, or fewer than two
    raters); 1.0 if everybody used one and the same category throughout.
    """
    if metric not in CODING_METRICS:
        raise ValueError("Unknown coding metric: %s (expected one of %s)" %
                         (metric, ', '.join(CODING_METRICS)))
    if metric == 'cohen_kappa' and len(study.raters) != 2:
        raise ValueError("Cohen's kappa is for exactly two raters "
                         "(got %d)" % len(study.raters))
    if study.item_count() == 0 or len(study.raters) < 2:
        return float('nan')
    if len(study.categories()) == 1:
        return 1.0
    task = study.annotation_task()
    return float(getattr(task, CODING_METRICS[metric])())


# ---------------------------------------------------------------------
# building studies
# ---------------------------------------------------------------------

def _units(parsed_tag, granularity):
    if granularity == 'tag':
        return [offsets_to_string(parsed_tag.spans)]
    else:
        return [str(x) for x in parsed_tag.spans]


def _combined_category(tag_type, attributes, values):
    if not attributes:
        return tag_type
    return ' '.join('%s=%s' % (att, values.get(att) or UNSET_VALUE)
                    for att in attributes)


def _collect(parse, tag_type, attributes, granularity):
    """
    Unit to list of (attribute name or None, category) in document
    order, for one annotator's tags of one type
    """
    collected = OrderedDict()
    for tag in parse.tags_of_type(tag_type):
        if not tag.spans:
            continue
        values = parse.attributes_of(tag.tid)
        combined = _combined_category(tag_type, attributes, values)
        for unit in _units(tag, granularity):
            cats = collected.setdefault(unit, [])
            cats.append((None, combined))
            for att in attributes:
                cats.append((att, values.get(att) or UNSET_VALUE))
    return collected


def _pick(categories, allow_multi):
    if allow_multi:
        return MULTI_VALUE_JOINER.join(sorted(set(categories)))
    else:
        return categories[0]


def complete_documents(index):
    """
    Documents which every annotator has annotated; the others are
    skipped (with a warning)
    """
    docs = []
    for doc in index.document_names():
        if index.is_complete(doc):
            docs.append(doc)
        else:
            warnings.warn("Skipping %s: not every annotator has a file "
                          "for it" % doc)
    return docs


def check_targets(schema, targets):
    """
    Target dictionary (tag type name to attribute names) with link tag
    types left out, raising ValueError on unknown tag types or
    attributes
    """
    checked = OrderedDict()
    for name, attributes in targets.items():
        tag_type = schema.tag_type(name)
        if tag_type is None:
            raise ValueError("Unknown tag type: %s" % name)
        for att in attributes:
            if tag_type.attribute_type(att) is None:
                raise ValueError("Unknown attribute: %s.%s" % (name, att))
        if tag_type.is_link:
            warnings.warn("Skipping %s: agreement is only measured on "
                          "extent tags" % name)
            continue
        checked[name] = list(attributes)
    return checked


def prepare_coding_studies(index, cache, targets, allow_multi=False,
                           granularity='tag'):
    """
    One coding study per targeted attribute, and one per targeted tag
    type

    :param targets: tag type name to (possibly empty) list of attribute
        names
    :param allow_multi: if several tags of one annotator fall on the
        same unit, their categories together count as one category;
        otherwise the first in document order is kept
    :param granularity: 'tag' or 'char'

    :rtype: OrderedDict of label to `CodingStudy`
    """
    if granularity not in GRANULARITIES:
        raise ValueError("Unknown granularity: %s" % granularity)
    targets = check_targets(cache.schema, targets)
    studies = OrderedDict()
    for name, attributes in targets.items():
        studies[name] = CodingStudy(name, index.annotators)
        for att in attributes:
            label = '%s.%s' % (name, att)
            studies[label] = CodingStudy(label, index.annotators)
    for doc in complete_documents(index):
        for rater, parse in enumerate(cache.get_parses(doc)):
            for name, attributes in targets.items():
                collected = _collect(parse, name, attributes, granularity)
                for unit, cats in collected.items():
                    item = '%s:%s' % (doc, unit)
                    studies[name].add(
                        item, rater,
                        _pick([c for a, c in cats if a is None],
                              allow_multi))
                    for att in attributes:
                        label = '%s.%s' % (name, att)
                        studies[label].add(
                            item, rater,
                            _pick([c for a, c in cats if a == att],
                                  allow_multi))
    return studies


def local_coding_agreement(index, cache, targets, allow_multi=False,
                           metric='multi_pi', granularity='tag'):
    """
    Label (`TAG` or `TAG.attribute`) to agreement score
    """
    studies = prepare_coding_studies(index, cache, targets,
                                     allow_multi=allow_multi,
                                     granularity=granularity)
    return OrderedDict((label, coding_agreement(study, metric))
                       for label, study in studies.items())
