# Author: Eric Kow
# License: BSD3

"""
Unitizing agreement: how well annotators agree on where the units of
each category are, allowing for partial overlap.

This is Krippendorff's alpha-U, see Krippendorff (2004) "Measuring the
reliability of qualitative text analysis data", Quality and Quantity
38. Each annotator divides the continuum, for each category, into units
(their tags) and gaps (everything else). The disagreement between two
segments of different annotators is

* for two overlapping units: the squared differences of their start
  and of their end points
* for a unit lying within a gap: its squared length
* zero otherwise

and alpha-U is one minus the ratio of the observed disagreement to the
one expected by chance.

All documents are laid end to end on one continuum, so that a single
study covers the whole corpus.
"""

from collections import OrderedDict
import warnings

import numpy as np

from ..spans import offsets_to_pairs
from .coding import check_targets, complete_documents

CROSS_TAG_LABEL = 'cross-tag_alpha_u'

# pylint: disable=invalid-name


def _as_array(segments):
    return np.array(sorted(segments), dtype=float).reshape(-1, 2)


def _merge(segments):
    merged = []
    for start, end in sorted(segments):
        if merged and start < merged[-1][1]:
            merged[-1] = (merged[-1][0], max(end, merged[-1][1]))
        else:
            merged.append((start, end))
    return merged


def _gaps(units, length):
    """
    Stretches of the continuum not covered by any unit
    """
    gaps = []
    position = 0
    for start, end in _merge(units):
        if start > position:
            gaps.append((position, start))
        position = max(position, end)
    if position < length:
        gaps.append((position, length))
    return gaps


def _lengths(segments):
    return segments[:, 1] - segments[:, 0]


def _unit_unit(units_a, units_b):
    """
    Summed disagreement between the units of two raters, and whether
    any of them overlap at all
    """
    if not len(units_a) or not len(units_b):
        return 0.0, False
    # units are sorted by start; a unit of b can only overlap the unit
    # of a if it starts before the latter ends, and if neither it nor
    # any earlier unit of b has ended by the time the latter starts
    starts_b = units_b[:, 0]
    reach_b = np.maximum.accumulate(units_b[:, 1])
    lows = np.searchsorted(reach_b, units_a[:, 0], side='right')
    highs = np.searchsorted(starts_b, units_a[:, 1], side='left')
    total = 0.0
    overlapping = False
    for (start, end), low, high in zip(units_a, lows, highs):
        if low >= high:
            continue
        candidates = units_b[low:high]
        candidates = candidates[candidates[:, 1] > start]
        if len(candidates):
            overlapping = True
            total += float(np.sum((start - candidates[:, 0]) ** 2 +
                                  (end - candidates[:, 1]) ** 2))
    return total, overlapping


def _unit_in_gap(units, gaps):
    """
    Summed disagreement of one rater's units lying within the gaps of
    another
    """
    if not len(units) or not len(gaps):
        return 0.0
    # gaps are sorted and disjoint, so the only gap that can hold a
    # unit is the last one starting at or before it
    found = np.searchsorted(gaps[:, 0], units[:, 0], side='right') - 1
    candidate = found >= 0
    inside = np.zeros(len(units), dtype=bool)
    inside[candidate] = units[candidate, 1] <= gaps[found[candidate], 1]
    return float(np.sum(_lengths(units)[inside] ** 2))


def _room(unit_lengths, gap_lengths):
    """
    For each unit length l, the number of places it could be put within
    the gaps, ie. the sum of `g - l + 1` over the gaps with length
    `g >= l`
    """
    gap_lengths = np.sort(gap_lengths)
    totals = np.concatenate([[0.0], np.cumsum(gap_lengths)])
    first = np.searchsorted(gap_lengths, unit_lengths, side='left')
    count = len(gap_lengths) - first
    return (totals[-1] - totals[first]) - count * (unit_lengths - 1)


class UnitizingStudy(object):
    """
    Units of each category for each rater, on a continuum of the given
    length

    :param allow_overlap: keep overlapping units of one rater and one
        category apart; otherwise they are merged into one
    """
    def __init__(self, raters, continuum_length, allow_overlap=False):
        self.raters = list(raters)
        self.continuum_length = continuum_length
        self.allow_overlap = allow_overlap
        self._units = OrderedDict()

    def add_category(self, category):
        "make sure the category is reported even if nobody uses it"
        if category not in self._units:
            self._units[category] = [[] for _ in self.raters]

    def add_unit(self, rater_index, category, start, end):
        """
        Add a unit covering `[start, end)`
        """
        if not 0 <= start < end <= self.continuum_length:
            raise ValueError("Unit (%d, %d) is not within the continuum "
                             "(length %d)" %
                             (start, end, self.continuum_length))
        self.add_category(category)
        self._units[category][rater_index].append((start, end))

    def categories(self):
        return list(self._units)

    def units(self, category, rater_index):
        "sorted units of one rater and one category"
        segments = self._units.get(category)
        if segments is None:
            return []
        if self.allow_overlap:
            return sorted(segments[rater_index])
        return _merge(segments[rater_index])

    def unit_count(self, category):
        return sum(len(self.units(category, i))
                   for i in range(len(self.raters)))

    def disagreements(self, category):
        """
        Observed and expected disagreement for one category, and
        whether units of different raters overlap anywhere

        :rtype: (float, float, bool)
        """
        m = len(self.raters)
        if m < 2 or self.continuum_length <= 0:
            return 0.0, 0.0, False
        length = float(self.continuum_length)
        units = [_as_array(self.units(category, i)) for i in range(m)]
        gaps = [_as_array(_gaps(self.units(category, i),
                                self.continuum_length))
                for i in range(m)]

        observed = 0.0
        overlapping = False
        for i in range(m):
            for j in range(i + 1, m):
                both, overlap = _unit_unit(units[i], units[j])
                overlapping = overlapping or overlap
                observed += both
                observed += _unit_in_gap(units[i], gaps[j])
                observed += _unit_in_gap(units[j], gaps[i])
        # every unordered pair of raters counts twice
        d_o = 2 * observed / (m * (m - 1) * length ** 2)

        unit_lengths = np.concatenate([_lengths(u) for u in units])
        gap_lengths = np.concatenate([_lengths(g) for g in gaps])
        n_c = len(unit_lengths)
        within = (n_c - 1) / 3.0 * (2 * unit_lengths ** 3 -
                                    3 * unit_lengths ** 2 +
                                    unit_lengths)
        across = unit_lengths ** 2 * _room(unit_lengths, gap_lengths)
        denominator = m * length * (m * length - 1) -\
            np.sum(unit_lengths * (unit_lengths - 1))
        if n_c == 0 or denominator <= 0:
            d_e = 0.0
        else:
            d_e = float(2 / length * np.sum(within + across) / denominator)
        return d_o, d_e, overlapping

    def category_alpha_u(self, category):
        """
        alpha-U for one category. NaN if there are no units, or if no
        unit of one rater overlaps with a unit of another.
        """
        if len(self.raters) < 2 or self.continuum_length <= 0:
            return float('nan')
        d_o, d_e, overlapping = self.disagreements(category)
        if d_e == 0 or not overlapping:
            return float('nan')
        return 1 - d_o / d_e

    def alpha_u(self):
        """
        alpha-U across all categories, pooling the disagreements of the
        categories which have a score of their own. NaN if none do.
        """
        if len(self.raters) < 2 or self.continuum_length <= 0:
            return float('nan')
        total_o = 0.0
        total_e = 0.0
        for category in self.categories():
            d_o, d_e, overlapping = self.disagreements(category)
            if d_e > 0 and overlapping:
                total_o += d_o
                total_e += d_e
        if total_e == 0:
            return float('nan')
        return 1 - total_o / total_e


# ---------------------------------------------------------------------
# building studies
# ---------------------------------------------------------------------

def prepare_unitizing_study(index, cache, targets=None, allow_multi=False):
    """
    A single study spanning every (complete) document, one after the
    other, with one category per targeted extent tag type

    :param targets: tag type names (attributes, if any, are ignored);
        all extent tag types if None
    :rtype: UnitizingStudy
    """
    schema = cache.schema
    if targets is None:
        targets = schema.extent_type_names()
    targets = list(check_targets(schema,
                                 OrderedDict((t, []) for t in targets)))
    docs = complete_documents(index)
    lengths = [cache.document_length(doc) for doc in docs]
    study = UnitizingStudy(index.annotators, sum(lengths),
                           allow_overlap=allow_multi)
    for tag_type in targets:
        study.add_category(tag_type)
    shift = 0
    for doc, doc_length in zip(docs, lengths):
        for rater, parse in enumerate(cache.get_parses(doc)):
            if len(parse.primary_text) != doc_length:
                warnings.warn("%s has a shorter primary text for %s" %
                              (doc, index.annotators[rater]))
            for tag_type in targets:
                for tag in parse.tags_of_type(tag_type):
                    for start, end in offsets_to_pairs(tag.spans):
                        study.add_unit(rater, tag_type,
                                       start + shift, end + shift)
        shift += doc_length
    return study


def global_alpha_u(index, cache, targets=None, allow_multi=False):
    """
    `{'cross-tag_alpha_u': score}`
    """
    study = prepare_unitizing_study(index, cache, targets=targets,
                                    allow_multi=allow_multi)
    return OrderedDict([(CROSS_TAG_LABEL, study.alpha_u())])


def local_alpha_u(index, cache, targets=None, allow_multi=False):
    """
    Tag type name to score
    """
    study = prepare_unitizing_study(index, cache, targets=targets,
                                    allow_multi=allow_multi)
    return OrderedDict((category, study.category_alpha_u(category))
                       for category in study.categories())
