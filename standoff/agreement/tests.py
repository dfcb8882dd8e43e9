# -*- coding: utf-8 -*-
#
# Author: Eric Kow
# License: BSD3
# pylint: disable=invalid-name, protected-access

"""
Tests for standoff.agreement
"""

from collections import OrderedDict
import math
import os
import shutil
import tempfile
import tracemalloc
import unittest

import pytest

from standoff.agreement.cache import ParseCache
from standoff.agreement.coding import (NONE_CATEGORY, CodingStudy,
                                       coding_agreement, check_targets,
                                       local_coding_agreement,
                                       prepare_coding_studies)
from standoff.agreement.report import compute_agreement, format_report
from standoff.agreement.unitizing import (CROSS_TAG_LABEL, UnitizingStudy,
                                          global_alpha_u, local_alpha_u,
                                          prepare_unitizing_study)
from standoff.corpus import AnnotationIndex, FileId, annotation_filename
from standoff.dtd import read_dtd
from standoff.store import AnnotationStore

TASK_DTD = """
<!ENTITY name "Loves">
<!ELEMENT PERSON ( #PCDATA ) >
<!ATTLIST PERSON id ID prefix="P" #REQUIRED >
<!ATTLIST PERSON role ( subject | object ) #REQUIRED "subject" >
<!ATTLIST PERSON comment CDATA #IMPLIED >
<!ELEMENT EVENT ( #PCDATA ) >
<!ATTLIST EVENT id ID prefix="E" #REQUIRED >
<!ATTLIST EVENT spans #IMPLIED >
<!ELEMENT LOVES EMPTY >
<!ATTLIST LOVES id ID prefix="L" #REQUIRED >
<!ATTLIST LOVES arg0 IDREF prefix="from" #REQUIRED >
<!ATTLIST LOVES arg1 IDREF prefix="to" #REQUIRED >
"""

SCHEMA = read_dtd(TASK_DTD)

STORY1 = 'John loves Mary and Sue.'
STORY2 = 'Sue sings.'


def isnan(score):
    return isinstance(score, float) and math.isnan(score)


class CorpusFixture(unittest.TestCase):
    """
    Scratch directory of annotation files, written through the store
    """
    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def write_doc(self, doc, annotator, text, people):
        """
        Annotation file with a PERSON tag for each (spans, role) pair
        """
        store = AnnotationStore(schema=SCHEMA, primary_text=text)
        for spans, role in people:
            tag = store.create_extent_tag('PERSON', None, spans)
            store.update_attribute(tag, 'role', role)
        store.write_annotation(os.path.join(
            self.tmpdir, annotation_filename(FileId(doc, annotator))))
        store.close()

    def index(self):
        return AnnotationIndex.from_directory(self.tmpdir)

    def cache(self):
        return ParseCache(self.index(), SCHEMA)


# ---------------------------------------------------------------------
# coding
# ---------------------------------------------------------------------


class CodingStudyTest(unittest.TestCase):
    "coefficients on hand-built studies"

    def mk_study(self, rows, raters=('alice', 'bob')):
        study = CodingStudy('test', raters)
        for item, categories in rows:
            for rater, category in enumerate(categories):
                study.add(item, rater, category)
        return study

    def test_partial_agreement(self):
        study = self.mk_study([('i1', ['subject', 'subject']),
                               ('i2', ['object', 'object']),
                               ('i3', ['subject', 'object'])])
        self.assertAlmostEqual(1 / 3.0, coding_agreement(study, 'multi_pi'))
        self.assertAlmostEqual(0.4, coding_agreement(study, 'cohen_kappa'))

    def test_single_category(self):
        study = self.mk_study([('i1', ['x', 'x']), ('i2', ['x', 'x'])])
        for metric in ['multi_pi', 'cohen_kappa', 'multi_kappa', 'alpha']:
            self.assertEqual(1.0, coding_agreement(study, metric))

    def test_missing_items(self):
        "raters that never mention an item give it the none category"
        study = CodingStudy('test', ['alice', 'bob'])
        study.add('i1', 0, 'subject')
        self.assertEqual(set(['subject', NONE_CATEGORY]),
                         study.categories())
        self.assertEqual([('alice', 'i1', 'subject'),
                          ('bob', 'i1', NONE_CATEGORY)],
                         study.triples())

    def test_undefined(self):
        self.assertTrue(isnan(coding_agreement(CodingStudy('t', ['a', 'b']))))
        self.assertTrue(isnan(coding_agreement(
            self.mk_study([('i1', ['x'])], raters=['alice']))))

    def test_bad_metric(self):
        study = self.mk_study([('i1', ['x', 'y'])],
                              raters=['alice', 'bob'])
        self.assertRaises(ValueError, coding_agreement, study, 'kappa_pi')
        three = self.mk_study([('i1', ['x', 'y', 'x'])],
                              raters=['alice', 'bob', 'carol'])
        self.assertRaises(ValueError, coding_agreement, three, 'cohen_kappa')
        # but the multi-rater ones are fine
        self.assertFalse(isnan(coding_agreement(three, 'multi_pi')))


class CodingCorpusTest(CorpusFixture):
    "coding studies built from annotation files"

    def test_identical(self):
        for annotator in ['alice', 'bob']:
            self.write_doc('story1', annotator, STORY1,
                           [('0-4', 'subject')])
        scores = local_coding_agreement(self.index(), self.cache(),
                                        {'PERSON': ['role']})
        self.assertEqual(['PERSON', 'PERSON.role'], list(scores))
        self.assertEqual(1.0, scores['PERSON.role'])
        self.assertEqual(1.0, scores['PERSON'])

    def test_disagreement(self):
        self.write_doc('story1', 'alice', STORY1,
                       [('0-4', 'subject'), ('11-15', 'object'),
                        ('20-23', 'subject')])
        self.write_doc('story1', 'bob', STORY1,
                       [('0-4', 'subject'), ('11-15', 'object'),
                        ('20-23', 'object')])
        index = self.index()
        cache = ParseCache(index, SCHEMA)
        scores = local_coding_agreement(index, cache, {'PERSON': ['role']})
        self.assertAlmostEqual(1 / 3.0, scores['PERSON.role'])
        self.assertAlmostEqual(1 / 3.0, scores['PERSON'])
        kappas = local_coding_agreement(index, cache, {'PERSON': ['role']},
                                        metric='cohen_kappa')
        self.assertAlmostEqual(0.4, kappas['PERSON.role'])

    def test_items(self):
        self.write_doc('story1', 'alice', STORY1,
                       [('0-4', 'subject'), ('11-15', 'object')])
        self.write_doc('story1', 'bob', STORY1, [('0-4', 'object')])
        studies = prepare_coding_studies(self.index(), self.cache(),
                                         {'PERSON': ['role']})
        role = studies['PERSON.role']
        self.assertEqual([('alice', 'story1:0-4', 'subject'),
                          ('bob', 'story1:0-4', 'object'),
                          ('alice', 'story1:11-15', 'object'),
                          ('bob', 'story1:11-15', NONE_CATEGORY)],
                         role.triples())
        self.assertEqual('role=object',
                         studies['PERSON'].triples()[1][2])

    def test_char_granularity(self):
        self.write_doc('story1', 'alice', STORY1, [('0-4', 'subject')])
        self.write_doc('story1', 'bob', STORY1, [('2-6', 'subject')])
        studies = prepare_coding_studies(self.index(), self.cache(),
                                         {'PERSON': []}, granularity='char')
        self.assertEqual(6, studies['PERSON'].item_count())
        self.assertRaises(ValueError, prepare_coding_studies,
                          self.index(), self.cache(), {'PERSON': []},
                          granularity='word')

    def test_multi(self):
        "several tags on one unit"
        self.write_doc('story1', 'alice', STORY1,
                       [('0-4', 'subject'), ('0-4', 'object')])
        self.write_doc('story1', 'bob', STORY1, [('0-4', 'object')])
        first = prepare_coding_studies(self.index(), self.cache(),
                                       {'PERSON': ['role']})
        self.assertEqual('subject',
                         first['PERSON.role'].triples()[0][2])
        multi = prepare_coding_studies(self.index(), self.cache(),
                                       {'PERSON': ['role']},
                                       allow_multi=True)
        self.assertEqual('object|subject',
                         multi['PERSON.role'].triples()[0][2])

    def test_incomplete_documents(self):
        for annotator in ['alice', 'bob']:
            self.write_doc('story1', annotator, STORY1,
                           [('0-4', 'subject')])
        self.write_doc('story2', 'alice', STORY2, [('0-3', 'subject')])
        with pytest.warns(UserWarning):
            studies = prepare_coding_studies(self.index(), self.cache(),
                                             {'PERSON': []})
        self.assertEqual(1, studies['PERSON'].item_count())

    def test_targets(self):
        self.assertRaises(ValueError, check_targets, SCHEMA,
                          {'ALIEN': []})
        self.assertRaises(ValueError, check_targets, SCHEMA,
                          {'PERSON': ['colour']})
        with pytest.warns(UserWarning):
            checked = check_targets(SCHEMA, {'LOVES': [], 'PERSON': []})
        self.assertEqual(['PERSON'], list(checked))


# ---------------------------------------------------------------------
# unitizing
# ---------------------------------------------------------------------


def covered_gaps(units, length):
    "stretches of the continuum not covered, position by position"
    covered = [False] * length
    for start, end in units:
        for pos in range(start, end):
            covered[pos] = True
    gaps = []
    start = None
    for pos in range(length + 1):
        free = pos < length and not covered[pos]
        if free and start is None:
            start = pos
        elif not free and start is not None:
            gaps.append((start, pos))
            start = None
    return gaps


def pairwise_disagreements(study, category):
    """
    Observed and expected disagreement for one category, comparing
    every unit with every other unit and gap
    """
    m = len(study.raters)
    length = float(study.continuum_length)
    units = [study.units(category, i) for i in range(m)]
    gaps = [covered_gaps(u, study.continuum_length) for u in units]
    observed = 0.0
    for i in range(m):
        for j in range(i + 1, m):
            for b_g, e_g in units[i]:
                for b_h, e_h in units[j]:
                    if b_g < e_h and b_h < e_g:
                        observed += (b_g - b_h) ** 2 + (e_g - e_h) ** 2
            for mine, theirs in [(i, j), (j, i)]:
                for start, end in units[mine]:
                    if any(g_start <= start and end <= g_end
                           for g_start, g_end in gaps[theirs]):
                        observed += (end - start) ** 2
    d_o = 2 * observed / (m * (m - 1) * length ** 2)

    all_units = [u for rater in units for u in rater]
    all_gaps = [g for rater in gaps for g in rater]
    n_c = len(all_units)
    total = 0.0
    for start, end in all_units:
        l = end - start
        total += (n_c - 1) / 3.0 * (2 * l ** 3 - 3 * l ** 2 + l)
        for g_start, g_end in all_gaps:
            g = g_end - g_start
            if g >= l:
                total += l ** 2 * (g - l + 1)
    denominator = m * length * (m * length - 1) -\
        sum((e - s) * (e - s - 1) for s, e in all_units)
    return d_o, 2 / length * total / denominator


class UnitizingStudyTest(unittest.TestCase):
    "alpha-U on hand-built studies"

    def mk_study(self, alice, bob, length=20):
        study = UnitizingStudy(['alice', 'bob'], length)
        study.add_category('PERSON')
        for rater, units in enumerate([alice, bob]):
            for start, end in units:
                study.add_unit(rater, 'PERSON', start, end)
        return study

    def test_identical(self):
        study = self.mk_study([(0, 4)], [(0, 4)])
        self.assertEqual(1.0, study.category_alpha_u('PERSON'))
        self.assertEqual(1.0, study.alpha_u())

    def test_partial_overlap(self):
        study = self.mk_study([(0, 4)], [(1, 5)])
        d_o, d_e, overlapping = study.disagreements('PERSON')
        self.assertAlmostEqual(0.005, d_o)
        self.assertAlmostEqual(0.1 * 856 / 1536, d_e)
        self.assertTrue(overlapping)
        score = study.category_alpha_u('PERSON')
        self.assertTrue(0 < score < 1)
        self.assertAlmostEqual(0.91028, score, places=4)

    def test_disjoint(self):
        "no overlap between raters means no score"
        study = self.mk_study([(0, 4)], [(10, 14)])
        d_o, d_e, overlapping = study.disagreements('PERSON')
        self.assertAlmostEqual(0.08, d_o)
        self.assertAlmostEqual(0.1 * 792 / 1536, d_e)
        self.assertFalse(overlapping)
        self.assertTrue(isnan(study.category_alpha_u('PERSON')))
        self.assertTrue(isnan(study.alpha_u()))

    def test_no_units(self):
        study = self.mk_study([], [])
        self.assertEqual(['PERSON'], study.categories())
        self.assertTrue(isnan(study.category_alpha_u('PERSON')))

    def test_pooling(self):
        "categories without a score stay out of the global one"
        study = self.mk_study([(0, 4)], [(0, 4)])
        study.add_unit(0, 'EVENT', 10, 12)
        self.assertTrue(isnan(study.category_alpha_u('EVENT')))
        self.assertEqual(1.0, study.alpha_u())

    def test_single_rater(self):
        study = UnitizingStudy(['alice'], 20)
        study.add_unit(0, 'PERSON', 0, 4)
        self.assertTrue(isnan(study.category_alpha_u('PERSON')))
        self.assertTrue(isnan(study.alpha_u()))

    def test_merge_overlapping(self):
        study = self.mk_study([(0, 4), (2, 6)], [(0, 6)])
        self.assertEqual([(0, 6)], study.units('PERSON', 0))
        self.assertEqual(1.0, study.category_alpha_u('PERSON'))
        study.allow_overlap = True
        self.assertEqual([(0, 4), (2, 6)], study.units('PERSON', 0))

    def test_matches_pairwise_sums(self):
        "sweeping over sorted units gives the same sums as every pair"
        units = [[(0, 4), (2, 9), (12, 15), (30, 38)],
                 [(1, 5), (6, 8), (13, 20), (31, 33), (34, 37)],
                 [(0, 3), (14, 15), (25, 28), (32, 40)]]
        for allow_overlap in [False, True]:
            study = UnitizingStudy(['alice', 'bob', 'carol'], 40,
                                   allow_overlap=allow_overlap)
            for rater, segments in enumerate(units):
                for start, end in segments:
                    study.add_unit(rater, 'PERSON', start, end)
            d_o, d_e, overlapping = study.disagreements('PERSON')
            expected_o, expected_e = pairwise_disagreements(study, 'PERSON')
            self.assertAlmostEqual(expected_o, d_o)
            self.assertAlmostEqual(expected_e, d_e)
            self.assertTrue(overlapping)

    def test_many_units(self):
        "memory use grows with the number of units, not its square"
        n = 3000
        study = self.mk_study([(10 * k, 10 * k + 4) for k in range(n)],
                              [(10 * k + 1, 10 * k + 5) for k in range(n)],
                              length=10 * n)
        tracemalloc.start()
        try:
            score = study.category_alpha_u('PERSON')
            _, peak = tracemalloc.get_traced_memory()
        finally:
            tracemalloc.stop()
        self.assertLess(peak, 10 * 1024 * 1024)
        self.assertTrue(0 < score < 1)

    def test_out_of_range(self):
        study = UnitizingStudy(['alice', 'bob'], 20)
        self.assertRaises(ValueError, study.add_unit, 0, 'PERSON', 18, 21)
        self.assertRaises(ValueError, study.add_unit, 0, 'PERSON', 4, 4)


class UnitizingCorpusTest(CorpusFixture):
    "alpha-U over annotation files"

    def test_identical(self):
        for annotator in ['alice', 'bob']:
            self.write_doc('story1', annotator, STORY1,
                           [('0-4', 'subject'), ('11-15', 'object')])
        index = self.index()
        cache = ParseCache(index, SCHEMA)
        self.assertEqual({CROSS_TAG_LABEL: 1.0},
                         dict(global_alpha_u(index, cache)))
        local = local_alpha_u(index, cache)
        self.assertEqual(['PERSON', 'EVENT'], list(local))
        self.assertEqual(1.0, local['PERSON'])
        self.assertTrue(isnan(local['EVENT']))

    def test_documents_laid_end_to_end(self):
        for annotator in ['alice', 'bob']:
            self.write_doc('story1', annotator, STORY1,
                           [('0-4', 'subject')])
            self.write_doc('story2', annotator, STORY2,
                           [('0-3', 'subject')])
        study = prepare_unitizing_study(self.index(), self.cache(),
                                        targets=['PERSON'])
        self.assertEqual(len(STORY1) + len(STORY2), study.continuum_length)
        shifted = len(STORY1)
        self.assertEqual([(0, 4), (shifted, shifted + 3)],
                         study.units('PERSON', 1))


# ---------------------------------------------------------------------
# cache and report
# ---------------------------------------------------------------------


class CacheTest(CorpusFixture):
    "tests for standoff.agreement.cache"

    def test_parsed_once(self):
        for annotator in ['alice', 'bob']:
            self.write_doc('story1', annotator, STORY1,
                           [('0-4', 'subject')])
        cache = self.cache()
        parses = cache.get_parses('story1')
        self.assertEqual(2, len(parses))
        self.assertTrue(parses is cache.get_parses('story1'))
        self.assertEqual(len(STORY1), cache.document_length('story1'))

    def test_length_mismatch(self):
        self.write_doc('story1', 'alice', STORY1, [])
        self.write_doc('story1', 'bob', STORY1 + ' The end.', [])
        with pytest.warns(UserWarning):
            length = self.cache().document_length('story1')
        self.assertEqual(len(STORY1) + 9, length)


class ReportTest(CorpusFixture):
    "tests for standoff.agreement.report"

    def test_compute_defaults(self):
        for annotator in ['alice', 'bob']:
            self.write_doc('story1', annotator, STORY1,
                           [('0-4', 'subject')])
        results = compute_agreement(self.index(), SCHEMA)
        self.assertEqual(['multi_pi', 'alpha_u'], list(results))
        self.assertEqual(['PERSON', 'PERSON.role', 'PERSON.comment',
                          'EVENT'], list(results['multi_pi']))
        self.assertEqual(1.0, results['multi_pi']['PERSON.role'])
        self.assertTrue(isnan(results['multi_pi']['EVENT']))
        self.assertEqual([CROSS_TAG_LABEL, 'PERSON', 'EVENT'],
                         list(results['alpha_u']))
        report = format_report(results)
        self.assertIn('n/a', report)
        self.assertIn('1.0000', report)

    def test_unknown_metric(self):
        self.assertRaises(ValueError, compute_agreement, self.index(),
                          SCHEMA, metrics=['accuracy'])


def test_format_report():
    results = OrderedDict([
        ('multi_pi', OrderedDict([('PERSON', 0.5),
                                  ('EVENT', float('nan'))])),
        ('alpha_u', OrderedDict([(CROSS_TAG_LABEL, 0.25)]))])
    lines = format_report(results).splitlines()
    assert lines[0].split() == ['label', 'multi_pi', 'alpha_u']
    assert lines[2].split() == ['PERSON', '0.5000']
    assert lines[3].split() == ['EVENT', 'n/a']
    assert lines[4].split() == [CROSS_TAG_LABEL, '0.2500']
