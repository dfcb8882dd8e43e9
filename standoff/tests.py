# -*- coding: utf-8 -*-
#
# Author: Eric Kow
# License: BSD3
# pylint: disable=too-many-public-methods, invalid-name, protected-access

"""
Tests for standoff
"""

import io
import os
import re
import shutil
import tempfile
import unittest

import pytest

from standoff.annotation import ExtentTag, LinkTag, TaskSchema
from standoff.corpus import (AnnotationIndex, FileId, Reader,
                             annotation_filename, parse_filename)
from standoff.dtd import DtdException, read_dtd
from standoff.ids import IdAllocator, tid_sort_key
from standoff.spans import (SpanFormatError,
                            merge_pairs, offsets_to_pairs, offsets_to_string,
                            pairs_to_offsets, pairs_to_utf16, range_offsets,
                            string_to_offsets, string_to_pairs,
                            utf16_to_pairs)
from standoff.store import (AnnotationStore, DuplicateTagIdError,
                            InvalidSpanError, SchemaError, StoreError,
                            TagNotFoundError)
import standoff.tagxml as tagxml
from standoff.util import parse_targets

TASK_DTD = """
<!ENTITY name "NameOfTask">

<!-- people and what they feel about each other -->
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
<!ATTLIST LOVES fromText CDATA #IMPLIED >
<!ATTLIST LOVES strength ( weak | strong ) #IMPLIED >
"""

PRIMARY_TEXT = 'John loves Mary and Sue.'

ANNOTATION_XML = """<?xml version="1.0" encoding="UTF-8" ?>
<NameOfTask>
<TEXT><![CDATA[John loves Mary and Sue.]]></TEXT>
<TAGS>
<PERSON id="P0" spans="0-4" text="John" role="subject" />
<PERSON id="P1" spans="11-15,20-23" text="Mary ... Sue" role="object" />
<EVENT id="E0" spans="-1--1" text="" />
<LOVES id="L0" fromID="P0" fromText="John" toID="" toText="" strength="strong" />
</TAGS>
</NameOfTask>
"""

# the emoji takes up two UTF-16 code units
ASTRAL_XML = """<?xml version="1.0" encoding="UTF-8" ?>
<NameOfTask>
<TEXT><![CDATA[\U0001F600 John]]></TEXT>
<TAGS>
<PERSON id="P0" spans="3-7" text="John" role="subject" />
</TAGS>
</NameOfTask>
"""


def mk_schema():
    "schema for the test task"
    return read_dtd(TASK_DTD)


def mk_store(primary_text=PRIMARY_TEXT):
    "empty store for the test task"
    return AnnotationStore(schema=mk_schema(), primary_text=primary_text)


def tag_summary(tags):
    """
    Everything that should survive a round trip through a file, for a
    list of tags
    """
    summary = set()
    for tag in tags:
        if isinstance(tag, ExtentTag):
            anchor = tuple(tag.spans)
        else:
            anchor = tuple(sorted(tag.argument_targets().items()))
        summary.add((tag.tid, tag.tag_type.name, anchor,
                     tuple(sorted(tag.attributes.items()))))
    return summary


# ---------------------------------------------------------------------
# spans
# ---------------------------------------------------------------------


class SpanTest(unittest.TestCase):
    "tests for standoff.spans"

    def test_pairs_merge_runs(self):
        "adjacent offsets make one pair"
        self.assertEqual([(0, 4), (6, 9)],
                         offsets_to_pairs([8, 0, 1, 2, 3, 6, 7, 2]))
        self.assertEqual([], offsets_to_pairs([]))

    def test_pairs_to_offsets(self):
        self.assertEqual([0, 1, 5], pairs_to_offsets([(5, 6), (0, 2)]))
        self.assertEqual([], pairs_to_offsets([(-1, -1)]))

    def test_merge_overlapping_pairs(self):
        self.assertEqual([(0, 7)], merge_pairs([(3, 7), (0, 4)]))
        self.assertEqual([(0, 2), (3, 4)], merge_pairs([(3, 4), (0, 2)]))

    def test_render(self):
        "canonical span notation"
        self.assertEqual('0-4,6-9', offsets_to_string([0, 1, 2, 3, 6, 7, 8]))
        self.assertEqual('-1--1', offsets_to_string([]))

    def test_parse(self):
        self.assertEqual([(0, 4), (6, 9)], string_to_pairs('0-4,6-9'))
        self.assertEqual([(0, 4), (6, 9)], string_to_pairs(' 6~9 , 0~4 '))
        self.assertEqual([], string_to_pairs('-1--1'))
        self.assertEqual([], string_to_pairs(''))
        self.assertEqual([2, 3], string_to_offsets('2-4'))

    def test_parse_malformed(self):
        for bad in ['0-', 'a-b', '0-4;6-9', '4']:
            self.assertRaises(SpanFormatError, string_to_pairs, bad)

    def test_round_trip(self):
        "reading back what we write gives the merged pairs"
        for offsets in [[0], [0, 1, 2], [5, 3, 4, 10, 12], [7, 100]]:
            self.assertEqual(offsets_to_pairs(offsets),
                             string_to_pairs(offsets_to_string(offsets)))

    def test_bad_offsets(self):
        self.assertRaises(SpanFormatError, offsets_to_pairs, [-2])
        self.assertRaises(SpanFormatError, offsets_to_pairs, ['3'])
        self.assertRaises(SpanFormatError, pairs_to_offsets, [(5, 2)])

    def test_legacy_range(self):
        self.assertEqual([3, 4], range_offsets(3, 5))
        self.assertEqual([], range_offsets(-1, -1))

    def test_utf16_offsets(self):
        "characters outside of the BMP take two UTF-16 code units"
        text = '\U0001F600 John'
        self.assertEqual([(2, 6)], utf16_to_pairs(text, [(3, 7)]))
        self.assertEqual([(3, 7)], pairs_to_utf16(text, [(2, 6)]))
        # half of a surrogate pair stands for the whole character
        self.assertEqual([(0, 1)], utf16_to_pairs(text, [(1, 2)]))
        # past the end stays past the end
        self.assertEqual([(2, 8)], utf16_to_pairs(text, [(3, 9)]))
        self.assertEqual([(0, 4)], utf16_to_pairs('John', [(0, 4)]))
        self.assertEqual([(0, 4)], pairs_to_utf16('John', [(0, 4)]))


# ---------------------------------------------------------------------
# ids
# ---------------------------------------------------------------------


class IdTest(unittest.TestCase):
    "tests for standoff.ids"

    def setUp(self):
        self.person = mk_schema().tag_type('PERSON')

    def test_fresh_ids(self):
        "fresh ids are distinct and prefixed"
        ids = IdAllocator()
        fresh = [ids.next_id(self.person) for _ in range(50)]
        self.assertEqual(len(fresh), len(set(fresh)))
        for tid in fresh:
            self.assertTrue(re.match(r'^P\d+$', tid))
        self.assertEqual('P0', fresh[0])

    def test_skip_registered(self):
        ids = IdAllocator()
        self.assertTrue(ids.add_id(self.person, 'P0'))
        self.assertTrue(ids.add_id(self.person, 'P2'))
        self.assertEqual('P1', ids.next_id(self.person))
        self.assertEqual('P3', ids.next_id(self.person))

    def test_duplicate(self):
        ids = IdAllocator()
        ids.add_id(self.person, 'P7')
        self.assertFalse(ids.add_id(self.person, 'P7'))
        fresh = ids.next_id(self.person)
        self.assertFalse(ids.add_id(self.person, fresh))

    def test_reset(self):
        ids = IdAllocator()
        ids.next_id(self.person)
        ids.reset()
        self.assertFalse(ids.is_used(self.person, 'P0'))
        self.assertEqual('P0', ids.next_id(self.person))


def test_tid_sort_key():
    assert sorted(['P10', 'P2', 'L1', 'P1'], key=tid_sort_key) ==\
        ['L1', 'P1', 'P2', 'P10']


# ---------------------------------------------------------------------
# dtd
# ---------------------------------------------------------------------


class DtdTest(unittest.TestCase):
    "tests for standoff.dtd"

    def test_task(self):
        schema = mk_schema()
        self.assertEqual('NameOfTask', schema.name)
        self.assertEqual(['PERSON', 'EVENT'], schema.extent_type_names())
        self.assertEqual(['LOVES'], schema.link_type_names())

    def test_extent(self):
        person = mk_schema().tag_type('PERSON')
        self.assertEqual('P', person.prefix)
        self.assertFalse(person.non_consuming)
        self.assertEqual(['role', 'comment'], person.attribute_names())
        role = person.attribute_type('role')
        self.assertEqual(('subject', 'object'), role.valueset)
        self.assertEqual('subject', role.default_value)
        self.assertTrue(role.required)
        comment = person.attribute_type('comment')
        self.assertEqual(None, comment.valueset)
        self.assertFalse(comment.required)

    def test_non_consuming(self):
        self.assertTrue(mk_schema().tag_type('EVENT').non_consuming)

    def test_link(self):
        loves = mk_schema().tag_type('LOVES')
        self.assertTrue(loves.is_link)
        self.assertEqual(['from', 'to'], loves.argument_names())
        # fromText mirrors the argument, it is not an attribute
        self.assertEqual(['strength'], loves.attribute_names())

    def test_errors(self):
        self.assertRaises(DtdException, read_dtd,
                          '<!ELEMENT PERSON ( #PCDATA ) >')
        self.assertRaises(DtdException, read_dtd,
                          '<!ENTITY name "T">\n'
                          '<!ATTLIST NOPE id ID prefix="N" #REQUIRED >')


# ---------------------------------------------------------------------
# xml
# ---------------------------------------------------------------------


class TagXmlTest(unittest.TestCase):
    "tests for standoff.tagxml"

    def read(self, text):
        return tagxml.read_annotation_string(text, mk_schema())

    def test_read(self):
        result = self.read(ANNOTATION_XML)
        self.assertEqual('NameOfTask', result.task_name)
        self.assertEqual(PRIMARY_TEXT, result.primary_text)
        self.assertEqual(['P0', 'P1', 'E0', 'L0'],
                         [t.tid for t in result.tags])
        self.assertEqual('', result.warnings_report())

    def test_tag_text_from_primary_text(self):
        "tag text is recomputed, not read from the file"
        mangled = ANNOTATION_XML.replace('text="John"', 'text="Jon"')
        result = self.read(mangled)
        texts = dict((t.tid, t.text) for t in result.tags)
        self.assertEqual('John', texts['P0'])
        self.assertEqual('Mary ... Sue', texts['P1'])
        self.assertEqual('', texts['E0'])

    def test_spans(self):
        result = self.read(ANNOTATION_XML)
        spans = dict((t.tid, t.spans) for t in result.tags)
        self.assertEqual([11, 12, 13, 14, 20, 21, 22], spans['P1'])
        self.assertEqual([], spans['E0'])
        self.assertEqual([], spans['L0'])

    def test_legacy_start_end(self):
        legacy = ANNOTATION_XML.replace('spans="0-4"', 'start="0" end="4"')
        result = self.read(legacy)
        self.assertEqual([0, 1, 2, 3], result.tags_of_type('PERSON')[0].spans)

    def test_link(self):
        result = self.read(ANNOTATION_XML)
        self.assertEqual({'from': 'P0'}, result.arguments_of('L0'))
        self.assertEqual({'strength': 'strong'}, result.attributes_of('L0'))

    def test_warnings(self):
        "content problems are reported, not raised"
        noisy = ANNOTATION_XML\
            .replace('role="object"', 'role="friend"')\
            .replace('role="subject"', 'role="subject" colour="red"')\
            .replace('<TAGS>', '<TAGS>\n<FOO id="F0" spans="0-1" />')
        result = self.read(noisy)
        self.assertEqual(3, len(result.warnings))
        report = result.warnings_report()
        self.assertIn('"friend" is not a valid value for "role"', report)
        self.assertIn('unexpected attribute type found: "colour"', report)
        self.assertIn('unexpected tag type found: "FOO"', report)
        # default value instead of the invalid one
        self.assertEqual('subject', result.attributes_of('P1')['role'])
        self.assertNotIn('colour', result.attributes_of('P0'))
        self.assertEqual([], result.tags_of_type('FOO'))

    def test_fatal(self):
        "structural problems abort the parse"
        bad_root = ANNOTATION_XML.replace('<NameOfTask>',
                                          '<NameOfTask version="2">')
        self.assertRaises(tagxml.TagXmlException, self.read, bad_root)
        no_text = re.sub(r'<TEXT>.*</TEXT>\n', '', ANNOTATION_XML)
        self.assertRaises(tagxml.TagXmlException, self.read, no_text)
        self.assertRaises(tagxml.TagXmlException, self.read,
                          ANNOTATION_XML[:-30])
        self.assertRaises(tagxml.TagXmlException, tagxml.read_annotation,
                          _bytes_stream(b'<T><TEXT>\xff\xfe</TEXT></T>'),
                          mk_schema())

    def test_spanless_extent_kept(self):
        "a consuming tag without a span is kept, with a warning"
        spanless = ANNOTATION_XML.replace('spans="0-4" ', '')
        result = self.read(spanless)
        self.assertIn('tag without span found: "P0" of PERSON',
                      result.warnings_report())
        person = result.tags_of_type('PERSON')[0]
        self.assertEqual(('P0', [], ''),
                         (person.tid, person.spans, person.text))
        self.assertEqual('subject', result.attributes_of('P0')['role'])
        store = mk_store()
        store.load_parsed(result)
        self.assertEqual([], store.get_tag('P0').spans)
        self.assertIn('<PERSON id="P0" spans="-1--1" text=""',
                      store.to_xml_string())
        store.close()

    def test_reserved_attributes_any_case(self):
        shouting = ANNOTATION_XML.replace(
            'id="P0" spans="0-4" text="John"',
            'ID="P0" SPANS="0-4" Text="John"')
        result = self.read(shouting)
        self.assertEqual('', result.warnings_report())
        person = result.tags_of_type('PERSON')[0]
        self.assertEqual(('P0', [0, 1, 2, 3]), (person.tid, person.spans))
        self.assertEqual({'role': 'subject'}, result.attributes_of('P0'))
        legacy = ANNOTATION_XML.replace('spans="0-4"', 'START="0" End="4"')
        self.assertEqual([0, 1, 2, 3],
                         self.read(legacy).tags_of_type('PERSON')[0].spans)

    def test_utf16_offsets_in_files(self):
        "offsets in files count UTF-16 code units, in memory code points"
        result = self.read(ASTRAL_XML)
        person = result.tags_of_type('PERSON')[0]
        self.assertEqual([2, 3, 4, 5], person.spans)
        self.assertEqual('John', person.text)
        store = mk_store(primary_text=result.primary_text)
        store.load_parsed(result)
        self.assertEqual('John', store.get_tag('P0').text)
        self.assertIn('<PERSON id="P0" spans="3-7" text="John"',
                      store.to_xml_string())
        store.close()

    def test_lookup_by_tid(self):
        result = self.read(ANNOTATION_XML)
        self.assertEqual({'role': 'object'}, result.attributes_of('P1'))
        self.assertEqual({}, result.attributes_of('E0'))
        self.assertEqual({}, result.arguments_of('P0'))
        # the index is built once and reused
        index = result._att_index
        result.attributes_of('P0')
        self.assertIs(index, result._att_index)
        # but records added since are picked up
        result.atts.append(tagxml.ParsedAtt('E0', 'EVENT', 'note', 'x'))
        self.assertEqual({'note': 'x'}, result.attributes_of('E0'))
        # callers get their own copy
        result.attributes_of('P1')['role'] = 'subject'
        self.assertEqual('object', result.attributes_of('P1')['role'])

    def test_preamble(self):
        task, text = tagxml.read_preamble(
            _bytes_stream(ANNOTATION_XML.encode('utf-8')))
        self.assertEqual('NameOfTask', task)
        self.assertEqual(PRIMARY_TEXT, text)

    def test_link_to_xml(self):
        "arguments first, then attributes; unfilled slots left out"
        store = mk_store()
        store.load_parsed(self.read(ANNOTATION_XML))
        elem = tagxml.tag_to_xml(store.get_tag('L0'))
        self.assertEqual(['id', 'fromID', 'fromText', 'strength'],
                         list(elem.attrib))
        self.assertEqual('John', elem.get('fromText'))
        store.close()

    def test_cdata_escape(self):
        schema = mk_schema()
        text = 'odd ]]> text'
        written = tagxml.annotation_to_string(schema, text, [])
        self.assertEqual(text, tagxml.read_annotation_string(
            written, schema).primary_text)


def _bytes_stream(data):
    return io.BytesIO(data)


# ---------------------------------------------------------------------
# store
# ---------------------------------------------------------------------


class StoreTest(unittest.TestCase):
    "tests for standoff.store"

    def setUp(self):
        self.store = mk_store()

    def tearDown(self):
        self.store.close()

    def mk_people(self):
        john = self.store.create_extent_tag('PERSON', None, [0, 1, 2, 3])
        mary = self.store.create_extent_tag('PERSON', None, '11-15')
        return john, mary

    def count_rows(self, table, **where):
        query = 'SELECT COUNT(*) FROM %s' % table
        if where:
            query += ' WHERE ' + ' AND '.join('%s = ?' % k for k in where)
        return self.store._sql(query, list(where.values())).fetchone()[0]

    def test_create_extent(self):
        john, mary = self.mk_people()
        self.assertEqual('P0', john.tid)
        self.assertEqual('P1', mary.tid)
        self.assertEqual('John', john.text)
        self.assertEqual([11, 12, 13, 14], mary.spans)
        # schema defaults are filled in
        self.assertEqual('subject', john.attributes['role'])

    def test_create_extent_bad_spans(self):
        self.assertRaises(InvalidSpanError, self.store.create_extent_tag,
                          'PERSON', None, [-1, 0])
        self.assertRaises(InvalidSpanError, self.store.create_extent_tag,
                          'PERSON', None, [])
        self.assertRaises(InvalidSpanError, self.store.create_extent_tag,
                          'PERSON', None, [len(PRIMARY_TEXT)])
        self.assertRaises(InvalidSpanError, self.store.create_extent_tag,
                          'PERSON', None, '0-')
        self.assertEqual(0, self.count_rows('tag'))

    def test_non_consuming(self):
        event = self.store.create_extent_tag('EVENT', '', [])
        self.assertEqual([], event.spans)
        self.store.create_extent_tag('EVENT', None, [5, 6])
        self.assertEqual([event], self.store.get_all_nc_tags_of_type('EVENT'))
        self.assertRaises(SchemaError, self.store.get_all_nc_tags_of_type,
                          'LOVES')

    def test_duplicate_id(self):
        self.store.create_extent_tag('PERSON', None, [0], tid='P5')
        self.assertRaises(DuplicateTagIdError,
                          self.store.create_extent_tag,
                          'PERSON', None, [1], tid='P5')
        # across kinds of tags too
        self.assertRaises(DuplicateTagIdError,
                          self.store.create_link_tag, 'LOVES', tid='P5')

    def test_unknown_types(self):
        self.assertRaises(SchemaError, self.store.create_extent_tag,
                          'ALIEN', None, [0])
        self.assertRaises(SchemaError, self.store.create_extent_tag,
                          'LOVES', None, [0])
        john, _ = self.mk_people()
        self.assertRaises(SchemaError, self.store.update_attribute,
                          john, 'colour', 'red')
        link = self.store.create_link_tag('LOVES')
        self.assertRaises(SchemaError, self.store.update_argument,
                          link, 'by', john)

    def test_attribute_replace(self):
        "updates replace the value, never add a second one"
        john, _ = self.mk_people()
        self.store.update_attribute(john, 'comment', 'v1')
        self.store.update_attribute(john, 'comment', 'v2')
        self.assertEqual(1, self.count_rows('attribute', tid=john.tid,
                                            name='comment'))
        self.assertEqual('v2',
                         self.store.get_tag(john.tid).attributes['comment'])

    def test_attribute_empty_deletes(self):
        john, _ = self.mk_people()
        self.store.update_attribute(john, 'comment', 'hello')
        self.store.update_attribute(john, 'comment', '')
        self.assertNotIn('comment', self.store.get_tag('P0').attributes)
        self.store.delete_attribute(john, 'role')
        self.assertEqual({}, dict(self.store.get_tag('P0').attributes))

    def test_link(self):
        john, mary = self.mk_people()
        link = self.store.create_link_tag('LOVES', {'from': john,
                                                    'to': mary.tid})
        self.assertTrue(isinstance(link, LinkTag))
        self.assertEqual('L0', link.tid)
        self.assertEqual({'from': 'P0', 'to': 'P1'},
                         dict(link.argument_targets()))
        self.assertEqual('Mary', link.arguments['to'].target_text)
        # last write wins
        sue = self.store.create_extent_tag('PERSON', None, [20, 21, 22])
        self.store.update_argument(link, 'to', sue)
        self.assertEqual(1, self.count_rows('argument', linker='L0',
                                            name='to'))
        self.assertEqual('P2',
                         self.store.get_tag('L0').arguments['to'].target)
        # None leaves the slot empty
        self.store.update_argument(link, 'to', None)
        self.assertEqual(['from'],
                         list(self.store.get_tag('L0').arguments))

    def test_missing_argument_target(self):
        "dangling arguments are refused when written"
        john, _ = self.mk_people()
        link = self.store.create_link_tag('LOVES', {'from': john})
        self.assertRaises(TagNotFoundError, self.store.add_argument,
                          link, 'to', 'P99')
        self.assertRaises(TagNotFoundError, self.store.add_argument,
                          link, 'to', None)
        self.assertRaises(TagNotFoundError, self.store.update_argument,
                          link, 'to', link)
        self.assertEqual(['from'],
                         list(self.store.get_tag('L0').arguments))

    def test_create_link_all_or_nothing(self):
        john, _ = self.mk_people()
        self.assertRaises(TagNotFoundError, self.store.create_link_tag,
                          'LOVES', {'from': john, 'to': 'P99'})
        self.assertFalse(self.store.id_exists('L0'))
        self.assertEqual([], self.store.get_all_link_tags())
        # the failed attempt does not use up an id
        self.assertEqual('L0', self.store.create_link_tag('LOVES').tid)

    def test_delete_link(self):
        john, mary = self.mk_people()
        link = self.store.create_link_tag('LOVES', {'from': john,
                                                    'to': mary})
        self.store.update_attribute(link, 'strength', 'weak')
        self.store.delete_tag(link)
        self.assertEqual(0, self.count_rows('argument'))
        self.assertEqual(0, self.count_rows('attribute', tid='L0'))
        self.assertRaises(TagNotFoundError, self.store.get_tag, 'L0')
        self.assertEqual(2, len(self.store.get_all_extent_tags()))

    def test_delete_extent(self):
        john, mary = self.mk_people()
        self.store.create_link_tag('LOVES', {'from': john, 'to': mary})
        self.store.delete_tag(mary)
        self.assertEqual([], self.store.get_tags_at(12))
        self.assertEqual(0, self.count_rows('char_index', tid='P1'))
        self.assertEqual(['from'],
                         list(self.store.get_tag('L0').arguments))
        self.assertRaises(TagNotFoundError, self.store.delete_tag, mary)

    def test_update_spans(self):
        john, _ = self.mk_people()
        updated = self.store.update_tag_spans(john, [0, 1, 11, 12])
        self.assertEqual([0, 1, 11, 12], updated.spans)
        self.assertEqual('Jo ... Ma', updated.text)
        self.assertEqual([], self.store.get_tags_of_type_at('PERSON', 3))
        self.assertRaises(InvalidSpanError, self.store.update_tag_spans,
                          john, [])
        self.assertEqual([0, 1, 11, 12], self.store.get_tag('P0').spans)
        self.store.update_tag_text(john, 'JM')
        self.assertEqual('JM', self.store.get_tag('P0').text)

    def test_location_queries(self):
        john, mary = self.mk_people()
        both = self.store.create_extent_tag('PERSON', None, [3, 4, 5, 11])
        event = self.store.create_extent_tag('EVENT', None, [5, 6, 7, 8, 9])
        self.assertEqual([john, both], self.store.get_tags_at(3))
        self.assertEqual([john, mary, both],
                         self.store.get_tags_in([0, 11]))
        self.assertEqual([event, both],
                         self.store.get_tags_between(4, 6))
        self.assertEqual([both],
                         self.store.get_tags_of_type_between('PERSON', 4, 6))
        self.assertEqual([mary, both],
                         self.store.get_tags_of_type_in('PERSON', [11]))
        grouped = self.store.get_tags_by_types_between(4, 6)
        person = self.store.get_tag_type('PERSON')
        self.assertEqual(set([both]), grouped[person])
        self.assertEqual(set([event]),
                         grouped[self.store.get_tag_type('EVENT')])
        grouped = self.store.get_tags_by_types_in('0-1,12-13')
        self.assertEqual(set([john, mary]), grouped[person])
        self.assertEqual({}, self.store.get_tags_by_types_at(19))

    def test_anchor_queries(self):
        john, mary = self.mk_people()
        self.store.create_extent_tag('EVENT', None, [3, 4])
        link = self.store.create_link_tag('LOVES', {'from': john,
                                                    'to': mary})
        self.assertEqual([0, 1, 2, 3, 4, 11, 12, 13, 14],
                         self.store.get_all_anchor_locations())
        self.assertEqual(10, len(self.store.get_all_anchors()))
        self.assertEqual([0, 1, 2, 3, 11, 12, 13, 14],
                         [x.location for x in
                          self.store.get_all_anchors_of_tag_type('LOVES')])
        self.assertEqual([0, 1, 2, 11, 12, 13, 14],
                         self.store.get_all_anchor_locations_of_tag_type(
                             'PERSON', excludes=['EVENT']))
        self.assertEqual(mary.spans,
                         self.store.get_anchor_locations_by_tid('P1'))
        self.assertEqual(john.spans + mary.spans,
                         self.store.get_anchor_locations_by_tid(link.tid))
        self.assertEqual([link],
                         self.store.get_links_with_argument_tag(mary))
        self.assertEqual([], self.store.get_links_with_argument_tag('P2'))

    def test_changed_flag(self):
        "mutations set the flag, queries do not"
        self.assertFalse(self.store.changed)
        john, _ = self.mk_people()
        self.assertTrue(self.store.changed)
        self.store.mark_saved()
        self.store.get_tags_at(0)
        self.store.get_all_tags()
        self.store.get_underspec(john)
        self.assertFalse(self.store.changed)
        self.store.update_attribute(john, 'comment', 'x')
        self.assertTrue(self.store.changed)

    def test_underspec(self):
        john, mary = self.mk_people()
        link = self.store.create_link_tag('LOVES', {'from': john})
        self.assertEqual(['to'], self.store.get_underspec(link))
        self.assertEqual([], self.store.get_underspec(john))
        self.store.delete_attribute(mary, 'role')
        self.assertEqual(['role'], self.store.get_underspec('P1'))
        self.assertEqual(['L0', 'P1'],
                         list(self.store.get_all_underspec_tags()))

    def test_empty_annotations(self):
        self.mk_people()
        self.store.create_link_tag('LOVES')
        self.store.empty_annotations()
        self.assertEqual([], self.store.get_all_tags())
        self.assertEqual(0, self.count_rows('char_index'))
        self.assertEqual(['PERSON', 'EVENT', 'LOVES'],
                         [t.name for t in self.store.get_tag_types()])
        self.assertEqual('P0', self.mk_people()[0].tid)

    def test_schema_updates(self):
        person = self.store.get_tag_type('PERSON')
        self.store.set_tag_type_prefix(person, 'PER')
        self.assertEqual('PER0', self.store.create_extent_tag(
            'PERSON', None, [0]).tid)
        role = self.store.get_attribute_type('PERSON', 'role')
        self.store.set_attribute_type_default_value(role, 'object')
        self.store.set_attribute_type_valueset(role, ['object', 'other'])
        self.store.set_attribute_type_required(role, False)
        self.assertEqual(('object', 'other'),
                         self.store.schema().attribute_type(
                             'PERSON', 'role').valueset)
        self.assertEqual('object', self.store.create_extent_tag(
            'PERSON', None, [1]).attributes['role'])
        self.store.set_tag_type_non_consuming('PERSON', True)
        self.assertEqual(['PERSON', 'EVENT'],
                         [t.name for t in
                          self.store.get_non_consuming_tag_types()])
        to_arg = self.store.get_argument_type('LOVES', 'to')
        self.store.set_argument_type_required(to_arg, False)
        link = self.store.create_link_tag('LOVES', {'from': 'PER0'})
        self.assertEqual([], self.store.get_underspec(link))
        self.assertRaises(SchemaError, self.store.create_tag_type,
                          'PERSON', 'X', False)
        self.assertRaises(SchemaError, self.store.create_argument_type,
                          'PERSON', 'arg')

    def test_failed_schema_load(self):
        "a schema load that fails partway leaves the tag types alone"
        schema = mk_schema()
        store = AnnotationStore(
            schema=TaskSchema('People', [schema.tag_type('PERSON')]),
            primary_text=PRIMARY_TEXT)
        both = TaskSchema('Events', [schema.tag_type('EVENT'),
                                     schema.tag_type('PERSON')])
        self.assertRaises(SchemaError, store.load_schema, both)
        self.assertEqual(['PERSON'], [t.name for t in store.get_tag_types()])
        self.assertEqual('People', store.task_name)
        self.assertRaises(SchemaError, store.create_extent_tag,
                          'EVENT', None, [0])
        self.assertEqual(0, store._sql('SELECT COUNT(*) FROM tag_type '
                                       'WHERE name = ?',
                                       ['EVENT']).fetchone()[0])
        self.assertEqual(['role', 'comment'],
                         store.get_tag_type('PERSON').attribute_names())
        self.assertEqual('P0', store.create_extent_tag(
            'PERSON', None, [0]).tid)
        store.close()

    def test_sql_errors_wrapped(self):
        store = mk_store()
        store.close()
        with pytest.raises(StoreError) as err:
            store.get_all_tags()
        self.assertIn('caught sql error', str(err.value))


class StoreFileTest(unittest.TestCase):
    "reading and writing annotation files through the store"

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.dtd_file = os.path.join(self.tmpdir, 'task.dtd')
        self.xml_file = os.path.join(self.tmpdir, 'story_alice.xml')
        with open(self.dtd_file, 'w', encoding='utf-8') as stream:
            stream.write(TASK_DTD)
        with open(self.xml_file, 'w', encoding='utf-8') as stream:
            stream.write(ANNOTATION_XML)

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def load(self, filename):
        store = AnnotationStore()
        store.read_task(self.dtd_file)
        report = store.read_annotation(filename)
        return store, report

    def test_read(self):
        store, report = self.load(self.xml_file)
        self.assertEqual('', report)
        self.assertFalse(store.changed)
        self.assertEqual('NameOfTask', store.task_name)
        self.assertEqual(PRIMARY_TEXT, store.primary_text)
        self.assertEqual(4, len(store.get_all_tags()))
        self.assertEqual('story_alice.xml', store.get_tag('P0').filename)
        self.assertEqual('Mary ... Sue', store.get_tag('P1').text)
        store.close()

    def test_round_trip(self):
        "writing then reading gives back the same tags"
        store, _ = self.load(self.xml_file)
        before = tag_summary(store.get_all_tags())
        copy_file = os.path.join(self.tmpdir, 'story_copy.xml')
        store.write_annotation(copy_file)
        self.assertEqual(copy_file, store.annotation_filename)
        store.close()
        store, report = self.load(copy_file)
        self.assertEqual('', report)
        self.assertEqual(before, tag_summary(store.get_all_tags()))
        self.assertEqual(PRIMARY_TEXT, store.primary_text)
        store.close()

    def test_written_layout(self):
        store, _ = self.load(self.xml_file)
        written = store.to_xml_string()
        lines = written.splitlines()
        self.assertEqual('<NameOfTask>', lines[1])
        self.assertEqual('<TEXT><![CDATA[%s]]></TEXT>' % PRIMARY_TEXT,
                         lines[2])
        self.assertTrue(lines[4].startswith('<PERSON id="P0" spans="0-4" '
                                            'text="John"'))
        self.assertIn('<EVENT id="E0" spans="-1--1" text="" />', lines)
        self.assertEqual('</NameOfTask>', lines[-1])
        store.close()

    def test_duplicate_in_file(self):
        "a file with the same id twice loads nothing"
        dup_file = os.path.join(self.tmpdir, 'dup_alice.xml')
        with open(dup_file, 'w', encoding='utf-8') as stream:
            stream.write(ANNOTATION_XML.replace('id="P1"', 'id="P0"'))
        store, _ = self.load(self.xml_file)
        self.assertRaises(DuplicateTagIdError, store.read_annotation,
                          dup_file)
        self.assertEqual(4, len(store.get_all_tags()))
        self.assertEqual(PRIMARY_TEXT, store.primary_text)
        store.close()

    def test_preamble_checks(self):
        self.assertTrue(tagxml.is_task_name_matching(self.xml_file,
                                                     'NameOfTask'))
        self.assertFalse(tagxml.is_task_name_matching(self.xml_file,
                                                      'OtherTask'))
        self.assertTrue(tagxml.is_primary_text_matching(self.xml_file,
                                                        PRIMARY_TEXT))


# ---------------------------------------------------------------------
# corpus
# ---------------------------------------------------------------------


class CorpusTest(unittest.TestCase):
    "tests for standoff.corpus"

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        for name in ['story1_alice.xml', 'story1_bob.xml',
                     'story_two_alice.xml', 'story1_GOLD.xml',
                     'readme.xml', 'notes.txt']:
            with open(os.path.join(self.tmpdir, name), 'w') as stream:
                stream.write('')

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def test_parse_filename(self):
        self.assertEqual(FileId('story_two', 'alice'),
                         parse_filename('/x/story_two_alice.xml'))
        self.assertEqual(FileId('a-b', 'c'),
                         parse_filename('a-b-c.xml', delimiter='-'))
        self.assertEqual(None, parse_filename('readme.xml'))
        self.assertEqual(None, parse_filename('a_b.txt'))
        self.assertEqual('story1_bob.xml',
                         annotation_filename(FileId('story1', 'bob')))

    def test_reader(self):
        with pytest.warns(UserWarning):
            files = Reader(self.tmpdir).files()
        self.assertEqual(4, len(files))
        self.assertEqual(os.path.join(self.tmpdir, 'story1_bob.xml'),
                         files[FileId('story1', 'bob')])

    def test_index(self):
        with pytest.warns(UserWarning):
            files = Reader(self.tmpdir).files()
        index = AnnotationIndex(files)
        self.assertEqual(['alice', 'bob'], index.annotators)
        self.assertEqual(['story1', 'story_two'], index.document_names())
        self.assertTrue(index.is_complete('story1'))
        self.assertFalse(index.is_complete('story_two'))
        self.assertEqual([os.path.join(self.tmpdir, 'story_two_alice.xml'),
                          None],
                         index.annotation_files('story_two'))
        self.assertEqual(1, index.annotator_index('bob'))

    def test_index_gold(self):
        with pytest.warns(UserWarning):
            files = Reader(self.tmpdir).files()
        index = AnnotationIndex(files, include_gold=True)
        self.assertEqual(['alice', 'bob', 'GOLD'], index.annotators)


def test_parse_targets():
    assert parse_targets(['PERSON:role', 'EVENT', 'PERSON:comment,role']) ==\
        {'PERSON': ['role', 'comment'], 'EVENT': []}
    with pytest.raises(ValueError):
        parse_targets([':role'])
