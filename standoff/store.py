# Author: Eric Kow
# License: BSD3

"""
The annotation store: every tag of one document, with the schema of
the annotation task they belong to.

The store is backed by an sqlite database (in memory unless you ask for
a file), which is used to enforce the integrity of the annotations:

* tag ids are unique across extent and link tags
* a tag has at most one value per attribute and at most one target per
  argument slot
* arguments always point to existing extent tags
* a tag's attributes, arguments and character anchors go away with it

Tags handed out by the store are snapshots: they are fully loaded
(offsets, attributes, arguments) when fetched, and do not follow later
changes to the store. Fetch them again after updating.

Errors are raised as :py:class:`StoreError` (or one of its subclasses);
database errors are never seen directly.
"""

# pylint: disable=too-many-public-methods, too-many-arguments

from collections import OrderedDict, defaultdict
from contextlib import contextmanager
import json
import os
import sqlite3

from . import dtd
from . import tagxml
from .annotation import (Argument, ArgumentType, AttributeType, CharIndex,
                         ExtentTag, LinkTag, TagType, TaskSchema)
from .ids import IdAllocator, tid_sort_key
from .spans import (SpanFormatError, normalize_offsets, offsets_to_pairs,
                    pairs_text, string_to_offsets)

# sqlite has a cap on the number of parameters in one statement
_MAX_PARAMS = 500

_TABLES = [
    """CREATE TABLE tag_type (
        name TEXT PRIMARY KEY,
        prefix TEXT NOT NULL,
        is_link INTEGER NOT NULL,
        non_consuming INTEGER NOT NULL)""",
    """CREATE TABLE att_type (
        tag_type TEXT NOT NULL REFERENCES tag_type(name),
        name TEXT NOT NULL,
        valueset TEXT,
        default_value TEXT NOT NULL,
        required INTEGER NOT NULL,
        id_ref INTEGER NOT NULL,
        PRIMARY KEY (tag_type, name))""",
    """CREATE TABLE arg_type (
        tag_type TEXT NOT NULL REFERENCES tag_type(name),
        name TEXT NOT NULL,
        required INTEGER NOT NULL,
        PRIMARY KEY (tag_type, name))""",
    """CREATE TABLE tag (
        tid TEXT PRIMARY KEY,
        tag_type TEXT NOT NULL REFERENCES tag_type(name),
        filename TEXT,
        text TEXT NOT NULL)""",
    """CREATE TABLE char_index (
        location INTEGER NOT NULL,
        tid TEXT NOT NULL REFERENCES tag(tid) ON DELETE CASCADE,
        PRIMARY KEY (location, tid))""",
    """CREATE INDEX char_index_by_tid ON char_index (tid)""",
    """CREATE TABLE attribute (
        tid TEXT NOT NULL REFERENCES tag(tid) ON DELETE CASCADE,
        tag_type TEXT NOT NULL,
        name TEXT NOT NULL,
        value TEXT NOT NULL,
        PRIMARY KEY (tid, name),
        FOREIGN KEY (tag_type, name) REFERENCES att_type(tag_type, name))""",
    """CREATE TABLE argument (
        linker TEXT NOT NULL REFERENCES tag(tid) ON DELETE CASCADE,
        tag_type TEXT NOT NULL,
        name TEXT NOT NULL,
        target TEXT NOT NULL REFERENCES tag(tid) ON DELETE CASCADE,
        PRIMARY KEY (linker, name),
        FOREIGN KEY (tag_type, name) REFERENCES arg_type(tag_type, name))""",
    """CREATE INDEX argument_by_target ON argument (target)""",
]


# ---------------------------------------------------------------------
# errors
# ---------------------------------------------------------------------

class StoreError(Exception):
    """
    Something the annotation store refused to do
    """
    def __init__(self, *args, **kw):
        Exception.__init__(self, *args, **kw)


class DuplicateTagIdError(StoreError):
    "A tag with this id is already in the store"


class TagNotFoundError(StoreError):
    "No tag with this id in the store"


class SchemaError(StoreError):
    """
    Unknown tag, attribute or argument type, or a type used for the
    wrong kind of tag
    """


class InvalidSpanError(StoreError):
    "Character offsets that cannot anchor a tag"


def _chunks(items, size=_MAX_PARAMS):
    items = list(items)
    for i in range(0, len(items), size):
        yield items[i:i + size]


def _sorted_tags(tags):
    return sorted(tags, key=lambda t: tid_sort_key(t.tid))


# ---------------------------------------------------------------------
# store
# ---------------------------------------------------------------------

class AnnotationStore(object):
    """
    Annotations for a single document.

    :param schema: tag types to start with (you can also load them
        later with `load_schema` or `read_task`)
    :type schema: TaskSchema

    :param primary_text: the text being annotated; if set, offsets are
        checked against it and tag text is computed from it

    :param path: sqlite database to work in (default: in memory)

    `changed` is True whenever the annotations have been modified since
    they were last read or saved.
    """
    def __init__(self, schema=None, primary_text=None, path=':memory:'):
        self.path = path
        self.task_name = None
        self.task_filename = None
        self.annotation_filename = None
        self.primary_text = primary_text
        self.changed = False
        self._types = OrderedDict()
        self._ids = IdAllocator()
        self._batch_depth = 0
        try:
            self._conn = sqlite3.connect(path, isolation_level=None)
        except sqlite3.Error as err:
            raise StoreError('caught sql error: %s' % err)
        self._sql('PRAGMA foreign_keys = ON')
        for statement in _TABLES:
            self._sql(statement)
        if schema is not None:
            self.load_schema(schema)
            self.changed = False

    # -----------------------------------------------------------------
    # plumbing
    # -----------------------------------------------------------------

    def _sql(self, query, params=()):
        try:
            return self._conn.execute(query, params)
        except sqlite3.Error as err:
            raise StoreError('caught sql error: %s' % err)

    def _rollback(self):
        if self._conn.in_transaction:
            self._conn.execute('ROLLBACK')

    @contextmanager
    def _batch(self):
        """
        Run the body as one all-or-nothing unit: if anything goes
        wrong, the database, the tag type registry and the id allocator
        are left as they were.
        Batches may be nested, in which case only the outermost one
        counts.
        """
        if self._batch_depth > 0:
            self._batch_depth += 1
            try:
                yield
            finally:
                self._batch_depth -= 1
            return
        snapshot = self._ids.copy()
        schema_snapshot = self._schema_snapshot()
        self._sql('BEGIN')
        self._batch_depth = 1
        try:
            yield
            self._sql('COMMIT')
        except Exception:
            self._rollback()
            self._ids = snapshot
            self._restore_schema(schema_snapshot)
            raise
        finally:
            self._batch_depth = 0
        self.changed = True

    def _schema_snapshot(self):
        return (self.task_name, OrderedDict(self._types),
                [(t, list(t.attribute_types), list(t.argument_types))
                 for t in self._types.values()])

    def _restore_schema(self, snapshot):
        self.task_name, self._types, type_lists = snapshot
        for tag_type, att_types, arg_types in type_lists:
            tag_type.attribute_types[:] = att_types
            tag_type.argument_types[:] = arg_types

    def mark_saved(self):
        "Note that the annotations are now saved"
        self.changed = False

    def close(self):
        "Release the database connection"
        self._conn.close()

    # -----------------------------------------------------------------
    # schema
    # -----------------------------------------------------------------

    def _tag_type(self, tag_type):
        name = tag_type.name if isinstance(tag_type, TagType) else tag_type
        if name not in self._types:
            raise SchemaError('no such tag type: %s' % name)
        return self._types[name]

    def _attribute_type(self, tag_type, att_type):
        name = att_type.name if isinstance(att_type, AttributeType)\
            else att_type
        found = tag_type.attribute_type(name)
        if found is None:
            raise SchemaError('no attribute type "%s" for %s' %
                              (name, tag_type.name))
        return found

    def _argument_type(self, tag_type, arg_type):
        name = arg_type.name if isinstance(arg_type, ArgumentType)\
            else arg_type
        found = tag_type.argument_type(name)
        if found is None:
            raise SchemaError('no argument type "%s" for %s' %
                              (name, tag_type.name))
        return found

    def create_tag_type(self, name, prefix, is_link, non_consuming=False):
        """
        Declare a new tag type
        """
        if name in self._types:
            raise SchemaError('tag type already exists: %s' % name)
        tag_type = TagType(name, prefix=prefix, is_link=is_link,
                           non_consuming=non_consuming)
        with self._batch():
            self._sql('INSERT INTO tag_type VALUES (?, ?, ?, ?)',
                      (name, tag_type.prefix, int(is_link),
                       int(non_consuming)))
        self._types[name] = tag_type
        return tag_type

    def create_attribute_type(self, tag_type, name, valueset=None,
                              default_value='', required=False,
                              id_ref=False):
        """
        Declare a new attribute for an existing tag type
        """
        tag_type = self._tag_type(tag_type)
        if tag_type.attribute_type(name) is not None:
            raise SchemaError('attribute type already exists: %s.%s' %
                              (tag_type.name, name))
        att_type = AttributeType(tag_type.name, name, valueset=valueset,
                                 default_value=default_value,
                                 required=required, id_ref=id_ref)
        with self._batch():
            self._sql('INSERT INTO att_type VALUES (?, ?, ?, ?, ?, ?)',
                      (tag_type.name, name,
                       None if att_type.valueset is None
                       else json.dumps(list(att_type.valueset)),
                       att_type.default_value, int(required), int(id_ref)))
        tag_type.attribute_types.append(att_type)
        return att_type

    def create_argument_type(self, tag_type, name, required=False):
        """
        Declare a new argument slot for an existing link tag type
        """
        tag_type = self._tag_type(tag_type)
        if not tag_type.is_link:
            raise SchemaError('only link tags have arguments: %s' %
                              tag_type.name)
        if tag_type.argument_type(name) is not None:
            raise SchemaError('argument type already exists: %s.%s' %
                              (tag_type.name, name))
        arg_type = ArgumentType(tag_type.name, name, required=required)
        with self._batch():
            self._sql('INSERT INTO arg_type VALUES (?, ?, ?)',
                      (tag_type.name, name, int(required)))
        tag_type.argument_types.append(arg_type)
        return arg_type

    def load_schema(self, schema):
        """
        Declare every type of the given task schema
        """
        with self._batch():
            self.task_name = schema.name
            for tag_type in schema.tag_types:
                self.create_tag_type(tag_type.name, tag_type.prefix,
                                     tag_type.is_link,
                                     non_consuming=tag_type.non_consuming)
                for att_type in tag_type.attribute_types:
                    self.create_attribute_type(
                        tag_type.name, att_type.name,
                        valueset=att_type.valueset,
                        default_value=att_type.default_value,
                        required=att_type.required,
                        id_ref=att_type.id_ref)
                for arg_type in tag_type.argument_types:
                    self.create_argument_type(tag_type.name, arg_type.name,
                                              required=arg_type.required)

    def read_task(self, filename):
        """
        Load the task schema from a DTD file
        """
        self.load_schema(dtd.read_dtd_file(filename))
        self.task_filename = filename
        self.mark_saved()

    def schema(self):
        """
        The current task schema

        :rtype: TaskSchema
        """
        return TaskSchema(self.task_name, self._types.values())

    def set_tag_type_prefix(self, tag_type, prefix):
        tag_type = self._tag_type(tag_type)
        with self._batch():
            self._sql('UPDATE tag_type SET prefix = ? WHERE name = ?',
                      (prefix, tag_type.name))
        tag_type.prefix = prefix

    def set_tag_type_non_consuming(self, tag_type, non_consuming):
        tag_type = self._tag_type(tag_type)
        with self._batch():
            self._sql('UPDATE tag_type SET non_consuming = ? WHERE name = ?',
                      (int(non_consuming), tag_type.name))
        tag_type.non_consuming = non_consuming

    def _update_att_type(self, att_type, column, value):
        tag_type = self._tag_type(att_type.tag_type)
        att_type = self._attribute_type(tag_type, att_type)
        with self._batch():
            self._sql('UPDATE att_type SET %s = ? '
                      'WHERE tag_type = ? AND name = ?' % column,
                      (value, tag_type.name, att_type.name))
        return att_type

    def set_attribute_type_valueset(self, att_type, valueset):
        valueset = None if valueset is None else tuple(valueset)
        att_type = self._update_att_type(
            att_type, 'valueset',
            None if valueset is None else json.dumps(list(valueset)))
        att_type.valueset = valueset

    def set_attribute_type_default_value(self, att_type, default_value):
        default_value = default_value or ''
        att_type = self._update_att_type(att_type, 'default_value',
                                         default_value)
        att_type.default_value = default_value

    def set_attribute_type_required(self, att_type, required):
        att_type = self._update_att_type(att_type, 'required',
                                         int(required))
        att_type.required = required

    def set_attribute_type_id_ref(self, att_type, id_ref):
        att_type = self._update_att_type(att_type, 'id_ref', int(id_ref))
        att_type.id_ref = id_ref

    def set_argument_type_required(self, arg_type, required):
        tag_type = self._tag_type(arg_type.tag_type)
        arg_type = self._argument_type(tag_type, arg_type)
        with self._batch():
            self._sql('UPDATE arg_type SET required = ? '
                      'WHERE tag_type = ? AND name = ?',
                      (int(required), tag_type.name, arg_type.name))
        arg_type.required = required

    def get_tag_type(self, name):
        """
        :raises SchemaError: if there is no such tag type
        """
        return self._tag_type(name)

    def get_attribute_type(self, tag_type, name):
        return self._attribute_type(self._tag_type(tag_type), name)

    def get_argument_type(self, tag_type, name):
        return self._argument_type(self._tag_type(tag_type), name)

    def get_tag_types(self):
        return list(self._types.values())

    def get_extent_tag_types(self):
        return [t for t in self._types.values() if not t.is_link]

    def get_link_tag_types(self):
        return [t for t in self._types.values() if t.is_link]

    def get_non_consuming_tag_types(self):
        return [t for t in self._types.values()
                if not t.is_link and t.non_consuming]

    # -----------------------------------------------------------------
    # reading tags
    # -----------------------------------------------------------------

    def _tid(self, tag):
        return tag.tid if isinstance(tag, (ExtentTag, LinkTag)) else tag

    def id_exists(self, tid):
        "True if some tag has this id"
        row = self._sql('SELECT 1 FROM tag WHERE tid = ?',
                        (tid,)).fetchone()
        return row is not None

    def get_tag(self, tid):
        """
        The tag with the given id, with its offsets, attributes and
        arguments

        :raises TagNotFoundError: if there is no such tag
        """
        row = self._sql('SELECT tag_type, filename, text FROM tag '
                        'WHERE tid = ?', (tid,)).fetchone()
        if row is None:
            raise TagNotFoundError('no such a tag is in DB: %s' % tid)
        type_name, filename, text = row
        tag_type = self._types[type_name]
        attributes = self._sql('SELECT name, value FROM attribute '
                               'WHERE tid = ?', (tid,)).fetchall()
        att_order = tag_type.attribute_names()
        attributes.sort(key=lambda x: att_order.index(x[0]))
        if tag_type.is_link:
            arguments = OrderedDict()
            arg_rows = self._sql('SELECT a.name, a.target, t.text '
                                 'FROM argument a JOIN tag t '
                                 'ON a.target = t.tid '
                                 'WHERE a.linker = ?', (tid,)).fetchall()
            by_name = dict((name, (target, target_text))
                           for name, target, target_text in arg_rows)
            for name in tag_type.argument_names():
                if name in by_name:
                    target, target_text = by_name[name]
                    arguments[name] = Argument(tid, name, target,
                                               target_text)
            return LinkTag(tid, tag_type, arguments=arguments,
                           filename=filename, text=text,
                           attributes=attributes)
        else:
            spans = [x[0] for x in
                     self._sql('SELECT location FROM char_index '
                               'WHERE tid = ? ORDER BY location',
                               (tid,))]
            return ExtentTag(tid, tag_type, spans, filename=filename,
                             text=text, attributes=attributes)

    def _get_tags(self, tids):
        return _sorted_tags(self.get_tag(tid) for tid in set(tids))

    def _tids_at(self, locations, tag_type=None):
        tids = set()
        for chunk in _chunks(set(locations)):
            query = 'SELECT DISTINCT c.tid FROM char_index c '\
                'JOIN tag t ON c.tid = t.tid '\
                'WHERE c.location IN (%s)' % ', '.join('?' * len(chunk))
            params = list(chunk)
            if tag_type is not None:
                query += ' AND t.tag_type = ?'
                params.append(tag_type.name)
            tids.update(x[0] for x in self._sql(query, params))
        return tids

    def _tids_between(self, begin, end, tag_type=None):
        query = 'SELECT DISTINCT c.tid FROM char_index c '\
            'JOIN tag t ON c.tid = t.tid '\
            'WHERE c.location >= ? AND c.location < ?'
        params = [begin, end]
        if tag_type is not None:
            query += ' AND t.tag_type = ?'
            params.append(tag_type.name)
        return set(x[0] for x in self._sql(query, params))

    def get_tags_at(self, location):
        "extent tags anchored at the given offset"
        return self._get_tags(self._tids_at([location]))

    def get_tags_in(self, locations):
        "extent tags anchored at any of the given offsets"
        return self._get_tags(self._tids_at(locations))

    def get_tags_between(self, begin, end):
        "extent tags anchored anywhere in `[begin, end)`"
        return self._get_tags(self._tids_between(begin, end))

    def get_tags_of_type_at(self, tag_type, location):
        tag_type = self._tag_type(tag_type)
        return self._get_tags(self._tids_at([location], tag_type))

    def get_tags_of_type_in(self, tag_type, locations):
        tag_type = self._tag_type(tag_type)
        return self._get_tags(self._tids_at(locations, tag_type))

    def get_tags_of_type_between(self, tag_type, begin, end):
        tag_type = self._tag_type(tag_type)
        return self._get_tags(self._tids_between(begin, end, tag_type))

    def _by_types(self, tags):
        grouped = defaultdict(set)
        for tag in tags:
            grouped[tag.tag_type].add(tag)
        return dict(grouped)

    def get_tags_by_types_at(self, location):
        """
        Extent tags anchored at the given offset, as a dictionary from
        tag type to set of tags
        """
        return self._by_types(self.get_tags_at(location))

    def get_tags_by_types_in(self, locations):
        """
        As `get_tags_by_types_at` for a collection of offsets, or a
        string in span notation
        """
        if isinstance(locations, str):
            locations = string_to_offsets(locations)
        return self._by_types(self.get_tags_in(locations))

    def get_tags_by_types_between(self, begin, end):
        return self._by_types(self.get_tags_between(begin, end))

    def get_all_anchors(self):
        """
        Every character anchor, as a list of `CharIndex`
        """
        return [CharIndex(*row) for row in
                self._sql('SELECT location, tid FROM char_index '
                          'ORDER BY location, tid')]

    def get_all_anchors_of_tag_type(self, tag_type):
        """
        Character anchors of the tags of the given type. For a link
        type, these are the anchors of the extent tags its links point
        to.
        """
        tag_type = self._tag_type(tag_type)
        if tag_type.is_link:
            query = 'SELECT DISTINCT c.location, c.tid FROM char_index c '\
                'JOIN argument a ON c.tid = a.target '\
                'JOIN tag t ON a.linker = t.tid '\
                'WHERE t.tag_type = ? ORDER BY c.location, c.tid'
        else:
            query = 'SELECT c.location, c.tid FROM char_index c '\
                'JOIN tag t ON c.tid = t.tid '\
                'WHERE t.tag_type = ? ORDER BY c.location, c.tid'
        return [CharIndex(*row) for row in
                self._sql(query, (tag_type.name,))]

    def get_all_anchor_locations(self):
        "sorted list of every anchored offset"
        return sorted(set(x.location for x in self.get_all_anchors()))

    def get_all_anchor_locations_of_tag_type(self, tag_type, excludes=()):
        """
        Sorted offsets anchoring the tags of the given type, minus those
        anchoring any tag of the excluded types
        """
        locations = set(x.location for x in
                        self.get_all_anchors_of_tag_type(tag_type))
        for exclude in excludes:
            locations.difference_update(
                x.location for x in self.get_all_anchors_of_tag_type(exclude))
        return sorted(locations)

    def get_anchor_locations_by_tid(self, tid):
        """
        Offsets of an extent tag, or of all the arguments of a link tag
        """
        tag = self.get_tag(tid)
        if isinstance(tag, ExtentTag):
            return list(tag.spans)
        elif isinstance(tag, LinkTag):
            locations = set()
            for argument in tag.arguments.values():
                locations.update(self.get_tag(argument.target).spans)
            return sorted(locations)
        else:
            raise ValueError("unknown kind of tag: %r" % tag)

    def get_links_with_argument_tag(self, tag):
        """
        Every link tag that has the given extent tag as one of its
        arguments
        """
        rows = self._sql('SELECT DISTINCT linker FROM argument '
                         'WHERE target = ?', (self._tid(tag),))
        return self._get_tags(x[0] for x in rows)

    def get_all_tags_of_type(self, tag_type):
        tag_type = self._tag_type(tag_type)
        rows = self._sql('SELECT tid FROM tag WHERE tag_type = ?',
                         (tag_type.name,))
        return self._get_tags(x[0] for x in rows)

    def get_all_nc_tags_of_type(self, tag_type):
        """
        Tags of the given extent type which are not anchored anywhere
        """
        tag_type = self._tag_type(tag_type)
        if tag_type.is_link:
            raise SchemaError('link tags have no spans: %s' % tag_type.name)
        rows = self._sql('SELECT tid FROM tag WHERE tag_type = ? AND '
                         'tid NOT IN (SELECT tid FROM char_index)',
                         (tag_type.name,))
        return self._get_tags(x[0] for x in rows)

    def get_all_extent_tags(self, consuming_only=False):
        tags = []
        for tag_type in self.get_extent_tag_types():
            tags.extend(self.get_all_tags_of_type(tag_type))
        if consuming_only:
            tags = [t for t in tags if t.is_consuming()]
        return _sorted_tags(tags)

    def get_all_link_tags(self):
        tags = []
        for tag_type in self.get_link_tag_types():
            tags.extend(self.get_all_tags_of_type(tag_type))
        return _sorted_tags(tags)

    def get_all_tags(self):
        rows = self._sql('SELECT tid FROM tag')
        return self._get_tags(x[0] for x in rows)

    def get_underspec(self, tag):
        """
        Names of the required attributes (and, for link tags, the
        required arguments) that the tag leaves unset
        """
        if not isinstance(tag, (ExtentTag, LinkTag)):
            tag = self.get_tag(tag)
        missing = [x.name for x in tag.tag_type.attribute_types
                   if x.required and not tag.attributes.get(x.name)]
        if isinstance(tag, LinkTag):
            missing.extend(x.name for x in tag.tag_type.argument_types
                           if x.required and x.name not in tag.arguments)
        elif not isinstance(tag, ExtentTag):
            raise ValueError("unknown kind of tag: %r" % tag)
        return sorted(missing)

    def get_all_underspec_tags(self):
        """
        Tag id to underspecified names, for every tag that has any
        """
        underspec = OrderedDict()
        for tag in self.get_all_tags():
            missing = self.get_underspec(tag)
            if missing:
                underspec[tag.tid] = missing
        return underspec

    # -----------------------------------------------------------------
    # creating and updating tags
    # -----------------------------------------------------------------

    def _check_offsets(self, tag_type, spans, allow_empty=False):
        if isinstance(spans, str):
            try:
                return self._check_offsets(tag_type,
                                           string_to_offsets(spans),
                                           allow_empty=allow_empty)
            except SpanFormatError as err:
                raise InvalidSpanError(str(err))
        try:
            offsets = normalize_offsets(spans)
        except SpanFormatError as err:
            raise InvalidSpanError(str(err))
        if not offsets and not (tag_type.non_consuming or allow_empty):
            raise InvalidSpanError('%s is not a non-consuming tag type, '
                                   'so its tags need a span' %
                                   tag_type.name)
        if offsets and self.primary_text is not None and\
                offsets[-1] >= len(self.primary_text):
            raise InvalidSpanError('offset %d is past the end of the text '
                                   '(%d characters)' %
                                   (offsets[-1], len(self.primary_text)))
        return offsets

    def _span_text(self, offsets):
        if self.primary_text is None or not offsets:
            return ''
        return pairs_text(self.primary_text, offsets_to_pairs(offsets),
                          tagxml.SPAN_TEXT_JOINER)

    def _claim_id(self, tag_type, tid):
        if tid is None:
            tid = self._ids.next_id(tag_type)
            while self.id_exists(tid):
                tid = self._ids.next_id(tag_type)
            return tid
        if self.id_exists(tid) or not self._ids.add_id(tag_type, tid):
            raise DuplicateTagIdError('tag id is already in DB!: %s' % tid)
        return tid

    def _insert_tag(self, tag_type, tid, text, filename):
        tid = self._claim_id(tag_type, tid)
        self._sql('INSERT INTO tag VALUES (?, ?, ?, ?)',
                  (tid, tag_type.name, filename, text or ''))
        return tid

    def _insert_anchors(self, tid, offsets):
        try:
            self._conn.executemany('INSERT INTO char_index VALUES (?, ?)',
                                   [(x, tid) for x in offsets])
        except sqlite3.Error as err:
            raise StoreError('caught sql error: %s' % err)

    def _insert_defaults(self, tag_type, tid):
        for att_type in tag_type.attribute_types:
            if att_type.default_value:
                self._set_attribute(tag_type, tid, att_type,
                                    att_type.default_value)

    def create_extent_tag(self, tag_type, text, spans, tid=None,
                          filename=None):
        """
        Create an extent tag (with a fresh id unless you supply one)
        anchored at the given offsets, and fill in the default values
        of its attributes.

        :param text: tag text; if None, computed from the primary text
        :param spans: character offsets, or a string in span notation
        :rtype: ExtentTag
        """
        tag_type = self._tag_type(tag_type)
        if tag_type.is_link:
            raise SchemaError('not an extent tag type: %s' % tag_type.name)
        offsets = self._check_offsets(tag_type, spans)
        if text is None:
            text = self._span_text(offsets)
        with self._batch():
            tid = self._insert_tag(tag_type, tid, text,
                                   filename or self.annotation_filename)
            self._insert_anchors(tid, offsets)
            self._insert_defaults(tag_type, tid)
        return self.get_tag(tid)

    def create_link_tag(self, tag_type, arguments=None, tid=None,
                        filename=None):
        """
        Create a link tag, optionally filling in some of its arguments

        :param arguments: argument type (or name) to extent tag (or id)
        :rtype: LinkTag
        :raises TagNotFoundError: if an argument target does not exist
            (in which case nothing is created)
        """
        tag_type = self._tag_type(tag_type)
        if not tag_type.is_link:
            raise SchemaError('not a link tag type: %s' % tag_type.name)
        with self._batch():
            tid = self._insert_tag(tag_type, tid, '',
                                   filename or self.annotation_filename)
            self._insert_defaults(tag_type, tid)
            for arg_type, target in (arguments or {}).items():
                self._set_argument(tag_type, tid, arg_type, target)
        return self.get_tag(tid)

    def _tag_and_type(self, tag):
        tid = self._tid(tag)
        row = self._sql('SELECT tag_type FROM tag WHERE tid = ?',
                        (tid,)).fetchone()
        if row is None:
            raise TagNotFoundError('no such a tag is in DB: %s' % tid)
        return tid, self._types[row[0]]

    def _set_attribute(self, tag_type, tid, att_type, value):
        att_type = self._attribute_type(tag_type, att_type)
        self._sql('DELETE FROM attribute WHERE tid = ? AND name = ?',
                  (tid, att_type.name))
        if value:
            self._sql('INSERT INTO attribute VALUES (?, ?, ?, ?)',
                      (tid, tag_type.name, att_type.name, value))

    def update_attribute(self, tag, att_type, value):
        """
        Set the value of an attribute, replacing any previous value.
        An empty (or None) value leaves the attribute unset.
        """
        tid, tag_type = self._tag_and_type(tag)
        with self._batch():
            self._set_attribute(tag_type, tid, att_type, value)

    add_attribute = update_attribute

    def delete_attribute(self, tag, att_type):
        self.update_attribute(tag, att_type, None)

    def _set_argument(self, tag_type, tid, arg_type, target):
        arg_type = self._argument_type(tag_type, arg_type)
        self._sql('DELETE FROM argument WHERE linker = ? AND name = ?',
                  (tid, arg_type.name))
        if target is None:
            return
        target_tid, target_type = self._tag_and_type(target)
        if target_type.is_link:
            raise TagNotFoundError('argument should be an extent tag: %s'
                                   % target_tid)
        self._sql('INSERT INTO argument VALUES (?, ?, ?, ?)',
                  (tid, tag_type.name, arg_type.name, target_tid))

    def update_argument(self, linker, arg_type, target):
        """
        Point an argument slot of a link tag at an extent tag, replacing
        any previous target. A None target leaves the slot empty.

        :raises TagNotFoundError: if the target does not exist
        """
        tid, tag_type = self._tag_and_type(linker)
        with self._batch():
            self._set_argument(tag_type, tid, arg_type, target)

    def add_argument(self, linker, arg_type, target):
        """
        As `update_argument`, but the target must be given
        """
        if target is None:
            raise TagNotFoundError('no such a tag is in DB: None')
        self.update_argument(linker, arg_type, target)

    def update_tag_spans(self, tag, spans, text=None):
        """
        Replace all the anchors of an extent tag. Its text is recomputed
        from the primary text unless you supply it.

        :rtype: ExtentTag
        """
        tid, tag_type = self._tag_and_type(tag)
        if tag_type.is_link:
            raise SchemaError('link tags have no spans: %s' % tid)
        offsets = self._check_offsets(tag_type, spans)
        if text is None:
            text = self._span_text(offsets)
        with self._batch():
            self._sql('DELETE FROM char_index WHERE tid = ?', (tid,))
            self._insert_anchors(tid, offsets)
            self._sql('UPDATE tag SET text = ? WHERE tid = ?', (text, tid))
        return self.get_tag(tid)

    def update_tag_text(self, tag, text):
        tid = self._tag_and_type(tag)[0]
        with self._batch():
            self._sql('UPDATE tag SET text = ? WHERE tid = ?',
                      (text or '', tid))

    def delete_tag(self, tag):
        """
        Remove a tag along with its anchors, attributes and arguments.
        Removing an extent tag also removes the arguments pointing to
        it.
        """
        tid = self._tag_and_type(tag)[0]
        with self._batch():
            self._sql('DELETE FROM tag WHERE tid = ?', (tid,))

    def empty_annotations(self):
        """
        Remove every tag but keep the task schema
        """
        with self._batch():
            self._sql('DELETE FROM tag')
            self._ids.reset()

    # -----------------------------------------------------------------
    # files
    # -----------------------------------------------------------------

    def load_parsed(self, result, filename=None):
        """
        Add everything from a parsed annotation file, in one go.

        Attribute defaults are not filled in: the file is taken as it
        is. This includes tags without a span, even if their type is
        not a non-consuming one (the reader warns about those).

        :type result: standoff.tagxml.ParseResult
        """
        with self._batch():
            for parsed in result.tags:
                tag_type = self._tag_type(parsed.tag_type)
                tid = self._insert_tag(tag_type, parsed.tid, parsed.text,
                                       filename)
                if not parsed.is_link:
                    self._insert_anchors(
                        tid, self._check_offsets(tag_type, parsed.spans,
                                                 allow_empty=True))
            for parsed in result.atts:
                self._set_attribute(self._tag_type(parsed.tag_type),
                                    parsed.tid, parsed.name, parsed.value)
            for parsed in result.args:
                self._set_argument(self._tag_type(parsed.tag_type),
                                   parsed.tid, parsed.name, parsed.arg_tid)

    def read_annotation(self, filename):
        """
        Replace the current annotations (and primary text) with those of
        the given file.

        :returns: the parse warnings, as one string (empty if none)
        """
        result = tagxml.read_annotation_file(filename, self.schema())
        old_text = self.primary_text
        try:
            with self._batch():
                self.empty_annotations()
                self.primary_text = result.primary_text
                self.load_parsed(result,
                                 filename=os.path.basename(filename))
        except StoreError:
            self.primary_text = old_text
            raise
        self.annotation_filename = filename
        self.mark_saved()
        return result.warnings_report()

    def to_xml_string(self, settings=tagxml.DEFAULT_OUTPUT_SETTINGS):
        """
        The current annotations as an annotation file
        """
        return tagxml.annotation_to_string(self.schema(),
                                           self.primary_text,
                                           self.get_all_tags(),
                                           settings=settings)

    def write_annotation(self, filename=None,
                         settings=tagxml.DEFAULT_OUTPUT_SETTINGS):
        """
        Save the annotations (by default, to the file they were read
        from)
        """
        filename = filename or self.annotation_filename
        if filename is None:
            raise StoreError('no file to write the annotations to')
        tagxml.write_annotation_file(filename, self.schema(),
                                     self.primary_text,
                                     self.get_all_tags(),
                                     settings=settings)
        self.annotation_filename = filename
        self.mark_saved()
