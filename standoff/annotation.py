# Author: Eric Kow
# License: BSD3

"""
Annotation model: tag types and the tags themselves.

There are exactly two kinds of tags

* an :py:class:`ExtentTag` is anchored to a set of character offsets in
  the primary text (possibly empty for non-consuming tag types)
* a :py:class:`LinkTag` relates extent tags to each other by filling in
  named argument slots

Both carry a dictionary of attributes. The tags here are plain values:
they are produced by the annotation store and reflect its state at the
moment they were fetched, owned rows (offsets, attributes and arguments)
included.
"""

# pylint: disable=too-few-public-methods, too-many-arguments

from collections import namedtuple, OrderedDict

from .spans import offsets_to_pairs, offsets_to_string

Argument = namedtuple('Argument', 'linker name target target_text')
"""
One filled argument slot: the link tag id, the argument type name,
and the id (and text) of the extent tag it points to
"""

Attribute = namedtuple('Attribute', 'tid name value')

CharIndex = namedtuple('CharIndex', 'location tid')


class AttributeType(object):
    """
    An attribute that tags of some type may carry.

    :param valueset: allowed values (None if the attribute is free text)
    :param default_value: value given to fresh tags, and substituted
        for invalid values on read (empty string for none)
    :param id_ref: the value is the id of another tag
    """
    def __init__(self, tag_type, name,
                 valueset=None, default_value='',
                 required=False, id_ref=False):
        self.tag_type = tag_type
        self.name = name
        self.valueset = tuple(valueset) if valueset is not None else None
        self.default_value = default_value or ''
        self.required = required
        self.id_ref = id_ref

    def is_valid_value(self, value):
        "True if the value is acceptable for this attribute"
        return self.valueset is None or value in self.valueset

    def __repr__(self):
        return 'AttributeType(%s.%s)' % (self.tag_type, self.name)


class ArgumentType(object):
    """
    An argument slot of a link tag type
    """
    def __init__(self, tag_type, name, required=False):
        self.tag_type = tag_type
        self.name = name
        self.required = required

    def __repr__(self):
        return 'ArgumentType(%s.%s)' % (self.tag_type, self.name)


class TagType(object):
    """
    A kind of tag declared by the annotation task.

    Tag types are compared and hashed by name.
    """
    def __init__(self, name, prefix=None, is_link=False,
                 non_consuming=False,
                 attribute_types=None, argument_types=None):
        self.name = name
        self.prefix = prefix if prefix is not None else name[:1]
        self.is_link = is_link
        self.non_consuming = non_consuming
        self.attribute_types = list(attribute_types or [])
        self.argument_types = list(argument_types or [])

    def __repr__(self):
        return 'TagType(%s)' % self.name

    def __str__(self):
        return self.name

    def __eq__(self, other):
        return isinstance(other, TagType) and self.name == other.name

    def __ne__(self, other):
        return not self == other

    def __lt__(self, other):
        return self.name < other.name

    def __hash__(self):
        return hash(self.name)

    def is_extent(self):
        "True for extent tag types"
        return not self.is_link

    def attribute_type(self, name):
        "The attribute type with the given name, or None"
        for att_type in self.attribute_types:
            if att_type.name == name:
                return att_type
        return None

    def argument_type(self, name):
        "The argument type with the given name, or None"
        for arg_type in self.argument_types:
            if arg_type.name == name:
                return arg_type
        return None

    def attribute_names(self):
        return [x.name for x in self.attribute_types]

    def argument_names(self):
        return [x.name for x in self.argument_types]


class Tag(object):
    """
    Fields shared by both kinds of tags

    :param attributes: attribute name to (non-empty) value
    :type attributes: OrderedDict
    """
    def __init__(self, tid, tag_type, filename=None, text='',
                 attributes=None):
        self.tid = tid
        self.tag_type = tag_type
        self.filename = filename
        self.text = text
        self.attributes = OrderedDict(attributes or [])

    def __eq__(self, other):
        return isinstance(other, Tag) and self.tid == other.tid

    def __ne__(self, other):
        return not self == other

    def __hash__(self):
        return hash(self.tid)

    def is_link(self):
        return self.tag_type.is_link


class ExtentTag(Tag):
    """
    Tag anchored to a set of character offsets

    :param spans: strictly increasing character offsets
    :type spans: [int]
    """
    def __init__(self, tid, tag_type, spans, filename=None, text='',
                 attributes=None):
        super(ExtentTag, self).__init__(tid, tag_type,
                                        filename=filename, text=text,
                                        attributes=attributes)
        self.spans = list(spans)

    def __repr__(self):
        return 'ExtentTag(%s, %s, %s)' % (self.tid, self.tag_type.name,
                                          self.spans_string())

    def is_consuming(self):
        "True if this tag covers at least one character"
        return bool(self.spans)

    def span_pairs(self):
        "half-open pairs covering this tag's offsets"
        return offsets_to_pairs(self.spans)

    def spans_string(self):
        return offsets_to_string(self.spans)


class LinkTag(Tag):
    """
    Tag relating extent tags

    :param arguments: argument type name to filled :py:class:`Argument`,
        in schema order
    :type arguments: OrderedDict
    """
    def __init__(self, tid, tag_type, arguments=None, filename=None,
                 text='', attributes=None):
        super(LinkTag, self).__init__(tid, tag_type,
                                      filename=filename, text=text,
                                      attributes=attributes)
        self.arguments = OrderedDict(arguments or [])

    def __repr__(self):
        return 'LinkTag(%s, %s, %s)' % (
            self.tid, self.tag_type.name,
            ', '.join('%s=%s' % (k, v.target)
                      for k, v in self.arguments.items()))

    def argument_targets(self):
        "argument name to target tag id"
        return OrderedDict((k, v.target) for k, v in self.arguments.items())


class TaskSchema(object):
    """
    The tag types of an annotation task, in declaration order.

    This is the read-only view of the task that the XML reader and the
    agreement code work from.
    """
    def __init__(self, name, tag_types):
        self.name = name
        self.tag_types = list(tag_types)
        self._by_name = dict((t.name, t) for t in self.tag_types)

    def __contains__(self, name):
        return name in self._by_name

    def __repr__(self):
        return 'TaskSchema(%s, %s)' % (
            self.name, [t.name for t in self.tag_types])

    def tag_type(self, name):
        "Tag type with the given name, or None"
        return self._by_name.get(name)

    def extent_types(self):
        return [t for t in self.tag_types if not t.is_link]

    def link_types(self):
        return [t for t in self.tag_types if t.is_link]

    def extent_type_names(self):
        return [t.name for t in self.extent_types()]

    def link_type_names(self):
        return [t.name for t in self.link_types()]

    def attribute_type(self, tag_type_name, name):
        "Attribute type, or None if either the tag or attribute is unknown"
        tag_type = self.tag_type(tag_type_name)
        if tag_type is None:
            return None
        return tag_type.attribute_type(name)

    def tags_and_atts(self):
        """
        Every tag type name with the names of its attributes, which is
        the widest target one can ask an agreement computation for
        """
        return OrderedDict((t.name, t.attribute_names())
                           for t in self.tag_types)
